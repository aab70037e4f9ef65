"""Storage backends for the example embedding cache."""

from .base import (
    CacheEntry,
    CacheLoadReport,
    CacheOptimization,
    CacheReport,
    CacheStats,
    CacheStoreError,
    CacheUsage,
    CacheValidation,
    Database,
    PreparedStatement,
    QueryMeta,
    QueryResult,
)
from .cache import EmbeddingCache
from .duckdb import DuckDBDatabase
from .sqlite import SQLiteDatabase

__all__ = [
    "CacheEntry",
    "CacheLoadReport",
    "CacheOptimization",
    "CacheReport",
    "CacheStats",
    "CacheStoreError",
    "CacheUsage",
    "CacheValidation",
    "Database",
    "PreparedStatement",
    "QueryMeta",
    "QueryResult",
    "EmbeddingCache",
    "DuckDBDatabase",
    "SQLiteDatabase",
]
