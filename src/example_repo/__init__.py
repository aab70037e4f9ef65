"""
ExampleRepo - retrieval and caching engine for reference training documents.

Loads a small corpus of JSON examples, embeds them with Google GenAI,
persists the embeddings in a local cache database and ranks examples for a
query with hybrid semantic/lexical scoring. Schema hints summarize the
structure of the best examples for a downstream generator.

Example usage:
    >>> from example_repo import ExampleRepository, DuckDBDatabase
    >>> repo = ExampleRepository(database=DuckDBDatabase(":memory:"))
    >>> repo.load_once()
    >>> docs = repo.search_top_k("phishing awareness", k=3)
"""

from .embeddings import Embedder, EmbeddingProvider
from .index_config import EngineSettings
from .models import DocMetadata, ExampleDoc, ParseResult, parse_training_structure
from .repository import EngineState, ExampleRepository
from .search import SearchOptions, SearchResult, collect_schema_hints
from .storage import (
    CacheEntry,
    CacheStoreError,
    DuckDBDatabase,
    EmbeddingCache,
    SQLiteDatabase,
)

__all__ = [
    # Engine
    "ExampleRepository",
    "EngineState",
    "EngineSettings",
    # Embeddings
    "Embedder",
    "EmbeddingProvider",
    # Models
    "DocMetadata",
    "ExampleDoc",
    "ParseResult",
    "parse_training_structure",
    # Search
    "SearchOptions",
    "SearchResult",
    "collect_schema_hints",
    # Storage
    "CacheEntry",
    "CacheStoreError",
    "DuckDBDatabase",
    "EmbeddingCache",
    "SQLiteDatabase",
]
