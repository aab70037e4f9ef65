"""
Storage interfaces and data models for the embedding cache.

The cache talks to its backend through a small prepared-statement protocol
(``exec`` / ``prepare().bind().first()/all()/run()``) so any SQL engine with
an adapter can hold the ``embedding_cache`` table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from ..models import DocMetadata


class CacheStoreError(RuntimeError):
    """Raised when the cache backend is unavailable or a statement fails."""


@dataclass(frozen=True)
class QueryMeta:
    """Execution counters reported by a backend for one statement."""

    changes: int = 0
    rows_read: int = 0
    rows_written: int = 0
    last_row_id: int = 0


@dataclass(frozen=True)
class QueryResult:
    """Result of ``exec``/``run``/``all``: rows (if any) plus status and counters."""

    success: bool
    results: list[dict[str, Any]] | None = None
    error: str | None = None
    meta: QueryMeta = field(default_factory=QueryMeta)


class PreparedStatement(Protocol):
    """A parameterized statement; ``bind`` returns a statement ready to execute."""

    def bind(self, *values: Any) -> PreparedStatement:
        """Bind positional ``?`` parameters."""

    def first(self) -> dict[str, Any] | None:
        """Execute and return the first row, or ``None``."""

    def all(self) -> QueryResult:
        """Execute and return all rows."""

    def run(self) -> QueryResult:
        """Execute a write statement."""


class Database(Protocol):
    """Minimal SQL backend used by ``EmbeddingCache``."""

    def exec(self, sql: str) -> QueryResult:
        """Run a single unparameterized statement (DDL)."""

    def prepare(self, sql: str) -> PreparedStatement:
        """Prepare a parameterized statement."""


@dataclass(frozen=True)
class CacheEntry:
    """One persisted ``embedding_cache`` row."""

    path: str
    content_hash: str
    embedding: list[float]
    metadata: DocMetadata | None
    cache_version: str
    created_at: datetime | None = None
    last_used: datetime | None = None
    usage_count: int = 1


@dataclass(frozen=True)
class CacheStats:
    total_entries: int = 0
    cache_size: str = "0 MB"
    total_usage: int = 0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None


@dataclass(frozen=True)
class CacheUsage:
    """Usage counters for a single cached path."""

    path: str
    usage_count: int
    last_used: datetime | None


@dataclass
class CacheValidation:
    """Per-document classification of the cache against current content hashes."""

    valid: int = 0
    invalid: int = 0
    missing: int = 0
    details: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CacheOptimization:
    cleaned: int = 0
    kept: int = 0


@dataclass(frozen=True)
class CacheLoadReport:
    """Summary of reconciling the corpus against stored cache rows."""

    total: int = 0
    hits: int = 0
    stale_removed: int = 0

    @property
    def hit_rate(self) -> int:
        if self.total == 0:
            return 0
        return round(self.hits / self.total * 100)


@dataclass(frozen=True)
class CacheReport:
    stats: CacheStats
    top_used: list[CacheUsage] = field(default_factory=list)
    available: bool = True
