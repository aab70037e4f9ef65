"""
Persistent embedding cache over the prepared-statement database protocol.

One row per document path holds the embedding, derived metadata, content
hash, cache version and usage counters. Every failure surfaces as
``CacheStoreError`` so callers can degrade to running without persistence.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError

from ..index_config import CACHE_TABLE_NAME, DEFAULT_CACHE_VERSION
from ..models import DocMetadata
from .base import CacheEntry, CacheStats, CacheStoreError, CacheUsage, Database, QueryResult

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_BYTES_PER_FLOAT = 4


def _to_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _check(result: QueryResult, action: str) -> QueryResult:
    if not result.success:
        raise CacheStoreError(f"Failed to {action}: {result.error or 'unknown error'}")
    return result


class EmbeddingCache:
    """Read/write access to the ``embedding_cache`` table."""

    def __init__(
        self,
        database: Database,
        *,
        version: str = DEFAULT_CACHE_VERSION,
        table: str = CACHE_TABLE_NAME,
    ) -> None:
        self.database = database
        self.version = version
        self.table = table
        self._initialized = False

    def initialize(self) -> None:
        """Create the cache table if needed; repeated calls are no-ops."""
        if self._initialized:
            return
        self._guard(
            "initialize cache schema",
            lambda: _check(
                self.database.exec(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        path TEXT PRIMARY KEY,
                        content_hash TEXT NOT NULL,
                        embedding_json TEXT NOT NULL,
                        metadata_json TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        last_used DATETIME DEFAULT CURRENT_TIMESTAMP,
                        usage_count INTEGER DEFAULT 1,
                        cache_version TEXT NOT NULL
                    )
                    """
                ),
                "initialize cache schema",
            ),
        )
        self._initialized = True
        logger.info("Embedding cache table %s initialized", self.table)

    def load_entries(self) -> dict[str, CacheEntry]:
        """Return every stored row keyed by path, whatever its cache version."""
        result = self._guard(
            "load cache entries",
            lambda: _check(
                self.database.prepare(f"SELECT * FROM {self.table}").all(),
                "load cache entries",
            ),
        )
        entries: dict[str, CacheEntry] = {}
        for row in result.results or []:
            entry = self._row_to_entry(row)
            entries[entry.path] = entry
        return entries

    def get(self, path: str) -> CacheEntry | None:
        row = self._guard(
            f"read cache entry for {path}",
            lambda: self.database.prepare(
                f"SELECT * FROM {self.table} WHERE path = ?"
            ).bind(path).first(),
        )
        if row is None:
            return None
        return self._row_to_entry(row)

    def save(self, entry: CacheEntry) -> None:
        """Upsert *entry*; an existing row keeps ``created_at`` and gains one use."""
        metadata_json = entry.metadata.model_dump_json() if entry.metadata else None
        self._guard(
            f"save cache entry for {entry.path}",
            lambda: _check(
                self.database.prepare(
                    f"""
                    INSERT INTO {self.table} (
                        path, content_hash, embedding_json, metadata_json,
                        created_at, last_used, usage_count, cache_version
                    )
                    VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, 1, ?)
                    ON CONFLICT (path) DO UPDATE SET
                        content_hash = excluded.content_hash,
                        embedding_json = excluded.embedding_json,
                        metadata_json = excluded.metadata_json,
                        last_used = excluded.last_used,
                        usage_count = usage_count + 1,
                        cache_version = excluded.cache_version
                    """
                )
                .bind(
                    entry.path,
                    entry.content_hash,
                    json.dumps(entry.embedding),
                    metadata_json,
                    entry.cache_version or self.version,
                )
                .run(),
                f"save cache entry for {entry.path}",
            ),
        )

    def touch(self, path: str) -> None:
        """Refresh ``last_used`` and increment ``usage_count`` for *path*."""
        self._guard(
            f"update usage stats for {path}",
            lambda: _check(
                self.database.prepare(
                    f"""
                    UPDATE {self.table}
                    SET last_used = CURRENT_TIMESTAMP, usage_count = usage_count + 1
                    WHERE path = ?
                    """
                )
                .bind(path)
                .run(),
                f"update usage stats for {path}",
            ),
        )

    def remove(self, path: str) -> int:
        result = self._guard(
            f"remove cache entry for {path}",
            lambda: _check(
                self.database.prepare(f"DELETE FROM {self.table} WHERE path = ?")
                .bind(path)
                .run(),
                f"remove cache entry for {path}",
            ),
        )
        return result.meta.changes

    def clear(self) -> None:
        self._guard(
            "clear cache",
            lambda: _check(self.database.exec(f"DELETE FROM {self.table}"), "clear cache"),
        )

    def list_paths(self) -> list[str]:
        result = self._guard(
            "list cached paths",
            lambda: _check(
                self.database.prepare(f"SELECT path FROM {self.table} ORDER BY path").all(),
                "list cached paths",
            ),
        )
        return [str(row["path"]) for row in result.results or []]

    def stats(self, *, embedding_dim: int) -> CacheStats:
        """Aggregate row count, usage and age; size is estimated from *embedding_dim*."""
        row = self._guard(
            "read cache stats",
            lambda: self.database.prepare(
                f"""
                SELECT
                    COUNT(*) AS total_entries,
                    SUM(usage_count) AS total_usage,
                    MIN(created_at) AS oldest_entry,
                    MAX(created_at) AS newest_entry
                FROM {self.table}
                """
            ).first(),
        )
        row = row or {}
        total_entries = int(row.get("total_entries") or 0)
        estimated_bytes = total_entries * embedding_dim * _BYTES_PER_FLOAT
        return CacheStats(
            total_entries=total_entries,
            cache_size=f"{estimated_bytes / 1024 / 1024:.2f} MB",
            total_usage=int(row.get("total_usage") or 0),
            oldest_entry=_to_datetime(row.get("oldest_entry")),
            newest_entry=_to_datetime(row.get("newest_entry")),
        )

    def top_used(self, limit: int = 5) -> list[CacheUsage]:
        result = self._guard(
            "read most used cache entries",
            lambda: _check(
                self.database.prepare(
                    f"""
                    SELECT path, usage_count, last_used
                    FROM {self.table}
                    ORDER BY usage_count DESC, path ASC
                    LIMIT ?
                    """
                )
                .bind(limit)
                .all(),
                "read most used cache entries",
            ),
        )
        return [
            CacheUsage(
                path=str(row["path"]),
                usage_count=int(row["usage_count"] or 0),
                last_used=_to_datetime(row.get("last_used")),
            )
            for row in result.results or []
        ]

    @staticmethod
    def _guard(action: str, operation: Callable[[], _T]) -> _T:
        try:
            return operation()
        except CacheStoreError:
            raise
        except Exception as exc:
            raise CacheStoreError(f"Failed to {action}: {exc}") from exc

    @staticmethod
    def _row_to_entry(row: dict[str, Any]) -> CacheEntry:
        path = str(row["path"])
        try:
            embedding = [float(value) for value in json.loads(str(row["embedding_json"]))]
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable cached embedding for %s", path)
            embedding = []

        metadata: DocMetadata | None = None
        if row.get("metadata_json"):
            try:
                metadata = DocMetadata.model_validate_json(str(row["metadata_json"]))
            except ValidationError:
                logger.warning("Discarding unreadable cached metadata for %s", path)

        return CacheEntry(
            path=path,
            content_hash=str(row["content_hash"]),
            embedding=embedding,
            metadata=metadata,
            cache_version=str(row.get("cache_version") or ""),
            created_at=_to_datetime(row.get("created_at")),
            last_used=_to_datetime(row.get("last_used")),
            usage_count=int(row.get("usage_count") or 0),
        )
