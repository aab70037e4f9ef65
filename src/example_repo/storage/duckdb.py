"""
DuckDB adapter for the cache database protocol.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import duckdb

from .base import CacheStoreError, QueryMeta, QueryResult


class DuckDBStatement:
    """Prepared statement bound to a ``DuckDBDatabase``."""

    def __init__(
        self,
        database: DuckDBDatabase,
        sql: str,
        values: tuple[Any, ...] = (),
    ) -> None:
        self._database = database
        self.sql = sql
        self.values = values

    def bind(self, *values: Any) -> DuckDBStatement:
        return DuckDBStatement(self._database, self.sql, values)

    def first(self) -> dict[str, Any] | None:
        rows = self._database.fetch_rows(self.sql, list(self.values))
        return rows[0] if rows else None

    def all(self) -> QueryResult:
        rows = self._database.fetch_rows(self.sql, list(self.values))
        return QueryResult(
            success=True,
            results=rows,
            meta=QueryMeta(rows_read=len(rows)),
        )

    def run(self) -> QueryResult:
        return self._database.execute_write(self.sql, list(self.values))


class DuckDBDatabase:
    """DuckDB-backed statement runner; statements are serialized on one connection."""

    def __init__(self, db_path: str, *, read_only: bool = False) -> None:
        if db_path == ":memory:":
            self.db_path = db_path
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        self._lock = threading.Lock()
        try:
            self._conn = duckdb.connect(self.db_path, read_only=read_only)
        except duckdb.Error as exc:
            raise CacheStoreError(f"Failed to open DuckDB database {self.db_path}: {exc}") from exc

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()

    def exec(self, sql: str) -> QueryResult:
        return self.execute_write(sql, [])

    def prepare(self, sql: str) -> DuckDBStatement:
        return DuckDBStatement(self, sql)

    def fetch_rows(self, sql: str, params: list[Any]) -> list[dict[str, Any]]:
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                columns = [column[0] for column in cursor.description or []]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            except duckdb.Error as exc:
                raise CacheStoreError(f"DuckDB query failed: {exc}") from exc

    def execute_write(self, sql: str, params: list[Any]) -> QueryResult:
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                # DML statements report their affected row count as a one-row result.
                row = cursor.fetchone() if cursor.description else None
            except duckdb.Error as exc:
                raise CacheStoreError(f"DuckDB statement failed: {exc}") from exc
        changes = int(row[0]) if row and isinstance(row[0], int) else 0
        return QueryResult(
            success=True,
            meta=QueryMeta(changes=changes, rows_written=changes),
        )
