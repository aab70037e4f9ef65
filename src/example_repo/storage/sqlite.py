"""
SQLite adapter for the cache database protocol.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any

from .base import CacheStoreError, QueryMeta, QueryResult


class SQLiteStatement:
    """Prepared statement bound to a ``SQLiteDatabase``."""

    def __init__(
        self,
        database: SQLiteDatabase,
        sql: str,
        values: tuple[Any, ...] = (),
    ) -> None:
        self._database = database
        self.sql = sql
        self.values = values

    def bind(self, *values: Any) -> SQLiteStatement:
        return SQLiteStatement(self._database, self.sql, values)

    def first(self) -> dict[str, Any] | None:
        rows = self._database.fetch_rows(self.sql, self.values)
        return rows[0] if rows else None

    def all(self) -> QueryResult:
        rows = self._database.fetch_rows(self.sql, self.values)
        return QueryResult(
            success=True,
            results=rows,
            meta=QueryMeta(rows_read=len(rows)),
        )

    def run(self) -> QueryResult:
        return self._database.execute_write(self.sql, self.values)


class SQLiteDatabase:
    """sqlite3-backed statement runner shared across threads behind a lock."""

    def __init__(self, db_path: str) -> None:
        if db_path == ":memory:":
            self.db_path = db_path
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                isolation_level=None,
            )
        except sqlite3.Error as exc:
            raise CacheStoreError(f"Failed to open SQLite database {self.db_path}: {exc}") from exc
        self._conn.row_factory = sqlite3.Row

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def exec(self, sql: str) -> QueryResult:
        return self.execute_write(sql, ())

    def prepare(self, sql: str) -> SQLiteStatement:
        return SQLiteStatement(self, sql)

    def fetch_rows(self, sql: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.Error as exc:
                raise CacheStoreError(f"SQLite query failed: {exc}") from exc

    def execute_write(self, sql: str, params: tuple[Any, ...]) -> QueryResult:
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
            except sqlite3.Error as exc:
                raise CacheStoreError(f"SQLite statement failed: {exc}") from exc
        changes = max(cursor.rowcount, 0)
        return QueryResult(
            success=True,
            meta=QueryMeta(
                changes=changes,
                rows_written=changes,
                last_row_id=cursor.lastrowid or 0,
            ),
        )
