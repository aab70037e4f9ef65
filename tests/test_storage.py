"""Tests for the embedding cache and its database adapters."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

import pytest

from example_repo.models import DocMetadata
from example_repo.storage import (
    CacheEntry,
    CacheStoreError,
    DuckDBDatabase,
    EmbeddingCache,
    SQLiteDatabase,
)


@pytest.fixture(params=["duckdb", "sqlite"])
def database(request, tmp_path: Path) -> Iterator[DuckDBDatabase | SQLiteDatabase]:
    if request.param == "duckdb":
        db = DuckDBDatabase(str(tmp_path / "cache.duckdb"))
    else:
        db = SQLiteDatabase(str(tmp_path / "cache.sqlite"))
    yield db
    db.close()


@pytest.fixture
def cache(database) -> EmbeddingCache:  # noqa: ANN001
    store = EmbeddingCache(database, version="1.0.0")
    store.initialize()
    return store


def _entry(path: str, *, hash_: str = "h1", embedding: list[float] | None = None) -> CacheEntry:
    return CacheEntry(
        path=path,
        content_hash=hash_,
        embedding=embedding if embedding is not None else [0.25, -0.5, 1.0],
        metadata=DocMetadata(
            category="THREAT",
            topics=["THREAT", "email"],
            complexity=1.3,
            last_updated=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        ),
        cache_version="1.0.0",
    )


def test_initialize_is_idempotent(database) -> None:  # noqa: ANN001
    store = EmbeddingCache(database)

    store.initialize()
    store.initialize()
    EmbeddingCache(database).initialize()

    assert store.list_paths() == []


def test_save_then_get_round_trips_embedding_and_metadata(cache: EmbeddingCache) -> None:
    entry = _entry("examples/phishing.json")

    cache.save(entry)
    stored = cache.get("examples/phishing.json")

    assert stored is not None
    assert stored.content_hash == "h1"
    assert stored.embedding == entry.embedding
    assert stored.metadata == entry.metadata
    assert stored.cache_version == "1.0.0"
    assert stored.usage_count == 1
    assert stored.created_at is not None


def test_get_unknown_path_returns_none(cache: EmbeddingCache) -> None:
    assert cache.get("examples/missing.json") is None


def test_upsert_replaces_payload_and_increments_usage(cache: EmbeddingCache) -> None:
    cache.save(_entry("examples/a.json", hash_="old", embedding=[1.0]))
    cache.save(_entry("examples/a.json", hash_="new", embedding=[2.0, 3.0]))

    stored = cache.get("examples/a.json")

    assert stored.content_hash == "new"
    assert stored.embedding == [2.0, 3.0]
    assert stored.usage_count == 2
    assert cache.list_paths() == ["examples/a.json"]


def test_upsert_keeps_created_at_and_refreshes_last_used(cache: EmbeddingCache) -> None:
    cache.save(_entry("examples/a.json", hash_="old"))
    created = cache.get("examples/a.json").created_at

    cache.save(_entry("examples/a.json", hash_="new"))
    stored = cache.get("examples/a.json")

    assert stored.created_at == created
    assert stored.last_used is not None
    assert stored.last_used >= stored.created_at


def test_save_falls_back_to_store_version(cache: EmbeddingCache) -> None:
    entry = replace(_entry("examples/a.json"), cache_version="")

    cache.save(entry)

    assert cache.get("examples/a.json").cache_version == "1.0.0"


def test_touch_increments_usage(cache: EmbeddingCache) -> None:
    cache.save(_entry("examples/a.json"))

    cache.touch("examples/a.json")
    cache.touch("examples/a.json")

    assert cache.get("examples/a.json").usage_count == 3


def test_remove_and_clear(cache: EmbeddingCache) -> None:
    for name in ("a", "b", "c"):
        cache.save(_entry(f"examples/{name}.json"))

    cache.remove("examples/b.json")
    assert cache.list_paths() == ["examples/a.json", "examples/c.json"]

    cache.clear()
    assert cache.list_paths() == []


def test_load_entries_keys_rows_by_path(cache: EmbeddingCache) -> None:
    cache.save(_entry("examples/a.json"))
    cache.save(_entry("examples/b.json", hash_="h2"))

    entries = cache.load_entries()

    assert set(entries) == {"examples/a.json", "examples/b.json"}
    assert entries["examples/b.json"].content_hash == "h2"


def test_unreadable_embedding_json_becomes_empty(cache: EmbeddingCache, database) -> None:  # noqa: ANN001
    database.prepare(
        "INSERT INTO embedding_cache (path, content_hash, embedding_json, cache_version) "
        "VALUES (?, ?, ?, ?)"
    ).bind("examples/bad.json", "h", "not json", "1.0.0").run()

    stored = cache.get("examples/bad.json")

    assert stored.embedding == []
    assert stored.metadata is None


def test_stats_and_top_used(cache: EmbeddingCache) -> None:
    cache.save(_entry("examples/a.json"))
    cache.save(_entry("examples/b.json"))
    cache.touch("examples/b.json")

    stats = cache.stats(embedding_dim=768)
    top = cache.top_used(limit=1)

    assert stats.total_entries == 2
    assert stats.total_usage == 3
    assert stats.cache_size == "0.01 MB"
    assert stats.oldest_entry is not None
    assert [usage.path for usage in top] == ["examples/b.json"]
    assert top[0].usage_count == 2


def test_stats_on_empty_table(cache: EmbeddingCache) -> None:
    stats = cache.stats(embedding_dim=768)

    assert stats.total_entries == 0
    assert stats.total_usage == 0
    assert stats.cache_size == "0.00 MB"


def test_statement_failures_raise_cache_store_error(database) -> None:  # noqa: ANN001
    store = EmbeddingCache(database)

    # Table was never created.
    with pytest.raises(CacheStoreError):
        store.load_entries()


def test_closed_database_raises_cache_store_error(tmp_path: Path) -> None:
    db = SQLiteDatabase(str(tmp_path / "closed.sqlite"))
    store = EmbeddingCache(db)
    store.initialize()
    db.close()

    with pytest.raises(CacheStoreError):
        store.save(_entry("examples/a.json"))


def test_in_memory_databases_are_supported() -> None:
    for db in (DuckDBDatabase(":memory:"), SQLiteDatabase(":memory:")):
        store = EmbeddingCache(db)
        store.initialize()
        store.save(_entry("examples/a.json"))
        assert store.list_paths() == ["examples/a.json"]
        db.close()
