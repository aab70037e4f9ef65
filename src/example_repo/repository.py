"""
Example repository: retrieval and caching engine for reference documents.

Loads a small corpus once, attaches cached or freshly generated embeddings,
and ranks documents for a query with hybrid semantic/lexical scoring. Every
dependency (cache database, embedding provider) is optional at runtime: when
one fails the engine degrades to lexical search or to running without
persistence instead of raising.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Any

from .embeddings import Embedder, EmbeddingProvider
from .index_config import EngineSettings, resolve_examples_dir
from .indexing import (
    CorpusLoader,
    EmbeddingGenerationError,
    EmbeddingPipeline,
    FailurePolicy,
    content_hash,
    extract_metadata,
)
from .models import ExampleDoc
from .search import (
    SearchOptions,
    SearchResult,
    combined_score,
    cosine_similarity,
    diversity_sample,
    document_text,
    format_schema_hints,
    is_complex_query,
    lexical_rank,
    rank_results,
    token_overlap,
    tokenize,
)
from .storage import (
    CacheEntry,
    CacheLoadReport,
    CacheOptimization,
    CacheReport,
    CacheStats,
    CacheStoreError,
    CacheValidation,
    Database,
    EmbeddingCache,
)

logger = logging.getLogger(__name__)

_TOP_USED_LIMIT = 5


class EngineState(str, Enum):
    """Lifecycle of an ``ExampleRepository``.

    UNINITIALIZED -> LOADED on ``load_once``; LOADED -> READY or DEGRADED on
    the first embedding attempt. DEGRADED is sticky until ``rebuild_cache``.
    """

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    READY = "ready"
    DEGRADED = "degraded"


class ExampleRepository:
    """Search and schema hints over reference examples, backed by an embedding cache."""

    def __init__(
        self,
        *,
        examples_dir: str | None = None,
        database: Database | None = None,
        embedder: Embedder | None = None,
        embedder_factory: Callable[[], Embedder] | None = None,
        settings: EngineSettings | None = None,
        loader: CorpusLoader | None = None,
    ) -> None:
        self.settings = settings or EngineSettings.from_env()
        self.examples_dir = resolve_examples_dir(examples_dir)
        self._loader = loader or CorpusLoader(max_documents=self.settings.max_examples)
        self._cache = (
            EmbeddingCache(database, version=self.settings.cache_version)
            if database is not None
            else None
        )
        self._embedder = embedder
        self._embedder_factory = embedder_factory or self._default_embedder

        self._docs: list[ExampleDoc] = []
        self._state = EngineState.UNINITIALIZED
        self._load_lock = threading.Lock()
        self._embedding_lock = threading.Lock()
        self._hints_lock = threading.Lock()
        self._basic_hints: str | None = None

        self._writer: ThreadPoolExecutor | None = None
        self._pending: list[Future[bool]] = []
        self._pending_lock = threading.Lock()

    def __enter__(self) -> ExampleRepository:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def documents(self) -> list[ExampleDoc]:
        return list(self._docs)

    def default_search_options(self) -> SearchOptions:
        return SearchOptions(
            threshold=self.settings.search_threshold,
            use_hybrid=self.settings.use_hybrid,
            context_weight=self.settings.context_weight,
        )

    # ------------------------------------------------------------------
    # Loading and cache reconciliation
    # ------------------------------------------------------------------

    def load_once(self, source_dir: str | None = None) -> None:
        """Load the corpus on the first call; later calls do nothing."""
        if self._state is not EngineState.UNINITIALIZED:
            return
        with self._load_lock:
            if self._state is not EngineState.UNINITIALIZED:
                return

            if not self.settings.load_examples:
                logger.info("Example loading disabled, using an empty corpus")
                docs: list[ExampleDoc] = []
            else:
                report = self._loader.load(source_dir or self.examples_dir)
                docs = report.documents

            self._docs = docs
            if docs and self._cache is not None:
                self.load_from_cache()
            self._state = EngineState.LOADED

    def load_from_cache(self) -> CacheLoadReport:
        """Attach valid cached embeddings to the corpus and purge stale rows."""
        docs = list(self._docs)
        if self._cache is None:
            logger.warning("Cache database not available, skipping embedding cache")
            return CacheLoadReport(total=len(docs))
        if not docs:
            return CacheLoadReport()

        try:
            self._cache.initialize()
            entries = self._cache.load_entries()
        except CacheStoreError as exc:
            logger.warning("Embedding cache loading failed: %s", exc)
            return CacheLoadReport(total=len(docs))

        hits = 0
        stale = 0
        for doc in docs:
            entry = entries.get(doc.path)
            if entry is None:
                continue
            if self._entry_is_valid(entry, content_hash(doc.content)):
                doc.embedding = list(entry.embedding)
                doc.metadata = entry.metadata or extract_metadata(doc)
                hits += 1
                self._submit_write(
                    f"update usage stats for {doc.path}", self._cache.touch, doc.path
                )
            else:
                stale += 1
                self._submit_write(
                    f"remove stale cache entry for {doc.path}",
                    self._cache.remove,
                    doc.path,
                )

        report = CacheLoadReport(total=len(docs), hits=hits, stale_removed=stale)
        logger.info(
            "Embedding cache: %d/%d hits (%d%%), %d stale removed",
            report.hits,
            report.total,
            report.hit_rate,
            report.stale_removed,
        )
        return report

    def initialize_with_cache(self) -> bool:
        """Reconcile with the cache, then embed whatever is still missing."""
        if self._cache is None:
            logger.warning("Cache database not available, generating embeddings without cache")
        else:
            self.load_from_cache()
        return self.try_generate_embeddings()

    # ------------------------------------------------------------------
    # Embedding generation
    # ------------------------------------------------------------------

    def try_generate_embeddings(self, *, wait_for_running: bool = True) -> bool:
        """Embed documents that lack embeddings; the outcome is remembered.

        Returns True once the engine is READY. A failed provider moves the
        engine to DEGRADED and every later call returns False without retrying.
        With ``wait_for_running=False`` a pass already running in another
        thread is not waited for and False is returned.
        """
        if self._state is EngineState.READY:
            return True
        if self._state in (EngineState.DEGRADED, EngineState.UNINITIALIZED):
            return False

        acquired = self._embedding_lock.acquire(blocking=wait_for_running)
        if not acquired:
            return False
        try:
            if self._state is not EngineState.LOADED:
                return self._state is EngineState.READY
            self._state = self._generate_embeddings()
            return self._state is EngineState.READY
        finally:
            self._embedding_lock.release()

    def _generate_embeddings(self) -> EngineState:
        # Queued stale removals must land before fresh rows for the same paths.
        self.flush_pending_writes()
        try:
            embedder = self._resolve_embedder()
        except Exception as exc:
            logger.warning("Embedding provider initialization failed: %s", exc)
            return EngineState.DEGRADED

        pipeline = EmbeddingPipeline(
            embedder,
            failure_policy=FailurePolicy(max_failures=self.settings.max_embedding_failures),
        )
        try:
            pipeline.run(self._docs, on_embedded=self._persist_embedding)
        except EmbeddingGenerationError as exc:
            logger.error("Too many embedding failures, using lexical search: %s", exc)
            return EngineState.DEGRADED

        if self._docs and all(doc.embedding is None for doc in self._docs):
            logger.warning("No document embeddings available, using lexical search")
            return EngineState.DEGRADED
        return EngineState.READY

    def _resolve_embedder(self) -> Embedder:
        if self._embedder is None:
            self._embedder = self._embedder_factory()
        return self._embedder

    def _default_embedder(self) -> Embedder:
        return EmbeddingProvider(dim=self.settings.embedding_dim)

    def _persist_embedding(self, doc: ExampleDoc) -> bool:
        if self._cache is None or doc.embedding is None:
            return False
        entry = CacheEntry(
            path=doc.path,
            content_hash=content_hash(doc.content),
            embedding=list(doc.embedding),
            metadata=doc.metadata,
            cache_version=self._cache.version,
        )
        try:
            self._cache.initialize()
            self._cache.save(entry)
        except CacheStoreError as exc:
            logger.warning("Failed to save cache entry for %s: %s", doc.path, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        k: int = 3,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Ranked results for *query*; falls back to lexical ranking instead of raising."""
        if k <= 0:
            raise ValueError("k must be a positive integer")
        docs = list(self._docs)
        if not docs or not query:
            return []

        if self._state is not EngineState.READY and not self.try_generate_embeddings(
            wait_for_running=False
        ):
            logger.info("Semantic search unavailable, using token-based fallback")
            return lexical_rank(docs, query, k)

        search_options = options or self.default_search_options()
        try:
            return self._semantic_search(docs, query, k, search_options)
        except Exception as exc:
            logger.warning("Semantic search failed, falling back to token search: %s", exc)
            self._state = EngineState.DEGRADED
            return lexical_rank(docs, query, k)

    def search_top_k(
        self,
        query: str,
        k: int = 3,
        options: SearchOptions | None = None,
    ) -> list[ExampleDoc]:
        return [result.doc for result in self.search(query, k, options)]

    def search_top_k_lexical(self, query: str, k: int = 3) -> list[ExampleDoc]:
        """Token-overlap ranking only; never touches the embedding provider."""
        return [result.doc for result in lexical_rank(list(self._docs), query, k)]

    def _semantic_search(
        self,
        docs: list[ExampleDoc],
        query: str,
        k: int,
        options: SearchOptions,
    ) -> list[SearchResult]:
        query_embedding = self._resolve_embedder().embed_query(query)
        query_tokens = tokenize(query)

        results: list[SearchResult] = []
        for doc in docs:
            embedding = doc.embedding
            if embedding is None:
                continue
            similarity = cosine_similarity(query_embedding, embedding)
            lexical = (
                token_overlap(query_tokens, document_text(doc)) if options.use_hybrid else 0.0
            )
            results.append(
                SearchResult(
                    doc=doc,
                    score=combined_score(similarity, lexical, options),
                    similarity=similarity,
                    token_score=lexical,
                )
            )
        return rank_results(
            results,
            threshold=options.threshold,
            limit=options.max_results or k,
        )

    # ------------------------------------------------------------------
    # Schema hints
    # ------------------------------------------------------------------

    def get_schema_hints(self, max_files: int | None = None) -> str:
        """Structure-only hints for the first *max_files* documents."""
        limit = self._hint_limit(max_files)
        return format_schema_hints(self._docs[:limit], include_metadata=False)

    def get_smart_schema_hints(
        self, query: str | None = None, max_files: int | None = None
    ) -> str:
        """Targeted hints for detailed queries, memoized diverse hints otherwise."""
        limit = self._hint_limit(max_files)
        docs = list(self._docs)
        if not docs:
            return ""

        if not is_complex_query(query):
            with self._hints_lock:
                if self._basic_hints is None:
                    self._basic_hints = format_schema_hints(diversity_sample(docs, limit))
                    logger.info("Generated and cached basic schema hints")
                return self._basic_hints

        selected: list[ExampleDoc] = []
        if query and self._state is not EngineState.DEGRADED:
            selected = self.search_top_k(query, limit)
            logger.debug("Targeted search selected %d examples for hints", len(selected))
        if not selected:
            selected = diversity_sample(docs, limit)
            logger.debug("Sampled %d diverse examples for hints", len(selected))
        return format_schema_hints(selected)

    def _hint_limit(self, max_files: int | None) -> int:
        limit = self.settings.max_hint_files if max_files is None else max_files
        if limit <= 0:
            raise ValueError("max_files must be a positive integer")
        return limit

    # ------------------------------------------------------------------
    # Cache administration
    # ------------------------------------------------------------------

    def clear_cache(self) -> bool:
        if self._cache is None:
            logger.warning("Cache database not available")
            return False
        self.flush_pending_writes()
        try:
            self._cache.initialize()
            self._cache.clear()
        except CacheStoreError as exc:
            logger.warning("Embedding cache clear failed: %s", exc)
            return False
        logger.info("Embedding cache cleared")
        return True

    def get_cache_stats(self) -> CacheStats:
        if self._cache is None:
            return CacheStats()
        try:
            self._cache.initialize()
            return self._cache.stats(embedding_dim=self.settings.embedding_dim)
        except CacheStoreError as exc:
            logger.warning("Failed to read embedding cache stats: %s", exc)
            return CacheStats()

    def validate_cache(self) -> CacheValidation:
        """Classify each loaded document's cache row as valid, stale or missing."""
        validation = CacheValidation()
        if self._cache is None:
            validation.details.append("Cache database not available")
            return validation

        try:
            self._cache.initialize()
            for doc in self._docs:
                entry = self._cache.get(doc.path)
                if entry is None:
                    validation.missing += 1
                    validation.details.append(f"Missing cache: {doc.path}")
                elif not self._entry_is_valid(entry, content_hash(doc.content)):
                    validation.invalid += 1
                    validation.details.append(f"Stale cache: {doc.path}")
                else:
                    validation.valid += 1
        except CacheStoreError as exc:
            logger.warning("Failed to validate embedding cache: %s", exc)
            validation.details.append(f"Validation failed: {exc}")
        return validation

    def optimize_cache(self) -> CacheOptimization:
        """Delete cache rows whose path is no longer part of the corpus."""
        if self._cache is None:
            return CacheOptimization()

        current_paths = {doc.path for doc in self._docs}
        cleaned = 0
        kept = 0
        try:
            self._cache.initialize()
            for path in self._cache.list_paths():
                if path in current_paths:
                    kept += 1
                else:
                    self._cache.remove(path)
                    cleaned += 1
        except CacheStoreError as exc:
            logger.warning("Failed to optimize embedding cache: %s", exc)

        if cleaned:
            logger.info("Embedding cache optimized: %d removed, %d kept", cleaned, kept)
        return CacheOptimization(cleaned=cleaned, kept=kept)

    def rebuild_cache(self) -> bool:
        """Drop every cached and in-memory embedding and generate them again."""
        logger.info("Rebuilding embedding cache from scratch")
        self.clear_cache()
        with self._embedding_lock:
            for doc in self._docs:
                doc.embedding = None
                doc.metadata = extract_metadata(doc)
            if self._state is not EngineState.UNINITIALIZED:
                self._state = EngineState.LOADED
        with self._hints_lock:
            self._basic_hints = None
        return self.try_generate_embeddings()

    def cache_report(self) -> CacheReport:
        """Stats plus the most used cache rows."""
        stats = self.get_cache_stats()
        if self._cache is None:
            return CacheReport(stats=stats, available=False)
        try:
            top_used = self._cache.top_used(_TOP_USED_LIMIT)
        except CacheStoreError as exc:
            logger.warning("Failed to read most used cache entries: %s", exc)
            top_used = []
        return CacheReport(stats=stats, top_used=top_used)

    # ------------------------------------------------------------------
    # Background cache writes
    # ------------------------------------------------------------------

    def flush_pending_writes(self, timeout: float | None = None) -> int:
        """Wait for queued background cache writes; returns how many were waited on."""
        with self._pending_lock:
            pending, self._pending = self._pending, []
        if pending:
            wait(pending, timeout=timeout)
        return len(pending)

    def close(self) -> None:
        self.flush_pending_writes()
        if self._writer is not None:
            self._writer.shutdown(wait=True)
            self._writer = None

    def _submit_write(
        self, description: str, operation: Callable[..., Any], *args: Any
    ) -> Future[bool]:
        # Usage bumps and stale removals are best-effort: callers may ignore the future.
        with self._pending_lock:
            if self._writer is None:
                self._writer = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="example-repo-cache"
                )
            future = self._writer.submit(self._run_write, description, operation, *args)
            self._pending.append(future)
        return future

    @staticmethod
    def _run_write(description: str, operation: Callable[..., Any], *args: Any) -> bool:
        try:
            operation(*args)
        except CacheStoreError as exc:
            logger.warning("Failed to %s: %s", description, exc)
            return False
        return True

    def _entry_is_valid(self, entry: CacheEntry, current_hash: str) -> bool:
        return (
            self._cache is not None
            and entry.content_hash == current_hash
            and entry.cache_version == self._cache.version
            and bool(entry.embedding)
        )
