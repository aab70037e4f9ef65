"""
Embedding generation pass over the loaded corpus.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .metadata import extract_metadata, extract_semantic_content
from ..embeddings import Embedder
from ..models import ExampleDoc

logger = logging.getLogger(__name__)


class EmbeddingGenerationError(RuntimeError):
    """Raised when a generation pass is abandoned after too many provider failures."""


@dataclass(frozen=True)
class FailurePolicy:
    """Abort once failures outnumber successes and exceed ``max_failures``."""

    max_failures: int = 2

    def should_abort(self, *, failed: int, succeeded: int) -> bool:
        return failed > succeeded and failed > self.max_failures


@dataclass(frozen=True)
class GenerationReport:
    """Summary output for one generation pass."""

    generated: int
    failed: int
    persisted: int
    skipped: int


class EmbeddingPipeline:
    """Embed documents that lack an embedding, one at a time."""

    def __init__(
        self,
        embedder: Embedder,
        *,
        failure_policy: FailurePolicy | None = None,
    ) -> None:
        self.embedder = embedder
        self.failure_policy = failure_policy or FailurePolicy()

    def run(
        self,
        documents: list[ExampleDoc],
        *,
        on_embedded: Callable[[ExampleDoc], bool] | None = None,
    ) -> GenerationReport:
        """Embed every document without an embedding.

        *on_embedded* is called right after each success, before the next
        document is processed, and returns whether the document was persisted.
        """
        pending = [doc for doc in documents if doc.embedding is None]
        skipped = len(documents) - len(pending)
        if not pending:
            logger.info("All %d embeddings already cached", len(documents))
            return GenerationReport(generated=0, failed=0, persisted=0, skipped=skipped)

        logger.info(
            "Generating embeddings for %d/%d documents", len(pending), len(documents)
        )
        succeeded = 0
        failed = 0
        persisted = 0
        for doc in pending:
            try:
                embedding = self.embedder.embed_document(extract_semantic_content(doc))
            except Exception as exc:
                failed += 1
                logger.warning("Failed to generate embedding for %s: %s", doc.path, exc)
                if self.failure_policy.should_abort(failed=failed, succeeded=succeeded):
                    raise EmbeddingGenerationError(
                        f"Embedding generation failed for {failed} documents "
                        f"({succeeded} succeeded)"
                    ) from exc
                continue

            doc.embedding = embedding
            doc.metadata = extract_metadata(doc)
            succeeded += 1
            if on_embedded is not None and on_embedded(doc):
                persisted += 1

        logger.info(
            "Embeddings completed: %d new, %d failed, %d cached",
            succeeded,
            failed,
            persisted,
        )
        return GenerationReport(
            generated=succeeded, failed=failed, persisted=persisted, skipped=skipped
        )
