"""Corpus loading and embedding generation for the example repository."""

from .loader import CorpusLoader, LoadReport
from .metadata import (
    calculate_complexity,
    content_hash,
    extract_metadata,
    extract_semantic_content,
)
from .pipeline import (
    EmbeddingGenerationError,
    EmbeddingPipeline,
    FailurePolicy,
    GenerationReport,
)

__all__ = [
    "CorpusLoader",
    "LoadReport",
    "calculate_complexity",
    "content_hash",
    "extract_metadata",
    "extract_semantic_content",
    "EmbeddingGenerationError",
    "EmbeddingPipeline",
    "FailurePolicy",
    "GenerationReport",
]
