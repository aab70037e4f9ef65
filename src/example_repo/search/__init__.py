"""Search helpers for the example corpus."""

from .hints import (
    collect_schema_hints,
    diversity_sample,
    format_schema_hints,
    is_complex_query,
)
from .ranker import (
    SearchOptions,
    SearchResult,
    combined_score,
    document_text,
    lexical_rank,
    rank_results,
    token_overlap,
    token_score,
    tokenize,
)
from .semantic import cosine_similarity

__all__ = [
    "collect_schema_hints",
    "diversity_sample",
    "format_schema_hints",
    "is_complex_query",
    "SearchOptions",
    "SearchResult",
    "combined_score",
    "document_text",
    "lexical_rank",
    "rank_results",
    "token_overlap",
    "token_score",
    "tokenize",
    "cosine_similarity",
]
