"""
Scoring and ranking helpers for semantic, lexical and hybrid retrieval.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import BaseModel, Field

from ..models import ExampleDoc

_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+", flags=re.IGNORECASE)
_MIN_TOKEN_LENGTH = 3


class SearchOptions(BaseModel):
    """Tuning for one semantic search call."""

    # 1.01 is allowed so callers can ask for a threshold nothing can reach.
    threshold: float = Field(default=0.1, ge=0.0, le=1.01)
    use_hybrid: bool = True
    context_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    max_results: int | None = Field(default=None, gt=0)


@dataclass(frozen=True)
class SearchResult:
    """Scored candidate; ``score`` is what results are ordered by.

    ``token_score`` is the raw match count for lexical results and the
    matched-token fraction for hybrid results, i.e. the value blended into
    ``score``.
    """

    doc: ExampleDoc
    score: float
    similarity: float = 0.0
    token_score: float = 0.0


def tokenize(text: str) -> list[str]:
    return [token for token in _TOKEN_SPLIT_RE.split(text.lower()) if token]


def document_text(doc: ExampleDoc) -> str:
    return f"{doc.path} {doc.content}".lower()


def token_score(query_tokens: list[str], text: str) -> int:
    """Count query tokens of length >= 3 that occur as substrings of *text*."""
    haystack = text.lower()
    return sum(
        1
        for token in query_tokens
        if len(token) >= _MIN_TOKEN_LENGTH and token.lower() in haystack
    )


def token_overlap(query_tokens: list[str], text: str) -> float:
    """Fraction of eligible query tokens found in *text*, in [0, 1]."""
    eligible = [token for token in query_tokens if len(token) >= _MIN_TOKEN_LENGTH]
    if not eligible:
        return 0.0
    return token_score(eligible, text) / len(eligible)


def combined_score(similarity: float, lexical: float, options: SearchOptions) -> float:
    if not options.use_hybrid:
        return similarity
    weight = options.context_weight
    return similarity * weight + lexical * (1 - weight)


def rank_results(
    results: list[SearchResult], *, threshold: float, limit: int
) -> list[SearchResult]:
    """Keep results scoring at least *threshold*, best first, at most *limit*."""
    kept = [result for result in results if result.score >= threshold]
    kept.sort(key=lambda result: -result.score)
    return kept[: max(limit, 0)]


def lexical_rank(docs: list[ExampleDoc], query: str, k: int) -> list[SearchResult]:
    """Rank documents by token overlap with *query*, dropping zero scores."""
    if not docs or not query:
        return []
    query_tokens = tokenize(query)
    scored: list[SearchResult] = []
    for doc in docs:
        lexical = float(token_score(query_tokens, document_text(doc)))
        if lexical > 0:
            scored.append(SearchResult(doc=doc, score=lexical, token_score=lexical))
    scored.sort(key=lambda result: -result.score)
    return scored[: max(k, 0)]
