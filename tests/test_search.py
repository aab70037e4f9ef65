"""Tests for similarity scoring and ranking helpers."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from example_repo.models import ExampleDoc
from example_repo.search import (
    SearchOptions,
    SearchResult,
    combined_score,
    cosine_similarity,
    lexical_rank,
    rank_results,
    token_overlap,
    token_score,
    tokenize,
)


def _doc(path: str, content: str = "{}") -> ExampleDoc:
    return ExampleDoc(path=path, content=content)


# ---------------------------------------------------------------------------
# Cosine similarity
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("vector", [[1.0], [0.3, -2.0, 5.5], [1e-3] * 16])
def test_cosine_of_vector_with_itself_is_one(vector: list[float]) -> None:
    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_cosine_orthogonal_and_opposite() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


@pytest.mark.parametrize(
    ("a", "b"),
    [
        ([1.0, 2.0], [1.0, 2.0, 3.0]),
        ([], []),
        ([0.0, 0.0], [1.0, 1.0]),
        ([math.nan, 1.0], [1.0, 1.0]),
    ],
)
def test_cosine_degenerate_inputs_score_zero(a: list[float], b: list[float]) -> None:
    assert cosine_similarity(a, b) == 0.0


# ---------------------------------------------------------------------------
# Lexical scoring
# ---------------------------------------------------------------------------


def test_tokenize_lowercases_and_splits_on_punctuation() -> None:
    assert tokenize("SQL-Injection, guide!") == ["sql", "injection", "guide"]


def test_token_score_ignores_short_tokens() -> None:
    assert token_score(["ok", "the", "sql"], "sql injection guide") == 1


def test_token_score_matches_substrings() -> None:
    assert token_score(["phish"], "examples/phishing.json") == 1


def test_token_overlap_is_fraction_of_eligible_tokens() -> None:
    assert token_overlap(["ok", "sql", "xss"], "sql injection") == pytest.approx(0.5)
    assert token_overlap(["ok", "to"], "anything") == 0.0


def test_combined_score_blends_with_context_weight() -> None:
    options = SearchOptions(context_weight=0.7)

    assert combined_score(0.5, 1.0, options) == pytest.approx(0.65)
    assert combined_score(0.5, 1.0, SearchOptions(use_hybrid=False)) == 0.5


def test_search_options_validation() -> None:
    assert SearchOptions(threshold=1.01).threshold == 1.01
    with pytest.raises(ValidationError):
        SearchOptions(context_weight=1.5)
    with pytest.raises(ValidationError):
        SearchOptions(max_results=0)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def test_rank_results_filters_sorts_and_truncates() -> None:
    results = [
        SearchResult(doc=_doc("a"), score=0.2),
        SearchResult(doc=_doc("b"), score=0.9),
        SearchResult(doc=_doc("c"), score=0.05),
        SearchResult(doc=_doc("d"), score=0.5),
    ]

    ranked = rank_results(results, threshold=0.1, limit=2)

    assert [result.doc.path for result in ranked] == ["b", "d"]


def test_rank_results_with_unreachable_threshold_is_empty() -> None:
    results = [SearchResult(doc=_doc("a"), score=1.0)]

    assert rank_results(results, threshold=1.01, limit=3) == []


def test_lexical_rank_orders_by_overlap_and_drops_zero_scores() -> None:
    docs = [
        _doc("examples/password.json", '{"title": "password manager"}'),
        _doc("examples/phishing.json", '{"title": "phishing email quiz"}'),
        _doc("examples/quiz.json", '{"title": "phishing quiz"}'),
    ]

    ranked = lexical_rank(docs, "phishing quiz", 3)

    assert [result.doc.path for result in ranked] == [
        "examples/phishing.json",
        "examples/quiz.json",
    ]
    assert ranked[0].score == 2.0


def test_lexical_rank_empty_inputs() -> None:
    assert lexical_rank([], "phishing", 3) == []
    assert lexical_rank([_doc("a", "phishing")], "", 3) == []
