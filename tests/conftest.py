from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from example_repo.index_config import EngineSettings
from example_repo.search import tokenize


# ---------------------------------------------------------------------------
# Reference documents
# ---------------------------------------------------------------------------


def training_structure(
    title: str,
    category: str,
    *,
    subcategory: str | None = None,
    industries: list[str] | None = None,
    scene_types: list[str] | None = None,
    quiz_questions: int = 0,
) -> dict[str, Any]:
    scenes: list[dict[str, Any]] = []
    for scene_type in scene_types or ["intro"]:
        scene: dict[str, Any] = {
            "metadata": {
                "scene_type": scene_type,
                "learning_objective": f"{title} {scene_type} objective",
            }
        }
        if scene_type == "quiz":
            scene["questions"] = [{"q": f"question {i}"} for i in range(quiz_questions)]
        scenes.append(scene)
    return {
        "microlearning_metadata": {
            "title": title,
            "category": category,
            "subcategory": subcategory,
            "industry_relevance": industries or [],
            "department_relevance": [],
        },
        "scenes": scenes,
        "scientific_evidence": {
            "learning_theories": [{"theory": "spaced repetition"}],
            "behavioral_psychology": [{"principle": "nudging"}],
        },
    }


def write_corpus(root: Path, documents: dict[str, Any]) -> Path:
    """Write *documents* (filename -> JSON object or raw text) under ``root/examples``."""
    corpus = root / "examples"
    corpus.mkdir(parents=True, exist_ok=True)
    for name, payload in documents.items():
        text = payload if isinstance(payload, str) else json.dumps(payload)
        (corpus / name).write_text(text, encoding="utf-8")
    return corpus


@pytest.fixture
def corpus_dir(tmp_path: Path) -> Path:
    return write_corpus(
        tmp_path,
        {
            "phishing.json": training_structure(
                "Phishing awareness", "THREAT", scene_types=["intro", "quiz"], quiz_questions=3
            ),
            "password.json": training_structure("Password manager basics", "TOOL"),
            "ransomware.json": training_structure("Ransomware response", "THREAT"),
        },
    )


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(embedding_dim=4)


# ---------------------------------------------------------------------------
# Fake embedders
# ---------------------------------------------------------------------------


KEYWORDS = ("phishing", "password", "ransomware", "quiz")


class KeywordEmbedder:
    """Deterministic embeddings: one dimension per known keyword."""

    def __init__(self, keywords: tuple[str, ...] = KEYWORDS) -> None:
        self.keywords = keywords
        self.document_calls: list[str] = []
        self.query_calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        tokens = tokenize(text)
        return [float(sum(1 for token in tokens if token == kw)) for kw in self.keywords]

    def embed_document(self, text: str) -> list[float]:
        self.document_calls.append(text)
        return self._vector(text)

    def embed_query(self, query: str) -> list[float]:
        self.query_calls.append(query)
        return self._vector(query)


class FailingEmbedder:
    """Raises on every call and counts how often it was asked."""

    def __init__(self) -> None:
        self.calls = 0

    def embed_document(self, text: str) -> list[float]:
        self.calls += 1
        raise RuntimeError("embedding service unavailable")

    def embed_query(self, query: str) -> list[float]:
        self.calls += 1
        raise RuntimeError("embedding service unavailable")


class FlakyQueryEmbedder(KeywordEmbedder):
    """Embeds documents but fails every query."""

    def embed_query(self, query: str) -> list[float]:
        self.query_calls.append(query)
        raise RuntimeError("query embedding failed")


@pytest.fixture
def keyword_embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def failing_embedder() -> FailingEmbedder:
    return FailingEmbedder()
