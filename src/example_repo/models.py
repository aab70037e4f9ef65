"""
Document and reference-structure models.

``TrainingStructure`` is a deliberately lenient view of a microlearning
training-structure JSON file: only the fields used for metadata, semantic
content and schema hints are typed, everything else passes through.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow")


class TrainingMetadata(_Lenient):
    """The ``microlearning_metadata`` block of a training structure."""

    title: str | None = None
    category: str | None = None
    subcategory: str | None = None
    industry_relevance: list[str] = Field(default_factory=list)
    department_relevance: list[str] = Field(default_factory=list)


class SceneMetadata(_Lenient):
    """Per-scene metadata (type and learning objective)."""

    scene_type: str | None = None
    learning_objective: str | None = None


class Scene(_Lenient):
    metadata: SceneMetadata | None = None
    questions: list[Any] | None = None


class LearningTheory(_Lenient):
    theory: str | None = None


class BehavioralPrinciple(_Lenient):
    principle: str | None = None


class ScientificEvidence(_Lenient):
    learning_theories: list[LearningTheory] = Field(default_factory=list)
    behavioral_psychology: list[BehavioralPrinciple] = Field(default_factory=list)


class TrainingStructure(_Lenient):
    """Typed projection of a reference training-structure document."""

    microlearning_metadata: TrainingMetadata | None = None
    scenes: list[Scene] = Field(default_factory=list)
    scientific_evidence: ScientificEvidence | None = None


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing a reference document; exactly one of structure/error is set.

    ``raw`` holds the decoded top-level JSON object whenever the content was a
    JSON object, even if it did not validate as a ``TrainingStructure``.
    """

    structure: TrainingStructure | None = None
    error: str | None = None
    raw: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.structure is not None


def parse_training_structure(content: str) -> ParseResult:
    """Parse *content* as a training structure without raising."""
    try:
        decoded = json.loads(content)
    except ValueError as exc:
        return ParseResult(error=f"Invalid JSON: {exc}")

    if not isinstance(decoded, dict):
        return ParseResult(
            error=f"Expected a JSON object, got {type(decoded).__name__}"
        )

    try:
        structure = TrainingStructure.model_validate(decoded)
    except ValidationError as exc:
        return ParseResult(
            error=f"Unexpected document structure: {exc.error_count()} validation error(s)",
            raw=decoded,
        )
    return ParseResult(structure=structure, raw=decoded)


class DocMetadata(BaseModel):
    """Derived metadata stored alongside a document's embedding."""

    category: str = "unknown"
    topics: list[str] = Field(default_factory=list)
    complexity: float = 1.0
    last_updated: datetime


@dataclass
class ExampleDoc:
    """A reference document; ``path`` is its identity in the corpus and the cache."""

    path: str
    content: str
    embedding: list[float] | None = None
    metadata: DocMetadata | None = None
