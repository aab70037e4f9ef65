"""
Metadata and semantic-content extraction for reference documents.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from pathlib import PurePosixPath

from ..index_config import COMPLEXITY_MAX, COMPLEXITY_MIN
from ..models import DocMetadata, ExampleDoc, TrainingStructure, parse_training_structure

logger = logging.getLogger(__name__)

_FALLBACK_PREVIEW_CHARS = 500
_SCENE_WEIGHT = 0.1
_QUIZ_QUESTION_WEIGHT = 0.2


def content_hash(content: str) -> str:
    """Digest used to decide whether a cached embedding still matches *content*."""
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def extract_semantic_content(doc: ExampleDoc) -> str:
    """Reduce a document to the structural text worth embedding.

    Titles, categories, relevance lists, scene objectives and evidence
    keywords are kept; body copy is dropped. Documents that do not parse
    fall back to their path plus a content preview.
    """
    parsed = parse_training_structure(doc.content)
    if parsed.structure is None:
        logger.warning(
            "Failed to extract semantic text from %s, using fallback: %s",
            doc.path,
            parsed.error,
        )
        return f"{doc.path} {doc.content[:_FALLBACK_PREVIEW_CHARS]}"

    structure = parsed.structure
    parts: list[str] = []

    meta = structure.microlearning_metadata
    if meta is not None:
        parts.append(meta.title or "")
        parts.append(meta.category or "")
        parts.append(meta.subcategory or "")
        parts.append(" ".join(meta.industry_relevance))
        parts.append(" ".join(meta.department_relevance))

    for scene in structure.scenes:
        if scene.metadata is not None:
            parts.append(scene.metadata.scene_type or "")
            parts.append(scene.metadata.learning_objective or "")

    evidence = structure.scientific_evidence
    if evidence is not None:
        parts.append(" ".join(t.theory for t in evidence.learning_theories if t.theory))
        parts.append(
            " ".join(p.principle for p in evidence.behavioral_psychology if p.principle)
        )

    return " ".join(part for part in parts if part)


def extract_metadata(doc: ExampleDoc) -> DocMetadata:
    parsed = parse_training_structure(doc.content)
    now = datetime.now(timezone.utc)
    if parsed.structure is None:
        return DocMetadata(
            category="unknown",
            topics=[PurePosixPath(doc.path).stem],
            complexity=COMPLEXITY_MIN,
            last_updated=now,
        )

    meta = parsed.structure.microlearning_metadata
    if meta is None:
        topics: list[str] = []
        category = "unknown"
    else:
        candidates = [
            meta.category,
            meta.subcategory,
            *meta.industry_relevance,
            *meta.department_relevance,
        ]
        topics = [topic for topic in candidates if topic]
        category = meta.category or "unknown"

    return DocMetadata(
        category=category,
        topics=topics,
        complexity=calculate_complexity(parsed.structure),
        last_updated=now,
    )


def calculate_complexity(structure: TrainingStructure) -> float:
    """Score 1-5 from scene count and quiz question count."""
    complexity = 1.0 + len(structure.scenes) * _SCENE_WEIGHT
    for scene in structure.scenes:
        if scene.metadata is not None and scene.metadata.scene_type == "quiz" and scene.questions:
            complexity += len(scene.questions) * _QUIZ_QUESTION_WEIGHT
    return min(max(complexity, COMPLEXITY_MIN), COMPLEXITY_MAX)
