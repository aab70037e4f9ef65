"""
Schema hints: structural summaries of reference documents for generators.

Hints list key names, scene types and derived metadata, never document text,
so a generator can follow the structure without copying content.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

from ..models import ExampleDoc, parse_training_structure

logger = logging.getLogger(__name__)

_COMPLEX_QUERY_MIN_LENGTH = 50
_COMPLEX_QUERY_RE = re.compile(r"advanced|specific|detailed|custom")


class HintSource(Protocol):
    """What ``collect_schema_hints`` needs from a repository."""

    def get_smart_schema_hints(
        self, query: str | None = None, max_files: int = 3
    ) -> str: ...

    def get_schema_hints(self, max_files: int = 3) -> str: ...


def is_complex_query(query: str | None) -> bool:
    """Long or detail-seeking prompts justify a targeted search."""
    if not query:
        return False
    return len(query) > _COMPLEX_QUERY_MIN_LENGTH or bool(
        _COMPLEX_QUERY_RE.search(query.lower())
    )


def diversity_sample(docs: list[ExampleDoc], max_files: int) -> list[ExampleDoc]:
    """Pick one document per category first, then fill remaining slots in corpus order."""
    if max_files <= 0:
        return []
    if len(docs) <= max_files:
        return list(docs)

    by_category: dict[str, list[ExampleDoc]] = {}
    for doc in docs:
        category = doc.metadata.category if doc.metadata else "unknown"
        by_category.setdefault(category, []).append(doc)

    selected: list[ExampleDoc] = []
    for members in by_category.values():
        if len(selected) >= max_files:
            break
        selected.append(members[0])

    for doc in docs:
        if len(selected) >= max_files:
            break
        if not any(doc is chosen for chosen in selected):
            selected.append(doc)

    return selected[:max_files]


def _structure_lines(raw: dict[str, Any]) -> list[str]:
    metadata_block = raw.get("microlearning_metadata")
    meta_keys = list(metadata_block) if isinstance(metadata_block, dict) else []

    scenes = raw.get("scenes")
    scene_types: list[str] = []
    scene_meta_keys: list[str] = []
    for scene in scenes if isinstance(scenes, list) else []:
        scene_meta = scene.get("metadata") if isinstance(scene, dict) else None
        if not isinstance(scene_meta, dict):
            continue
        for key in scene_meta:
            if key not in scene_meta_keys:
                scene_meta_keys.append(key)
        scene_type = scene_meta.get("scene_type")
        if scene_type and str(scene_type) not in scene_types:
            scene_types.append(str(scene_type))

    return [
        f"Top-level keys: {', '.join(raw)}",
        f"Metadata keys: {', '.join(meta_keys)}",
        f"Scene types: {', '.join(scene_types)}",
        f"Scene metadata keys: {', '.join(scene_meta_keys)}",
    ]


def format_doc_hint(doc: ExampleDoc, *, include_metadata: bool = True) -> str:
    parsed = parse_training_structure(doc.content)
    if parsed.raw is None:
        logger.warning("Failed to parse schema from %s: %s", doc.path, parsed.error)
        return f"File: {doc.path}\n(Invalid JSON, skipped)"

    lines = [f"File: {doc.path}", *_structure_lines(parsed.raw)]
    if include_metadata and doc.metadata is not None:
        lines.append(f"Category: {doc.metadata.category}")
        lines.append(f"Topics: {', '.join(doc.metadata.topics)}")
        lines.append(f"Complexity: {doc.metadata.complexity:g}/5")
    return "\n".join(lines)


def format_schema_hints(
    docs: list[ExampleDoc], *, include_metadata: bool = True
) -> str:
    return "\n\n".join(
        format_doc_hint(doc, include_metadata=include_metadata) for doc in docs
    )


def collect_schema_hints(
    repository: HintSource, prompt: str | None, max_files: int = 3
) -> str:
    """Targeted hints, falling back to diversity sampling, then cached basic hints."""
    try:
        return repository.get_smart_schema_hints(prompt, max_files)
    except Exception as exc:
        logger.warning("Targeted schema hints unavailable, trying sampling: %s", exc)

    try:
        return repository.get_smart_schema_hints(None, max_files)
    except Exception as exc:
        logger.warning("Sampled schema hints failed, using basic hints: %s", exc)

    try:
        return repository.get_schema_hints(max_files)
    except Exception as exc:
        logger.warning("Basic schema hints failed: %s", exc)
        return ""
