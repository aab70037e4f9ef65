"""
Configuration helpers for the example repository and its embedding cache.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_DB_PATH = "~/.example_repo/cache.duckdb"
ENV_DB_PATH = "EXAMPLE_REPO_DB_PATH"

DEFAULT_EXAMPLES_DIR = "examples"
ENV_EXAMPLES_DIR = "EXAMPLE_REPO_EXAMPLES_DIR"

CACHE_TABLE_NAME = "embedding_cache"
DEFAULT_CACHE_VERSION = "1.0.0"

COMPLEXITY_MIN = 1.0
COMPLEXITY_MAX = 5.0

_TRUE_VALUES = {"1", "true", "yes", "on"}


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the cache database path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) EXAMPLE_REPO_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    if raw_path == ":memory:":
        return raw_path
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def resolve_examples_dir(override_dir: str | None = None) -> str:
    """Resolve the reference examples directory (not required to exist)."""
    raw_dir = override_dir or os.getenv(ENV_EXAMPLES_DIR) or DEFAULT_EXAMPLES_DIR
    return str(Path(raw_dir).expanduser().resolve())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


@dataclass(frozen=True)
class EngineSettings:
    """Tunable knobs for an ``ExampleRepository`` instance."""

    load_examples: bool = True
    max_examples: int = 5
    max_hint_files: int = 3
    cache_version: str = DEFAULT_CACHE_VERSION
    max_embedding_failures: int = 2
    embedding_dim: int = 768
    search_threshold: float = 0.1
    use_hybrid: bool = True
    context_weight: float = 0.7

    @classmethod
    def from_env(cls) -> EngineSettings:
        """Build settings from ``EXAMPLE_REPO_*`` environment variables."""
        defaults = cls()
        return cls(
            load_examples=_env_bool("EXAMPLE_REPO_LOAD_EXAMPLES", defaults.load_examples),
            max_examples=_env_int("EXAMPLE_REPO_MAX_EXAMPLES", defaults.max_examples),
            max_hint_files=_env_int("EXAMPLE_REPO_MAX_HINT_FILES", defaults.max_hint_files),
            cache_version=os.getenv("EXAMPLE_REPO_CACHE_VERSION") or defaults.cache_version,
            max_embedding_failures=_env_int(
                "EXAMPLE_REPO_MAX_EMBEDDING_FAILURES", defaults.max_embedding_failures
            ),
            embedding_dim=_env_int("EXAMPLE_REPO_EMBEDDING_DIM", defaults.embedding_dim),
            search_threshold=_env_float(
                "EXAMPLE_REPO_SEARCH_THRESHOLD", defaults.search_threshold
            ),
            use_hybrid=_env_bool("EXAMPLE_REPO_USE_HYBRID", defaults.use_hybrid),
            context_weight=_env_float(
                "EXAMPLE_REPO_CONTEXT_WEIGHT", defaults.context_weight
            ),
        )
