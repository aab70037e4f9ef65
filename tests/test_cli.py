"""CLI tests for search, hints and cache administration commands."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

import example_repo.main as main_module
from example_repo.index_config import EngineSettings
from example_repo.repository import ExampleRepository

from .conftest import FailingEmbedder, KeywordEmbedder


@pytest.fixture
def fake_provider(monkeypatch):
    """Build engines with an offline embedder instead of Google GenAI."""
    holder: dict[str, object] = {"embedder_cls": KeywordEmbedder}

    def fake_build_repository(examples_dir, database):  # noqa: ANN001, ANN202
        return ExampleRepository(
            examples_dir=examples_dir,
            database=database,
            embedder=holder["embedder_cls"](),
            settings=EngineSettings(embedding_dim=4),
        )

    monkeypatch.setattr(main_module, "build_repository", fake_build_repository)
    return holder


def _args(corpus_dir: Path, db_path: Path) -> list[str]:
    return ["--examples-dir", str(corpus_dir), "--db-path", str(db_path)]


def test_search_command_renders_ranked_results(
    corpus_dir: Path, tmp_path: Path, fake_provider
) -> None:
    runner = CliRunner()

    result = runner.invoke(
        main_module.app,
        ["search", "phishing", *_args(corpus_dir, tmp_path / "cache.duckdb")],
    )

    assert result.exit_code == 0
    assert "examples/phishing.json" in result.stdout
    assert "mode: ready" in result.stdout
    assert "password.json" not in result.stdout


def test_search_command_lexical_mode(corpus_dir: Path, tmp_path: Path, fake_provider) -> None:
    runner = CliRunner()

    result = runner.invoke(
        main_module.app,
        ["search", "ransomware", "--lexical", *_args(corpus_dir, tmp_path / "cache.duckdb")],
    )

    assert result.exit_code == 0
    assert "examples/ransomware.json" in result.stdout
    assert "mode: lexical" in result.stdout


def test_search_command_with_unreachable_threshold(
    corpus_dir: Path, tmp_path: Path, fake_provider
) -> None:
    runner = CliRunner()

    result = runner.invoke(
        main_module.app,
        [
            "search",
            "phishing",
            "--threshold",
            "1.01",
            *_args(corpus_dir, tmp_path / "cache.duckdb"),
        ],
    )

    assert result.exit_code == 0
    assert "No matching examples" in result.stdout


def test_hints_command_prints_schema_hints(
    corpus_dir: Path, tmp_path: Path, fake_provider
) -> None:
    runner = CliRunner()

    result = runner.invoke(
        main_module.app,
        ["hints", "--max-files", "2", *_args(corpus_dir, tmp_path / "cache.duckdb")],
    )

    assert result.exit_code == 0
    assert "Schema hints" in result.stdout
    assert "File: examples/password.json" in result.stdout


def test_cache_commands_round_trip(corpus_dir: Path, tmp_path: Path, fake_provider) -> None:
    runner = CliRunner()
    args = _args(corpus_dir, tmp_path / "cache.duckdb")

    rebuild = runner.invoke(main_module.app, ["cache", "rebuild", *args])
    assert rebuild.exit_code == 0
    assert "Rebuilt embeddings for 3 examples" in rebuild.stdout

    stats = runner.invoke(main_module.app, ["--verbose", "cache", "stats", *args])
    assert stats.exit_code == 0
    assert "Entries" in stats.stdout
    assert "3" in stats.stdout

    validate = runner.invoke(main_module.app, ["cache", "validate", *args])
    assert validate.exit_code == 0
    assert "valid 3" in validate.stdout

    optimize = runner.invoke(main_module.app, ["cache", "optimize", *args])
    assert optimize.exit_code == 0
    assert "Removed 0 entries, kept 3" in optimize.stdout

    report = runner.invoke(main_module.app, ["cache", "report", *args])
    assert report.exit_code == 0
    assert "Most used entries" in report.stdout

    clear = runner.invoke(main_module.app, ["cache", "clear", *args])
    assert clear.exit_code == 0
    assert "Embedding cache cleared" in clear.stdout

    validate_after = runner.invoke(main_module.app, ["cache", "validate", *args])
    assert "missing 3" in validate_after.stdout


def test_cache_rebuild_fails_when_provider_fails(
    corpus_dir: Path, tmp_path: Path, fake_provider
) -> None:
    fake_provider["embedder_cls"] = FailingEmbedder
    runner = CliRunner()

    result = runner.invoke(
        main_module.app,
        ["cache", "rebuild", *_args(corpus_dir, tmp_path / "cache.duckdb")],
    )

    assert result.exit_code == 1
    assert "Embedding generation failed" in result.stdout
