import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from typer import Argument, Exit, Option, Typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .index_config import EngineSettings, resolve_db_path
from .repository import ExampleRepository
from .search import SearchOptions, collect_schema_hints
from .storage import CacheStoreError, DuckDBDatabase

logger = logging.getLogger(__name__)

app = Typer(help="Search reference examples and maintain their embedding cache.")
cache_app = Typer(help="Inspect and maintain the embedding cache.")
app.add_typer(cache_app, name="cache")

console = Console()

ExamplesDirOption = Annotated[
    str | None,
    Option("--examples-dir", "-e", help="Directory holding the reference examples."),
]
DbPathOption = Annotated[
    str | None,
    Option("--db-path", help="Path to the DuckDB cache database."),
]


def open_database(db_path: str | None) -> DuckDBDatabase | None:
    """Open the DuckDB cache; None means the engine runs without persistence."""
    try:
        return DuckDBDatabase(resolve_db_path(db_path))
    except CacheStoreError as exc:
        logger.warning("Running without embedding cache: %s", exc)
        return None


def build_repository(
    examples_dir: str | None, database: DuckDBDatabase | None
) -> ExampleRepository:
    return ExampleRepository(
        examples_dir=examples_dir,
        database=database,
        settings=EngineSettings.from_env(),
    )


@contextmanager
def open_repository(
    examples_dir: str | None, db_path: str | None
) -> Iterator[ExampleRepository]:
    database = open_database(db_path)
    repository = build_repository(examples_dir, database)
    try:
        repository.load_once()
        yield repository
    finally:
        repository.close()
        if database is not None:
            database.close()


@app.callback()
def main(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Log engine activity to stderr.")
    ] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def search(
    query: Annotated[str, Argument(help="Free-text query.")],
    k: Annotated[int, Option("--k", "-k", min=1, help="Maximum number of results.")] = 3,
    threshold: Annotated[
        float | None, Option("--threshold", help="Minimum combined score.")
    ] = None,
    lexical: Annotated[
        bool, Option("--lexical", help="Rank by token overlap only.")
    ] = False,
    examples_dir: ExamplesDirOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Rank reference examples for QUERY."""
    with open_repository(examples_dir, db_path) as repository:
        if lexical:
            docs = repository.search_top_k_lexical(query, k)
            rows = [
                (doc.path, "-", doc.metadata.category if doc.metadata else "-")
                for doc in docs
            ]
        else:
            options = repository.default_search_options()
            if threshold is not None:
                options = SearchOptions(**{**options.model_dump(), "threshold": threshold})
            results = repository.search(query, k, options)
            rows = [
                (
                    result.doc.path,
                    f"{result.score:.3f}",
                    result.doc.metadata.category if result.doc.metadata else "-",
                )
                for result in results
            ]
        mode = "lexical" if lexical else repository.state.value

    if not rows:
        console.print(f"[yellow]No matching examples[/] (mode: {mode})")
        return

    table = Table(title=f"Results for {query!r} (mode: {mode})")
    table.add_column("Path")
    table.add_column("Score", justify="right")
    table.add_column("Category")
    for row in rows:
        table.add_row(*row)
    console.print(table)


@app.command()
def hints(
    query: Annotated[
        str | None, Argument(help="Optional prompt used to pick targeted examples.")
    ] = None,
    max_files: Annotated[
        int, Option("--max-files", "-n", min=1, help="Number of examples to summarize.")
    ] = 3,
    examples_dir: ExamplesDirOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Print schema hints for the reference examples."""
    with open_repository(examples_dir, db_path) as repository:
        text = collect_schema_hints(repository, query, max_files)

    if not text:
        console.print("[yellow]No schema hints available[/]")
        return
    console.print(
        Panel(text, title="Schema hints", title_align="left", border_style="bold cyan")
    )


@cache_app.command("stats")
def cache_stats(
    examples_dir: ExamplesDirOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Show cache size and usage totals."""
    with open_repository(examples_dir, db_path) as repository:
        stats = repository.get_cache_stats()

    table = Table(title="Embedding cache")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Entries", str(stats.total_entries))
    table.add_row("Size", stats.cache_size)
    table.add_row("Total usage", str(stats.total_usage))
    table.add_row("Oldest entry", str(stats.oldest_entry or "-"))
    table.add_row("Newest entry", str(stats.newest_entry or "-"))
    console.print(table)


@cache_app.command("validate")
def cache_validate(
    examples_dir: ExamplesDirOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Compare cache rows against the current example contents."""
    with open_repository(examples_dir, db_path) as repository:
        validation = repository.validate_cache()

    console.print(
        f"[bold green]valid[/] {validation.valid}  "
        f"[bold red]stale[/] {validation.invalid}  "
        f"[bold yellow]missing[/] {validation.missing}"
    )
    for detail in validation.details:
        console.print(f"  {detail}")


@cache_app.command("optimize")
def cache_optimize(
    examples_dir: ExamplesDirOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Remove cache rows for examples that no longer exist."""
    with open_repository(examples_dir, db_path) as repository:
        result = repository.optimize_cache()
    console.print(f"Removed {result.cleaned} entries, kept {result.kept}")


@cache_app.command("clear")
def cache_clear(
    examples_dir: ExamplesDirOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Delete every cache row."""
    with open_repository(examples_dir, db_path) as repository:
        cleared = repository.clear_cache()
    if not cleared:
        console.print("[bold red]Embedding cache could not be cleared[/]")
        raise Exit(code=1)
    console.print("[bold green]Embedding cache cleared[/]")


@cache_app.command("rebuild")
def cache_rebuild(
    examples_dir: ExamplesDirOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Clear the cache and embed every example again."""
    with open_repository(examples_dir, db_path) as repository:
        rebuilt = repository.rebuild_cache()
        count = sum(1 for doc in repository.documents if doc.embedding is not None)
    if not rebuilt:
        console.print("[bold red]Embedding generation failed, cache left empty[/]")
        raise Exit(code=1)
    console.print(f"[bold green]Rebuilt embeddings for {count} examples[/]")


@cache_app.command("report")
def cache_report(
    examples_dir: ExamplesDirOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Show stats plus the most used cache rows."""
    with open_repository(examples_dir, db_path) as repository:
        report = repository.cache_report()

    if not report.available:
        console.print("[yellow]Cache database not available[/]")
        return

    stats = report.stats
    console.print(
        Panel(
            f"Entries: {stats.total_entries}\n"
            f"Size: {stats.cache_size}\n"
            f"Total usage: {stats.total_usage}",
            title="Embedding cache report",
            title_align="left",
            border_style="bold green",
        )
    )
    table = Table(title="Most used entries")
    table.add_column("Path")
    table.add_column("Uses", justify="right")
    table.add_column("Last used")
    for usage in report.top_used:
        table.add_row(usage.path, str(usage.usage_count), str(usage.last_used or "-"))
    console.print(table)
