"""Command line interface for breachsearch."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from breachsearch.config import AppConfig
from breachsearch.errors import InvalidQueryError, SearchUnavailableError
from breachsearch.index.elastic import ElasticsearchIndexClient
from breachsearch.index.shards import shard_set
from breachsearch.ingestion.loader import import_records
from breachsearch.masking import masking_description
from breachsearch.models import CallerContext, PlanTier
from breachsearch.query import SearchMode
from breachsearch.resolve.engine import ResolutionEngine
from breachsearch.resolve.repair import SyncRepairer
from breachsearch.source.storage import SQLiteRecordStore


console = Console()
app = typer.Typer(help="breachsearch - dual-store search over breach exposure records")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load_config(db: Optional[Path] = None, es_url: Optional[str] = None, prefix: Optional[str] = None) -> AppConfig:
    return AppConfig.from_env(db_path=db, elasticsearch_url=es_url, index_prefix=prefix)


def _open_store(config: AppConfig) -> SQLiteRecordStore:
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)
    return SQLiteRecordStore(resolved_db, timeout=config.store_timeout)


@app.command()
def search(
    query: str = typer.Argument(..., help="Login, email, domain or url to look up"),
    mode: SearchMode = typer.Option(SearchMode.AUTO, case_sensitive=False, help="Search mode"),
    plan: str = typer.Option(PlanTier.FREE.value, help="Caller plan tier (Free, Basic, Professional, Enterprise)"),
    page: int = typer.Option(0, help="Page number, starting at 0"),
    size: int = typer.Option(20, help="Page size (1-100)"),
    months_back: Optional[int] = typer.Option(None, help="Months of shards to search; 0 or less for all"),
    db: Path = typer.Option(None, "--db", help="Source store database path"),
    es_url: str = typer.Option(None, "--es-url", help="Elasticsearch URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Resolve a query against the index, falling back to the source store."""
    _setup_logging(verbose)
    config = _load_config(db, es_url)
    store = _open_store(config)
    index = ElasticsearchIndexClient.from_config(config)
    repairer = SyncRepairer.from_config(index, config)
    engine = ResolutionEngine(index, store, repairer=repairer, shard_prefix=config.index_prefix)
    tier = PlanTier.parse(plan)

    try:
        resolution = engine.resolve_page(
            {
                "query": query,
                "mode": mode,
                "page": page,
                "size": size,
                "months_back": config.default_months_back if months_back is None else months_back,
            },
            CallerContext(plan_tier=tier),
        )
    except InvalidQueryError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except SearchUnavailableError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc
    finally:
        repairer.close(wait=True, timeout=30)
        store.close()
        index.close()

    if not resolution.results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Login")
    table.add_column("Password")
    table.add_column("Domain")
    table.add_column("URL")
    table.add_column("Seen")

    for result in resolution.results:
        seen = result.timestamp or result.created_at
        table.add_row(
            result.login,
            result.password,
            result.domain or "",
            result.url[:80],
            seen.strftime("%Y-%m-%d") if seen else "",
        )

    console.print(table)
    console.print(
        f"Page {resolution.page} ({len(resolution.results)} of {resolution.total}) "
        f"answered by [bold]{resolution.source_store}[/bold]. {masking_description(tier)}"
    )


@app.command("import")
def import_command(
    inputs: List[Path] = typer.Argument(..., help="JSON Lines files with login/password/url records.", exists=True),
    db: Path = typer.Option(None, "--db", help="Source store database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Load records into the source store, deduplicating on login/password/url."""
    _setup_logging(verbose)
    config = _load_config(db)
    store = _open_store(config)
    console.print(f"Importing into [bold]{store.db_path}[/bold]...")
    try:
        stats = import_records(store, inputs)
    finally:
        store.close()
    console.print(
        f"Inserted: {stats.inserted}, updated: {stats.updated}, "
        f"skipped: {stats.skipped}, failed: {stats.failed}"
    )


@app.command()
def reindex(
    db: Path = typer.Option(None, "--db", help="Source store database path"),
    es_url: str = typer.Option(None, "--es-url", help="Elasticsearch URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Push every source record into its monthly shard."""
    _setup_logging(verbose)
    config = _load_config(db, es_url)
    store = _open_store(config)
    index = ElasticsearchIndexClient.from_config(config)
    repairer = SyncRepairer.from_config(index, config)
    try:
        for record in store.iter_records():
            repairer.repair_now(record)
    finally:
        store.close()
        index.close()
    console.print(f"Re-indexed: {repairer.stats.succeeded}, failed: {repairer.stats.failed}")


@app.command()
def health(
    db: Path = typer.Option(None, "--db", help="Source store database path"),
    es_url: str = typer.Option(None, "--es-url", help="Elasticsearch URL"),
) -> None:
    """Probe the search index and the source store."""
    config = _load_config(db, es_url)
    index = ElasticsearchIndexClient.from_config(config)
    try:
        healthy = index.is_healthy()
    finally:
        index.close()
    if healthy:
        console.print(f"Index at {config.elasticsearch_url}: [green]healthy[/green]")
    else:
        console.print(f"Index at {config.elasticsearch_url}: [red]degraded[/red] ({index.last_error})")

    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print(f"[yellow]Source store not found at {resolved_db}[/yellow]")
        raise typer.Exit(code=1)
    store = SQLiteRecordStore(resolved_db, timeout=config.store_timeout)
    try:
        console.print(f"Source store at {resolved_db}: {store.count()} records")
    finally:
        store.close()


@app.command()
def shards(
    months_back: int = typer.Option(AppConfig().default_months_back, help="Months to cover; 0 or less for all"),
    prefix: str = typer.Option(None, help="Shard name prefix"),
) -> None:
    """Print the shards a search would target."""
    config = _load_config(prefix=prefix)
    for name in shard_set(config.index_prefix, months_back):
        console.print(name)
