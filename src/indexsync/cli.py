"""Command line interface for IndexSync."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from indexsync.config import AppConfig
from indexsync.document.document import RecordDocument
from indexsync.errors import IndexSyncError
from indexsync.index.indexer import Indexer
from indexsync.services import SearchServices, build_services

console = Console()
app = typer.Typer(help="IndexSync - keep CMS records mirrored in a search index")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _make_config(
    db: Optional[Path], index_db: Optional[Path], config: Optional[Path], batch_size: Optional[int] = None
) -> AppConfig:
    return AppConfig(db_path=db, index_db_path=index_db, config_path=config, batch_size=batch_size)


def _load_document(services: SearchServices, type_name: str, record_id: int) -> RecordDocument:
    if not services.schema.has_type(type_name):
        raise typer.BadParameter(f"Unknown record type: {type_name}")
    record = services.store.get_by_id(type_name, record_id)
    if record is None:
        raise typer.BadParameter(f"{type_name} #{record_id} not found")
    return RecordDocument(record, services)


@app.command()
def reindex(
    types: Optional[List[str]] = typer.Argument(None, help="Record types to reindex (default: all)"),
    db: Path = typer.Option(None, "--db", help="Record store SQLite path"),
    index_db: Path = typer.Option(None, "--index-db", help="Search index SQLite path"),
    config: Path = typer.Option(None, "--config", help="YAML configuration file"),
    batch_size: int = typer.Option(None, help="Records per batch"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Push every indexable record to the search index."""
    _setup_logging(verbose)
    services = build_services(_make_config(db, index_db, config, batch_size), Path.cwd())
    try:
        for type_name in types or []:
            if not services.schema.has_type(type_name):
                raise typer.BadParameter(f"Unknown record type: {type_name}", param_hint="TYPES")
        if not services.configuration.is_enabled():
            console.print("[yellow]Indexing is disabled in the configuration.[/yellow]")
            return
        services.backend.configure()
        stats = Indexer(services).reindex(types or None)
    except IndexSyncError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        services.close()

    console.print(f"Added: {stats.added}, removed: {stats.removed}")


@app.command()
def inspect(
    type_name: str = typer.Argument(..., help="Record type"),
    record_id: int = typer.Argument(..., help="Record id"),
    db: Path = typer.Option(None, "--db", help="Record store SQLite path"),
    index_db: Path = typer.Option(None, "--index-db", help="Search index SQLite path"),
    config: Path = typer.Option(None, "--config", help="YAML configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show how a record would be indexed."""
    _setup_logging(verbose)
    services = build_services(_make_config(db, index_db, config), Path.cwd())
    try:
        document = _load_document(services, type_name, record_id)
        console.print(f"Document [bold]{document.identifier()}[/bold] ({document.source_type()})")
        console.print(f"Should index: {document.should_index()}")

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Field")
        table.add_column("Value")
        for name, value in {**document.meta(), **document.attributes()}.items():
            table.add_row(name, str(value)[:180])
        console.print(table)

        dependents = document.dependent_documents()
        if dependents:
            console.print("Dependents: " + ", ".join(dep.identifier() for dep in dependents))
    except IndexSyncError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        services.close()


@app.command()
def dependents(
    type_name: str = typer.Argument(..., help="Record type"),
    record_id: int = typer.Argument(..., help="Record id"),
    db: Path = typer.Option(None, "--db", help="Record store SQLite path"),
    index_db: Path = typer.Option(None, "--index-db", help="Search index SQLite path"),
    config: Path = typer.Option(None, "--config", help="YAML configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List the documents that must be re-indexed when a record changes."""
    _setup_logging(verbose)
    services = build_services(_make_config(db, index_db, config), Path.cwd())
    try:
        document = _load_document(services, type_name, record_id)
        found = document.dependent_documents()
    except IndexSyncError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        services.close()

    if not found:
        console.print("[yellow]No dependent documents.[/yellow]")
        return
    for dependent in found:
        console.print(dependent.identifier())


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    index_db: Path = typer.Option(None, "--index-db", help="Search index SQLite path"),
    top_k: int = typer.Option(10, help="Number of results to display"),
) -> None:
    """Look up documents in the local search index."""
    from indexsync.index.storage import SQLiteDocumentIndex

    resolved = _make_config(None, index_db, None).resolve_index_db_path(Path.cwd())
    if not resolved.exists():
        raise typer.BadParameter(f"Index not found: {resolved}")

    index = SQLiteDocumentIndex(resolved)
    try:
        results = index.search(query, limit=top_k)
    finally:
        index.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Document")
    table.add_column("Class")
    table.add_column("Snippet")
    for result in results:
        snippet = ", ".join(
            f"{key}={value}" for key, value in result.items() if key not in ("id", "source_class")
        )
        table.add_row(result["id"], str(result.get("source_class")), snippet[:180])
    console.print(table)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the inspection web API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter("uvicorn is not installed") from exc

    from indexsync.web.app import app as web_app

    console.print(f"Starting web API on http://{host}:{port}")
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")
