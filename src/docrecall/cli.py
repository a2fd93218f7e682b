"""Command line interface for DocRecall."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table

from docrecall.chunking.chunker import ChunkConfig
from docrecall.config import AppConfig
from docrecall.context import AppContext
from docrecall.errors import ConfigurationError
from docrecall.index.hybrid import HybridConfig
from docrecall.utils.files import iter_document_paths

console = Console()
app = typer.Typer(help="DocRecall - hybrid keyword and semantic search for notes and transcripts")

_DEFAULTS = AppConfig(db_path=Path("docrecall.db"))


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _config(db: Path | None, **overrides: object) -> AppConfig:
    try:
        return AppConfig(db_path=db if db is not None else AppConfig().db_path, **overrides)
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _existing_db(config: AppConfig) -> Path:
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    return resolved_db


@app.command()
def index(
    inputs: List[Path] = typer.Argument(
        ..., help="Markdown or text files, or directories containing them.", resolve_path=True
    ),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    model: str = typer.Option(_DEFAULTS.model_name, help="Sentence-transformer model name"),
    max_chunk_size: int = typer.Option(
        _DEFAULTS.chunking.max_chunk_size, help="Maximum words per chunk"
    ),
    overlap: int = typer.Option(_DEFAULTS.chunking.overlap_size, help="Words shared by split chunks"),
    force: bool = typer.Option(
        False, "--force", help="Re-index every chunk of unchanged files, not only missing ones"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index one or more paths containing markdown or text files."""
    _setup_logging(verbose)
    try:
        chunking = ChunkConfig(max_chunk_size=max_chunk_size, overlap_size=overlap)
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    config = _config(db, model_name=model, chunking=chunking)

    paths = list(iter_document_paths(inputs))
    if not paths:
        console.print("[yellow]No documents found.[/yellow]")
        return

    with AppContext.build(config, base_dir=Path.cwd()) as context:
        console.print(f"Indexing into [bold]{context.database.db_path}[/bold]...")
        if not context.embedder.is_available():
            console.print("[yellow]Embedding model unavailable, indexing keywords only.[/yellow]")
        stats = context.indexer.index(paths, force=force)

    console.print(
        f"Inserted: {stats.inserted}, updated: {stats.updated}, "
        f"skipped: {stats.skipped}, repaired: {stats.repaired}, failed: {stats.failed}"
    )
    if stats.embedding_failures:
        console.print(f"[yellow]{stats.embedding_failures} chunks could not be embedded.[/yellow]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    model: str = typer.Option(_DEFAULTS.model_name, help="Sentence-transformer model name"),
    limit: int = typer.Option(_DEFAULTS.hybrid.limit, help="Number of results to display"),
    semantic_weight: float = typer.Option(
        _DEFAULTS.hybrid.semantic_weight, help="Weight of semantic similarity"
    ),
    keyword_weight: float = typer.Option(
        _DEFAULTS.hybrid.keyword_weight, help="Weight of keyword matching"
    ),
    snippets: bool = typer.Option(False, "--snippets", help="Show highlighted keyword excerpts"),
    keyword_only: bool = typer.Option(
        False, "--keyword-only", help="Skip loading the embedding model"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Execute a hybrid keyword and semantic search."""
    _setup_logging(verbose)
    try:
        hybrid = HybridConfig(
            limit=limit,
            semantic_weight=semantic_weight,
            keyword_weight=keyword_weight,
            include_snippets=snippets,
        )
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    config = _config(db, model_name=model, hybrid=hybrid)
    _existing_db(config)

    with AppContext.build(
        config, base_dir=Path.cwd(), load_embeddings=not keyword_only
    ) as context:
        results = context.searcher.search(query)

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Document")
    table.add_column("Heading")
    table.add_column("Snippet")

    for result in results:
        text = result.snippet if snippets and result.snippet else result.chunk.content
        table.add_row(
            f"{result.similarity:.4f}",
            str(result.file.path),
            result.chunk.heading_path or "",
            text.replace("\n", " ")[:180],
        )

    console.print(table)


@app.command()
def stats(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show index statistics."""
    config = _config(db)
    _existing_db(config)

    with AppContext.build(config, base_dir=Path.cwd(), load_embeddings=False) as context:
        store_stats = context.store.get_stats()
        index_stats = context.ranker.get_stats()

    table = Table(show_header=False)
    table.add_row("Documents", str(store_stats["document_count"]))
    table.add_row("Chunks", str(store_stats["chunk_count"]))
    table.add_row("Keyword index", str(index_stats["keyword_index_size"]))
    table.add_row("Semantic index", str(index_stats["semantic_index_size"]))
    console.print(table)


@app.command()
def prune(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Remove documents that no longer exist on disk."""
    config = _config(db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to prune.[/yellow]")
        return

    with AppContext.build(config, base_dir=Path.cwd(), load_embeddings=False) as context:
        removed = context.indexer.prune()
    console.print(f"Removed {removed} orphaned documents.")


@app.command()
def clear(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Drop every keyword and semantic index entry (documents are kept)."""
    config = _config(db)
    _existing_db(config)
    if not yes:
        typer.confirm("Clear both search indexes?", abort=True)

    with AppContext.build(config, base_dir=Path.cwd(), load_embeddings=False) as context:
        context.searcher.clear_index()
    console.print("Cleared search indexes.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    model: str = typer.Option(_DEFAULTS.model_name, help="Sentence-transformer model name"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from docrecall.web.app import create_app

    _setup_logging(False)
    config = _config(db, model_name=model)
    context = AppContext.build(config, base_dir=Path.cwd())
    console.print(
        f"Starting web API on http://{host}:{port} (database: {context.database.db_path})"
    )
    try:
        uvicorn.run(create_app(context), host=host, port=port, reload=False, log_level="info")
    finally:
        context.close()
