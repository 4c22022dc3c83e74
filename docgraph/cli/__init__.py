"""
Command-Line Interface

CLI commands for docgraph operations.

Commands:
    docgraph ingest  - Ingest files into a knowledge base
    docgraph chunk   - Preview classification and chunking (no LLM calls)
    docgraph search  - Vector search over chunks
    docgraph info    - Display knowledge base information
    docgraph delete  - Delete a document and its cascade

Usage:
    # Ingest a file
    docgraph ingest notes.md --kb ./my_kb

    # Ingest a directory
    docgraph ingest ./docs --kb ./my_kb --pattern "**/*.md"

    # Preview chunks
    docgraph chunk notes.md --max-size 2000

    # Show stats
    docgraph info --kb ./my_kb
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

if TYPE_CHECKING:
    from docgraph.api.knowledge_graph import KnowledgeGraph
    from docgraph.config import KGConfig
    from docgraph.types import ProcessingResult

__all__ = ["main", "app"]

app = typer.Typer(
    name="docgraph",
    help="Build a knowledge graph from documents",
    no_args_is_help=True,
)
console = Console()

_state: dict[str, Any] = {"config_path": None, "verbose": False}


@app.callback()
def _global_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    config: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="TOML configuration file",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """Build a knowledge graph from documents."""
    _state["verbose"] = verbose
    _state["config_path"] = config


def _load_config() -> "KGConfig":
    from docgraph.config import KGConfig

    path = _state.get("config_path")
    config = KGConfig.from_file(path) if path else KGConfig()
    level = "DEBUG" if _state.get("verbose") else config.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )
    return config


def _open_kb(kb: Path, workspace: str, create: bool = False) -> "KnowledgeGraph":
    from docgraph.api.knowledge_graph import KnowledgeGraph

    return KnowledgeGraph(kb, _load_config(), workspace=workspace, create=create)


def _print_result(result: "ProcessingResult", name: str) -> None:
    if result.succeeded:
        console.print(Panel(
            f"[green]Successfully ingested {name}[/]\n\n"
            f"  Document ID: {result.document_id}\n"
            f"  Chunks: {len(result.chunks)}\n"
            f"  Entities: {len(result.entities)}\n"
            f"  Relationships: {len(result.relationships)}\n"
            f"  Merged: {result.merged_count}\n"
            f"  Duration: {result.processing_time_ms / 1000:.1f}s",
            title="Ingestion Complete",
        ))
    else:
        errors = "\n".join(f"  [{e.stage}] {e.message}" for e in result.errors)
        console.print(Panel(
            f"[red]Failed to ingest {name}[/]\n\n{errors}",
            title="Ingestion Failed",
            border_style="red",
        ))

    if result.warnings:
        console.print("[yellow]Warnings:[/]")
        for warning in result.warnings:
            console.print(f"  - {warning}")


@app.command()
def ingest(
    path: Path = typer.Argument(
        ...,
        help="File or directory to ingest",
        exists=True,
    ),
    kb: Path = typer.Option(
        Path("./kb"),
        "--kb", "-k",
        help="Knowledge base directory",
    ),
    workspace: str = typer.Option("default", "--workspace", "-w", help="Workspace name"),
    pattern: str = typer.Option(
        "**/*",
        "--pattern", "-p",
        help="Glob pattern for directory ingestion",
    ),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Document title"),
    tag: Optional[list[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
) -> None:
    """Ingest documents into a knowledge base."""

    async def _run() -> int:
        kg = _open_kb(kb, workspace, create=True)
        failures = 0

        try:
            if path.is_dir():
                files = sorted(p for p in path.glob(pattern) if p.is_file())
                if not files:
                    console.print(f"[yellow]No files matching '{pattern}' found in {path}[/]")
                    return 0

                console.print(f"Found {len(files)} files to ingest")
                results: list[tuple[str, ProcessingResult]] = []

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    console=console,
                ) as progress:
                    task = progress.add_task("Ingesting...", total=len(files))
                    for file_path in files:
                        progress.update(task, description=f"Ingesting {file_path.name}")
                        result = await kg.ingest_file(file_path, tags=tag)
                        results.append((file_path.name, result))
                        progress.advance(task)

                succeeded = [r for _, r in results if r.succeeded]
                failed = [(n, r) for n, r in results if not r.succeeded]
                failures = len(failed)

                console.print()
                console.print(Panel(
                    f"[green]Ingested {len(succeeded)} of {len(files)} files[/]\n\n"
                    f"  Chunks: {sum(len(r.chunks) for r in succeeded)}\n"
                    f"  Entities: {sum(len(r.entities) for r in succeeded)}\n"
                    f"  Relationships: {sum(len(r.relationships) for r in succeeded)}",
                    title="Ingestion Complete",
                ))
                for name, result in failed:
                    for error in result.errors:
                        console.print(f"[red]{name}: [{error.stage}] {error.message}[/]")
            else:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    console=console,
                ) as progress:
                    task = progress.add_task(f"Ingesting {path.name}...")

                    def report(stage: str, fraction: float) -> None:
                        progress.update(task, description=f"{path.name}: {stage}")

                    result = await kg.ingest_file(path, title=title, tags=tag, on_progress=report)
                    progress.update(task, completed=True)

                console.print()
                _print_result(result, path.name)
                failures = 0 if result.succeeded else 1
        finally:
            await kg.close()

        return failures

    if asyncio.run(_run()):
        raise typer.Exit(code=1)


@app.command()
def chunk(
    path: Path = typer.Argument(..., help="File to chunk", exists=True, dir_okay=False),
    max_size: int = typer.Option(8000, "--max-size", help="Maximum chunk size (chars)"),
    min_size: int = typer.Option(100, "--min-size", help="Minimum chunk size (chars)"),
    overlap: int = typer.Option(200, "--overlap", help="Overlap between split pieces"),
) -> None:
    """Preview how a file is classified and chunked."""
    from pydantic import ValidationError as PydanticValidationError

    from docgraph.ingestion.chunking import ChunkingEngine
    from docgraph.ingestion.validation import sanitize_text
    from docgraph.types import ChunkingConfig, Document, DocumentMetadata
    from docgraph.utils.text import generate_document_id

    _load_config()
    try:
        config = ChunkingConfig(
            max_chunk_size=max_size, min_chunk_size=min_size, overlap_size=overlap
        )
    except PydanticValidationError as e:
        console.print(f"[red]Invalid chunking options: {e.errors()[0]['msg']}[/]")
        raise typer.Exit(code=2)

    text = sanitize_text(path.read_bytes().decode("utf-8", errors="replace"))
    document = Document(
        id=generate_document_id(text, path.name),
        content=text,
        metadata=DocumentMetadata(title=path.stem, filename=path.name),
    )
    result = ChunkingEngine(config).chunk(document)

    table = Table(title=f"{path.name} ({result.content_type})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Offsets", style="cyan")
    table.add_column("Size", justify="right", style="green")
    table.add_column("Heading")
    table.add_column("Preview", style="dim")

    for c in result.chunks:
        preview = " ".join(c.text.split())[:60]
        table.add_row(
            str(c.sequence_index),
            f"{c.start_offset}-{c.end_offset}",
            str(len(c.text)),
            c.header_path or c.heading or "",
            preview,
        )
    console.print(table)

    stats = result.stats
    console.print(
        f"[dim]{stats.count} chunks, avg {stats.avg_size:.0f} chars "
        f"(min {stats.min_size}, max {stats.max_size}), {stats.overlap_count} overlaps[/]"
    )
    for warning in result.warnings:
        console.print(f"[yellow]  - {warning}[/]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text"),
    kb: Path = typer.Option(
        Path("./kb"),
        "--kb", "-k",
        help="Knowledge base directory",
        exists=True,
    ),
    workspace: str = typer.Option("default", "--workspace", "-w", help="Workspace name"),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum results"),
) -> None:
    """Search chunks by semantic similarity."""

    async def _run() -> None:
        kg = _open_kb(kb, workspace)

        try:
            hits = await kg.search(query, limit=limit)
            if not hits:
                console.print("[yellow]No matching chunks.[/]")
                return

            table = Table(title=f"Results for '{query}'")
            table.add_column("Score", justify="right", style="green")
            table.add_column("Chunk", style="cyan")
            table.add_column("Section", style="dim")
            table.add_column("Text")
            for found, score in hits:
                table.add_row(
                    f"{score:.3f}",
                    found.id,
                    found.header_path or found.heading or "",
                    " ".join(found.text.split())[:80],
                )
            console.print(table)
        finally:
            await kg.close()

    asyncio.run(_run())


@app.command()
def info(
    kb: Path = typer.Option(
        Path("./kb"),
        "--kb", "-k",
        help="Knowledge base directory",
        exists=True,
    ),
    workspace: str = typer.Option("default", "--workspace", "-w", help="Workspace name"),
) -> None:
    """Display knowledge base information."""

    async def _run() -> None:
        kg = _open_kb(kb, workspace)

        try:
            stats = await kg.stats()

            table = Table(title=f"Knowledge Base: {kb} ({workspace})")
            table.add_column("Metric", style="cyan")
            table.add_column("Count", justify="right", style="green")

            table.add_row("Documents", str(stats["documents"]))
            table.add_row("Chunks", str(stats["chunks"]))
            table.add_row("Entities", str(stats["entities"]))
            table.add_row("Relationships", str(stats["relationships"]))

            console.print(table)
        finally:
            await kg.close()

    asyncio.run(_run())


@app.command()
def delete(
    doc_id: str = typer.Argument(..., help="Document id"),
    kb: Path = typer.Option(
        Path("./kb"),
        "--kb", "-k",
        help="Knowledge base directory",
        exists=True,
    ),
    workspace: str = typer.Option("default", "--workspace", "-w", help="Workspace name"),
) -> None:
    """Delete a document, its chunks, and entities only it contributed."""

    async def _run() -> bool:
        kg = _open_kb(kb, workspace)
        try:
            return await kg.delete_document(doc_id)
        finally:
            await kg.close()

    if asyncio.run(_run()):
        console.print(f"[green]Deleted {doc_id}[/]")
    else:
        console.print(f"[red]Document not found: {doc_id}[/]")
        raise typer.Exit(code=1)


def main() -> None:
    """Entry point for the CLI."""
    load_dotenv()
    app()
