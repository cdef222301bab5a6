"""CLI interface for notecontext.

Runs build_context directly against the notes database.
Requires NOTECONTEXT_DATABASE_URL; embeddings need an API key
(NOTECONTEXT_EMBEDDING_API_KEY or OPENROUTER_API_KEY), otherwise
retrieval is lexical-only.
"""

import json
import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from notecontext.config import NoteContextConfig
from notecontext.context import ContextBuilder
from notecontext.db.note_store import PgNoteStore
from notecontext.embedding import AsyncEmbeddingClient
from notecontext.errors import InvalidInputError, NoteContextError
from notecontext.lib.async_utils import run_async
from notecontext.models import ContextBundle, ContextOptions

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def handle_error(e: Exception) -> None:
    """Handle and display errors nicely."""
    if isinstance(e, InvalidInputError):
        console.print(f"[red]Invalid input:[/red] {e}")
        sys.exit(2)
    elif isinstance(e, NoteContextError):
        console.print(f"[red]Error:[/red] {e}")
    elif isinstance(e, TimeoutError):
        console.print("[red]Timed out[/red] waiting for embedding or retrieval")
    else:
        console.print(f"[red]Unexpected Error:[/red] {e}")
    sys.exit(1)


def _create_store(config: NoteContextConfig) -> PgNoteStore:
    return PgNoteStore.from_config(config)


def _create_embedder(config: NoteContextConfig) -> AsyncEmbeddingClient | None:
    if not config.resolve_embedding_api_key():
        return None
    return AsyncEmbeddingClient.from_config(config)


def _mask(value: str | None) -> str:
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


async def _build(
    config: NoteContextConfig,
    user_id: str,
    query: str,
    options: ContextOptions,
) -> ContextBundle:
    store = _create_store(config)
    embedder = _create_embedder(config)
    if embedder is None:
        logger.warning("No embedding API key set; using lexical search only")
    try:
        builder = ContextBuilder(store, embedder=embedder, config=config)
        return await builder.build_context(user_id, query, options)
    finally:
        if embedder is not None:
            await embedder.close()
        await store.close()


def _options(
    config: NoteContextConfig,
    max_notes: int | None,
    max_chars: int | None,
    threshold: float | None,
) -> ContextOptions:
    options = config.to_options()
    update = {}
    if max_notes is not None:
        update["max_notes"] = max_notes
    if max_chars is not None:
        update["max_total_chars"] = max_chars
    if threshold is not None:
        update["similarity_threshold"] = threshold
    try:
        return ContextOptions.model_validate({**options.model_dump(), **update})
    except ValueError as e:
        raise InvalidInputError(str(e)) from e


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """notecontext - retrieval-augmented context for personal notes.

    Configuration:
      NOTECONTEXT_DATABASE_URL       - PostgreSQL URL of the notes database
      NOTECONTEXT_EMBEDDING_API_KEY  - Embeddings API key (or OPENROUTER_API_KEY)
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


# =============================================================================
# Retrieval Commands
# =============================================================================


@main.command()
@click.argument("query")
@click.option("--user-id", "-u", required=True, help="Owner of the notes to search")
@click.option("--max-notes", "-n", type=int, help="Maximum notes in the bundle")
@click.option("--max-chars", "-c", type=int, help="Character budget for the bundle")
@click.option("--threshold", type=float, help="Vector similarity threshold")
@click.option("--timeout", type=float, help="Give up after this many seconds")
@click.option("--json", "as_json", is_flag=True, help="Print the bundle as JSON")
def search(
    query: str,
    user_id: str,
    max_notes: int | None,
    max_chars: int | None,
    threshold: float | None,
    timeout: float | None,
    as_json: bool,
) -> None:
    """Search notes and show the packed sources.

    Example:
        notecontext search "project roadmap" -u user-123
    """
    try:
        config = NoteContextConfig()
        options = _options(config, max_notes, max_chars, threshold)
        bundle = run_async(_build(config, user_id, query, options), timeout=timeout)
    except (NoteContextError, TimeoutError, ValueError) as e:
        handle_error(e)
        return

    if as_json:
        click.echo(json.dumps(bundle.model_dump(mode="json"), indent=2))
        return

    if not bundle.matched:
        console.print("[yellow]No relevant notes found.[/yellow]")
        return

    table = Table(title=f"Notes for: {query}")
    table.add_column("#", style="dim")
    table.add_column("ID", style="dim", max_width=12)
    table.add_column("Title", style="white")
    table.add_column("Score", style="cyan")
    table.add_column("Similarity", style="cyan")
    table.add_column("Source", style="yellow")

    for i, excerpt in enumerate(bundle.excerpts, 1):
        similarity = f"{excerpt.similarity:.3f}" if excerpt.similarity is not None else "-"
        title = excerpt.title + (" (truncated)" if excerpt.truncated else "")
        table.add_row(
            str(i),
            excerpt.note_id[:12],
            title,
            f"{excerpt.score:.3f}",
            similarity,
            excerpt.provenance.value,
        )

    console.print(table)
    console.print(
        f"[dim]{bundle.total_chars} chars used of {options.max_total_chars}[/dim]"
    )
    if bundle.degraded:
        console.print("[yellow]Vector search unavailable; results are lexical-only.[/yellow]")


@main.command()
@click.argument("query")
@click.option("--user-id", "-u", required=True, help="Owner of the notes to search")
@click.option("--max-notes", "-n", type=int, help="Maximum notes in the bundle")
@click.option("--max-chars", "-c", type=int, help="Character budget for the bundle")
@click.option("--threshold", type=float, help="Vector similarity threshold")
@click.option("--timeout", type=float, help="Give up after this many seconds")
def context(
    query: str,
    user_id: str,
    max_notes: int | None,
    max_chars: int | None,
    threshold: float | None,
    timeout: float | None,
) -> None:
    """Print the prompt-ready context block for a query.

    Example:
        notecontext context "what did I plan for Q3?" -u user-123
    """
    try:
        config = NoteContextConfig()
        options = _options(config, max_notes, max_chars, threshold)
        bundle = run_async(_build(config, user_id, query, options), timeout=timeout)
    except (NoteContextError, TimeoutError, ValueError) as e:
        handle_error(e)
        return

    click.echo(bundle.render())


# =============================================================================
# Config Command
# =============================================================================


@main.command("config")
def show_config() -> None:
    """Show effective configuration (secrets masked)."""
    config = NoteContextConfig()

    table = Table(title="notecontext Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for name, value in config.model_dump().items():
        if name == "embedding_api_key":
            value = _mask(config.resolve_embedding_api_key())
        elif name == "database_url":
            value = _mask(value)
        table.add_row(name, str(value))

    console.print(table)


if __name__ == "__main__":
    main()
