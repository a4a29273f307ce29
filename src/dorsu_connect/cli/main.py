"""
CLI Main - Typer command-line interface.
========================================

Commands:
- refresh: Rebuild the knowledge base from the dataset file
- watch: Refresh automatically whenever the dataset file changes
- search: Show the ranked hits for a query
- context: Show the context the assistant would receive
- ask: Ask the assistant a question
- cache-clear: Drop cached answers
- status: Knowledge store, manifest and cache status
- info: Configuration and paths
- serve: Run the HTTP API
- create-user: Add a login account
"""

import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from dorsu_connect.shared.logging import get_logger, setup_logging, setup_logging_from_settings

logger = get_logger(__name__)

app = typer.Typer(
    name="dorsu-connect",
    help="""DOrSU Connect - Knowledge base and assistant backend

Answers questions about Davao Oriental State University from a JSON
knowledge dataset using retrieval-augmented generation.

QUICK START:

  dorsu-connect refresh                          # Step 1: Build the knowledge base
  dorsu-connect ask "Who is the president?"      # Step 2: Ask questions
  dorsu-connect serve                            # Step 3: Run the API on port 3000

Use 'dorsu-connect <command> --help' for detailed command options.
""",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """Configure logging before any command runs."""
    if verbose:
        setup_logging(level="DEBUG", force=True)
    else:
        setup_logging_from_settings()


# ─────────────────────────────────────────────────────────────────────────────
# Refresh Commands
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def refresh(
    data_file: Optional[Path] = typer.Option(
        None,
        "--data-file", "-f",
        help="Dataset JSON file. Default: refresh.data_file from config or DATA_FILE.",
    ),
):
    """
    Rebuild the knowledge base from the dataset file.

    Chunks the dataset, embeds every chunk, replaces the stored chunks and
    clears cached answers.

    Examples:
        dorsu-connect refresh
        dorsu-connect refresh -f data/dorsu_data.json
    """
    from dorsu_connect.refresh.service import DataRefreshService

    service = DataRefreshService(data_file=data_file)
    console.print(Panel(
        f"[bold]Refresh Configuration[/bold]\n"
        f"Dataset: {service.data_file}\n"
        f"Source: {service.source_name}",
        title="Refresh",
    ))

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Refreshing knowledge base...", total=None)
        result = service.refresh_from_data_file()
        progress.remove_task(task)

    if not result.success:
        console.print(f"[red]Refresh failed: {result.message}[/red]")
        raise typer.Exit(1)

    table = Table(show_header=False)
    table.add_row("Chunks generated", str(result.total_chunks_generated))
    table.add_row("Stale chunks removed", str(result.old_chunks_removed))
    table.add_row("Inserted", str(result.new_chunks_added))
    table.add_row("Updated", str(result.updated_chunks))
    table.add_row("Total in store", str(result.total_chunks))
    table.add_row("Cache entries cleared", str(result.cache_entries_cleared))
    table.add_row("Knowledge version", (result.dataset_hash or "")[:12])
    console.print(table)
    console.print(f"\n[bold green]✓ {result.message}[/bold green]")


@app.command()
def watch(
    interval: Optional[float] = typer.Option(
        None,
        "--interval", "-i",
        help="Seconds between checks. Default: refresh.poll_interval_seconds.",
    ),
    initial: bool = typer.Option(
        True,
        "--initial/--no-initial",
        help="Run one refresh before watching.",
    ),
):
    """
    Watch the dataset file and refresh whenever it changes.

    Press Ctrl+C to stop.
    """
    from dorsu_connect.refresh.service import DataRefreshService

    service = DataRefreshService()
    if initial:
        result = service.refresh_from_data_file()
        style = "green" if result.success else "red"
        console.print(f"[{style}]{result.message}[/{style}]")

    service.start_auto_refresh(interval)
    console.print(f"[bold]Watching {service.data_file}[/bold] [dim](Ctrl+C to stop)[/dim]")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping...[/dim]")
    finally:
        service.stop_auto_refresh()


# ─────────────────────────────────────────────────────────────────────────────
# Retrieval Commands
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text (wrap in quotes)."),
    max_sections: Optional[int] = typer.Option(
        None,
        "--max", "-n",
        help="Number of results. Default: search.max_sections.",
    ),
):
    """
    Show the ranked knowledge hits for a query.

    Examples:
        dorsu-connect search "dean of computing"
        dorsu-connect search "admission requirements" -n 20
    """
    from dorsu_connect.rag.context import get_rag_service
    from dorsu_connect.rag.query_types import detect_query_type
    from dorsu_connect.rag.typo import correct_typos

    rag = get_rag_service()
    rag.sync_with_store()

    corrected = correct_typos(query).corrected
    query_type = detect_query_type(corrected)
    hits = rag.search_service.search(corrected, max_sections=max_sections, query_type=query_type)

    if corrected != query:
        console.print(f"[dim]Corrected: {corrected}[/dim]")
    console.print(f"[bold]Query type:[/bold] {query_type.value}\n")

    if not hits:
        console.print("[yellow]No results.[/yellow]")
        raise typer.Exit(0)

    table = Table(show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Section", style="cyan")
    table.add_column("Type")
    table.add_column("Score", justify="right")
    table.add_column("Text")
    for i, hit in enumerate(hits, 1):
        table.add_row(str(i), hit.section, hit.type, f"{hit.score:.1f}", hit.text[:80])
    console.print(table)


@app.command()
def context(
    query: str = typer.Argument(..., help="Question (wrap in quotes)."),
    max_tokens: int = typer.Option(800, "--max-tokens", "-t", help="Context token budget."),
    user_type: Optional[str] = typer.Option(
        None,
        "--user-type", "-u",
        help="student or faculty, for schedule visibility.",
    ),
):
    """Print the context block the assistant would be given."""
    from dorsu_connect.rag.context import get_rag_service

    retrieved = get_rag_service().retrieve(query, max_tokens=max_tokens, user_type=user_type)
    console.print(Panel(
        retrieved.text,
        title=f"Context [{retrieved.query_type.value}] ~{retrieved.tokens} tokens",
    ))


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question about DOrSU (wrap in quotes)."),
    user_type: Optional[str] = typer.Option(
        None,
        "--user-type", "-u",
        help="student or faculty, for schedule visibility.",
    ),
):
    """
    Ask the assistant a question.

    Needs GEMINI_API_KEY for generated answers.

    Examples:
        dorsu-connect ask "Who is the president of DOrSU?"
        dorsu-connect ask "When is the midterm exam?" -u student
    """
    from dorsu_connect.rag.chat import get_chat_service
    from dorsu_connect.shared.schemas import ChatRequest

    console.print(f"\n[bold]Question:[/bold] {question}\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Thinking...", total=None)
        response = get_chat_service().chat(ChatRequest(prompt=question, user_type=user_type))
        progress.remove_task(task)

    border = "red" if response.source == "error" else "green"
    console.print(Panel(response.reply, title="Answer", border_style=border))
    if response.corrected_query:
        console.print(f"[dim]Interpreted as: {response.corrected_query}[/dim]")
    console.print(
        f"[dim]source={response.source} type={response.query_type} "
        f"time={response.response_time_ms:.0f}ms[/dim]"
    )
    if response.sections:
        console.print(f"[dim]Sections: {', '.join(response.sections)}[/dim]")


@app.command("cache-clear")
def cache_clear():
    """Drop every cached answer."""
    from dorsu_connect.rag.cache import get_response_cache

    cleared = get_response_cache().invalidate_all()
    console.print(f"[green]✓ Cleared {cleared} cached responses[/green]")


# ─────────────────────────────────────────────────────────────────────────────
# Status Commands
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def status():
    """Show knowledge store contents and the current knowledge version."""
    from dorsu_connect.indexing.knowledge_store import get_knowledge_store
    from dorsu_connect.indexing.manifest import ManifestManager

    stats = get_knowledge_store().get_stats()
    latest = ManifestManager().get_latest()

    console.print(Panel(
        f"[bold]Total chunks:[/bold] {stats['total_chunks']}\n"
        f"Collection: {stats['collection_name']}\n"
        f"Last updated: {stats['last_updated'] or 'never'}\n"
        f"Knowledge version: {latest.dataset_hash[:12] if latest else 'none'}\n"
        f"Embeddings: {f'{latest.provider} ({latest.model_name})' if latest else 'n/a'}",
        title="Knowledge Base",
    ))

    if stats["chunks_by_section"]:
        table = Table(show_header=True)
        table.add_column("Section", style="cyan")
        table.add_column("Chunks", justify="right")
        for section, count in stats["chunks_by_section"].items():
            table.add_row(section, str(count))
        console.print(table)


@app.command()
def info():
    """Show version, configuration and data paths."""
    from dorsu_connect import __version__
    from dorsu_connect.shared.config import get_settings

    settings = get_settings()

    console.print(Panel(
        f"[bold]DOrSU Connect[/bold]\n"
        f"Version: {__version__}\n"
        f"Config: config/settings.yaml\n"
        f"Embeddings: {settings.get_effective_embedding_provider()}\n"
        f"Gemini model: {settings.get_effective_gemini_model()}\n"
        f"Gemini API key: {'set' if settings.gemini_api_key else 'not set'}\n"
        f"JWT secret: {'set' if settings.jwt_secret else 'not set'}",
        title="Info",
    ))

    console.print("\n[bold]Data Paths:[/bold]")
    resolved_paths = settings.resolved_paths
    path_dict = {
        "data_file": settings.get_effective_data_file(),
        "events_file": settings.resolve_path(settings.schedule.events_file),
        "store_dir": resolved_paths.store_dir,
        "manifests_dir": resolved_paths.manifests_dir,
        "users_file": resolved_paths.users_file,
    }
    for name, path in path_dict.items():
        exists = "✓" if path.exists() else "✗"
        console.print(f"  {name}: {path} [{exists}]")


# ─────────────────────────────────────────────────────────────────────────────
# Server and Users
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address. Default: api.host."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port. Default: api.port."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from dorsu_connect.shared.config import get_settings

    settings = get_settings()
    host = host or settings.api.host
    port = port or settings.api.port

    console.print(f"[bold]Starting DOrSU Connect API on http://{host}:{port}[/bold]")
    uvicorn.run(
        "dorsu_connect.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command("create-user")
def create_user(
    email: str = typer.Option(..., "--email", "-e", help="Login email."),
    username: str = typer.Option(..., "--username", "-n", help="Display name."),
    password: str = typer.Option(
        ...,
        "--password",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="Password (prompted if omitted).",
    ),
    role: str = typer.Option("user", "--role", help="Account role."),
):
    """Create a login account in the users file."""
    from dorsu_connect.auth.service import AuthService
    from dorsu_connect.shared.errors import RegistrationError

    try:
        response = AuthService().register(email, username, password, role=role)
    except RegistrationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Created user {response.user.email} ({response.user.id})[/green]")


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def cli():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    cli()
