"""
Context Engine CLI - command-line interface for Context Engine.

Commands for database setup, user management, saving and resuming sessions,
and running the API server.
"""

import json
import os
from pathlib import Path
from typing import Optional
from uuid import UUID

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from context_engine.exceptions import (
    AuthenticationRequiredError,
    SessionConflictError,
    StoreUnavailableError,
)
from context_engine.logging_config import setup_logging

app = typer.Typer(
    name="context-engine",
    help="Context Engine - save, version and resume coding sessions",
    no_args_is_help=True,
)

console = Console()

USER_OPTION_HELP = "Username or user UUID (defaults to $CONTEXT_ENGINE_USER)"


def _init_logging() -> None:
    # Fall back to console logging if file logging is not permitted
    try:
        setup_logging(context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)


def _resolve_user_id(db, user: Optional[str]) -> UUID:
    """Resolve a username or UUID to an existing user's id."""
    from context_engine.db.repositories.user import UserRepository

    user = user or os.getenv("CONTEXT_ENGINE_USER")
    if not user:
        console.print(
            "[bold red]Error:[/bold red] No user given "
            "(use --user or set CONTEXT_ENGINE_USER)"
        )
        raise typer.Exit(1)

    repo = UserRepository(db)
    try:
        found = repo.get(UUID(user))
    except ValueError:
        found = repo.get_by_username(user)

    if found is None:
        console.print(f"[bold red]Error:[/bold red] Unknown user: {user}")
        raise typer.Exit(1)
    return found.id


@app.command("init-db")
def init_db_command() -> None:
    """
    Create all database tables.

    For PostgreSQL deployments prefer `alembic upgrade head`.
    """
    from context_engine.db.connection import init_db

    _init_logging()
    init_db()
    console.print("[green]✓ Database tables created[/green]")


@app.command("create-user")
def create_user(
    username: str = typer.Argument(..., help="Unique username"),
    email: Optional[str] = typer.Option(None, help="Email address"),
) -> None:
    """Create a user (or show the existing one with that username)."""
    from context_engine.db.connection import db_session
    from context_engine.db.repositories.user import UserRepository

    _init_logging()
    with db_session() as db:
        repo = UserRepository(db)
        existing = repo.get_by_username(username)
        user = existing or repo.create(username=username, email=email)
        user_id = user.id

    if existing:
        console.print(f"[yellow]User already exists:[/yellow] {username} ({user_id})")
    else:
        console.print(f"[green]✓ Created user[/green] {username} ({user_id})")


@app.command()
def save(
    path: Path = typer.Argument(..., help="JSON file with the session to save"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help=USER_OPTION_HELP),
) -> None:
    """
    Save a session from a JSON file.

    The file holds session_name, project_name, files, conversation and
    metadata. Saving an existing name creates the next version.
    """
    from context_engine.db.connection import db_session
    from context_engine.schemas import SaveSessionRequest
    from context_engine.services.session_service import SessionService

    _init_logging()

    if not path.exists():
        console.print(f"[bold red]Error:[/bold red] Path not found: {path}")
        raise typer.Exit(1)

    try:
        request = SaveSessionRequest.model_validate(
            json.loads(path.read_text(encoding="utf-8"))
        )
    except json.JSONDecodeError as e:
        console.print(f"[bold red]Error:[/bold red] Invalid JSON: {e}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print("[bold red]Error:[/bold red] Invalid session:")
        console.print(str(e), markup=False)
        raise typer.Exit(1)

    try:
        with db_session() as db:
            user_id = _resolve_user_id(db, user)
            result = SessionService(db).save_session(request, user_id)
    except SessionConflictError as e:
        console.print(f"[bold red]Conflict:[/bold red] {e} (retry the save)")
        raise typer.Exit(1)
    except (AuthenticationRequiredError, StoreUnavailableError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓ {result.message}[/green]")
    console.print(f"  Session ID: {result.session_id}")
    console.print(f"  Status: {result.status}")
    console.print(f"  Project context: {result.project_context_id or 'N/A'}")


@app.command()
def resume(
    session_name: str = typer.Argument(..., help="Session name (or part of it)"),
    project: Optional[str] = typer.Option(None, help="Project name filter"),
    file_path: Optional[str] = typer.Option(
        None, "--file", help="Only return this file"
    ),
    show_content: bool = typer.Option(
        False, "--content", help="Print file contents"
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help=USER_OPTION_HELP),
) -> None:
    """Resume a session by name."""
    from context_engine.db.connection import db_session
    from context_engine.schemas import FullSession, ResumeSessionRequest
    from context_engine.services.session_service import SessionService

    _init_logging()
    request = ResumeSessionRequest(
        session_name=session_name, project_name=project, file_path=file_path
    )

    try:
        with db_session() as db:
            user_id = _resolve_user_id(db, user)
            outcome = SessionService(db).resume_session(request, user_id)
    except StoreUnavailableError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if isinstance(outcome, FullSession):
        console.print(
            f"[bold blue]{outcome.session_name}[/bold blue] "
            f"v{outcome.version} ({outcome.project_name})"
        )
        console.print(f"  Files: {len(outcome.files)}")
        console.print(f"  Messages: {len(outcome.conversation)}")
        for file in outcome.files:
            console.print(f"  [cyan]{file.path}[/cyan]")
            if show_content:
                console.print(file.content, markup=False)
        return

    if not outcome.matches:
        console.print(f"[yellow]No sessions match {session_name!r}[/yellow]")
        raise typer.Exit(1)

    label = "Multiple sessions" if outcome.outcome == "ambiguous" else "Similar sessions"
    table = Table(title=f"{label} match {session_name!r}")
    table.add_column("Session")
    table.add_column("Project")
    table.add_column("Version", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Created")
    for match in outcome.matches:
        table.add_row(
            match.session_name,
            match.project_name,
            str(match.version),
            str(len(match.files)),
            match.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
    console.print("Narrow the search with --project.")


@app.command("list")
def list_sessions(
    project: Optional[str] = typer.Option(None, help="Project name substring"),
    file_path: Optional[str] = typer.Option(None, "--file", help="File path substring"),
    limit: int = typer.Option(20, min=1, max=100, help="Maximum results"),
    offset: int = typer.Option(0, min=0, help="Results to skip"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help=USER_OPTION_HELP),
) -> None:
    """List saved sessions, newest first."""
    from context_engine.db.connection import db_session
    from context_engine.schemas import ListSessionsRequest
    from context_engine.services.session_service import SessionService

    _init_logging()
    request = ListSessionsRequest(
        project_name=project, file_path=file_path, limit=limit, offset=offset
    )

    with db_session() as db:
        user_id = _resolve_user_id(db, user)
        result = SessionService(db).list_sessions(request, user_id)

    if not result.sessions:
        console.print("[yellow]No sessions found[/yellow]")
        return

    table = Table(title=f"Sessions ({result.total} total)")
    table.add_column("Session")
    table.add_column("Project")
    table.add_column("Version", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Updated")
    for item in result.sessions:
        table.add_row(
            item.session_name,
            item.project_name,
            str(item.version),
            str(len(item.files)),
            item.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def stats(
    user: Optional[str] = typer.Option(None, "--user", "-u", help=USER_OPTION_HELP),
) -> None:
    """Show session statistics."""
    from context_engine.db.connection import db_session
    from context_engine.services.session_service import SessionService

    _init_logging()
    with db_session() as db:
        user_id = _resolve_user_id(db, user)
        result = SessionService(db).get_session_stats(user_id)

    console.print("[bold]Session statistics:[/bold]")
    console.print(f"  Sessions: {result.total_sessions}")
    console.print(f"  Files: {result.total_files}")
    console.print(f"  Messages: {result.total_messages}")
    console.print(f"  Projects: {result.unique_projects}")
    console.print(f"  Project contexts: {result.project_contexts}")
    console.print(f"  Avg files/session: {result.avg_files_per_session}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind to"),
    port: Optional[int] = typer.Option(None, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.

    Runs the Context Engine API server.
    """
    import uvicorn

    from context_engine.config import settings

    host = host or settings.api_host
    port = port or settings.api_port
    reload = reload or settings.api_reload

    console.print("[bold green]Starting Context Engine API server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"\n  API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "context_engine.api.app:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
