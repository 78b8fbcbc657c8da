"""TaskHive CLI - Typer-based command line interface."""

import asyncio
import os
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="taskhive",
    help="TaskHive - workspaces, tasks and chat with notification fan-out",
    no_args_is_help=True,
)

console = Console()

# Tables shown by `taskhive db status`
_STATUS_TABLES = [
    "users",
    "workspaces",
    "workspace_members",
    "projects",
    "tasks",
    "message_threads",
    "messages",
    "notifications",
]


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", "-h", help="Host to bind to")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = 8080,
    reload: Annotated[bool, typer.Option("--reload", help="Enable auto-reload")] = False,
) -> None:
    """Start the TaskHive web server."""
    import uvicorn

    console.print("[green]Starting TaskHive server[/green]")
    console.print(f"  URL: http://{host}:{port}")
    console.print(f"  API Docs: http://{host}:{port}/docs")
    console.print(f"  Notifications socket: ws://{host}:{port}/ws/notifications")
    console.print()

    uvicorn.run(
        "taskhive.api.server:app",
        host=host,
        port=port,
        reload=reload,
    )


# Database subcommands
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


def _sqlite_file(db_url: str) -> Path | None:
    if db_url.startswith("sqlite+aiosqlite:///"):
        return Path(db_url.replace("sqlite+aiosqlite:///", "", 1))
    return None


@db_app.command("migrate")
def db_migrate(
    db: Annotated[str | None, typer.Option("--db", "-d", help="Database path or URL")] = None,
    revision: Annotated[str, typer.Option("--revision", "-r", help="Target revision")] = "head",
) -> None:
    """Run database migrations using Alembic."""
    from alembic import command
    from alembic.config import Config

    if db:
        os.environ["TASKHIVE_DB"] = db

    # Find alembic.ini relative to the source tree, then the working directory
    alembic_ini = Path(__file__).parent.parent.parent / "alembic.ini"
    if not alembic_ini.exists():
        alembic_ini = Path("alembic.ini")

    if not alembic_ini.exists():
        console.print("[red]Error:[/red] alembic.ini not found")
        raise typer.Exit(1)

    console.print(f"[blue]Running migrations to revision:[/blue] {revision}")
    command.upgrade(Config(str(alembic_ini)), revision)
    console.print("[green]Migrations applied successfully[/green]")


@db_app.command("init")
def db_init(
    db: Annotated[str | None, typer.Option("--db", "-d", help="Database path or URL")] = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Drop and recreate tables")] = False,
) -> None:
    """Initialize the database and create all tables."""
    from taskhive.db import Base, close_db, init_db
    from taskhive.db.database import get_database_url

    if db:
        os.environ["TASKHIVE_DB"] = db

    db_url = get_database_url()
    db_file = _sqlite_file(db_url)

    async def _init():
        if force and db_file is not None and db_file.exists():
            console.print(f"[yellow]Dropping existing database:[/yellow] {db_file}")
            db_file.unlink()

        await init_db(db_url)
        console.print(f"[green]Database initialized:[/green] {db_file or db_url}")
        console.print(f"  Tables: {', '.join(Base.metadata.tables.keys())}")

        await close_db()

    asyncio.run(_init())


@db_app.command("status")
def db_status(
    db: Annotated[str | None, typer.Option("--db", "-d", help="Database path or URL")] = None,
) -> None:
    """Show row counts per table."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from taskhive.db import close_db, get_engine, init_db
    from taskhive.db.database import get_database_url

    if db:
        os.environ["TASKHIVE_DB"] = db

    db_url = get_database_url()
    db_file = _sqlite_file(db_url)

    if db_file is not None and not db_file.exists():
        console.print(f"[red]Database not found:[/red] {db_file}")
        console.print("Run 'taskhive db init' to create the database.")
        raise typer.Exit(1)

    async def _status():
        await init_db(db_url)

        table = Table(title="Database Status")
        table.add_column("Table")
        table.add_column("Count", justify="right")

        async with get_engine().connect() as conn:
            for name in _STATUS_TABLES:
                try:
                    result = await conn.execute(text(f"SELECT COUNT(*) FROM {name}"))
                    table.add_row(name, str(result.scalar()))
                except SQLAlchemyError:
                    table.add_row(name, "[dim]N/A[/dim]")

        console.print(table)
        await close_db()

    if db_file is not None:
        console.print(f"[blue]Database:[/blue] {db_file}")
        console.print(f"[blue]Size:[/blue] {db_file.stat().st_size / 1024:.1f} KB")
        console.print()

    asyncio.run(_status())


if __name__ == "__main__":
    app()
