"""RelayChat CLI: server and account administration.

Usage:
    relaychat serve                         Start the API server
    relaychat user create --email a@b.c     Create a user and print its token
    relaychat integrations list             Show the integration catalog
    relaychat version                       Show version info
"""

import logging

import typer
from rich.console import Console
from rich.table import Table

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="relaychat",
    help="Conversational automation over third-party integrations",
    no_args_is_help=True,
)
user_app = typer.Typer(help="Manage users")
integrations_app = typer.Typer(help="Inspect the integration catalog")

app.add_typer(user_app, name="user")
app.add_typer(integrations_app, name="integrations")

console = Console()


# --- Version ---


@app.command()
def version():
    """Show RelayChat version and dependency info."""
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("relaychat")
    except Exception:
        v = "unknown"
    console.print(f"[bold]RelayChat[/bold] v{v}")
    try:
        console.print(f"  anthropic: {pkg_version('anthropic')}")
    except Exception:
        console.print("  anthropic: [red]not installed[/red]")


# --- Server ---


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
    log_level: str = typer.Option("info", "--log-level", help="uvicorn log level"),
):
    """Start the RelayChat API server."""
    import uvicorn

    console.print(f"[green]Starting RelayChat on http://{host}:{port}[/green]")
    uvicorn.run(
        "relaychat.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# --- User commands ---


@user_app.command("create")
def user_create(
    email: str = typer.Option(..., "--email", "-e", help="Login email"),
    user_type: str = typer.Option(
        "regular", "--type", "-t", help="Account tier: guest or regular"
    ),
):
    """Create a user and print its bearer token (shown once)."""
    from sqlalchemy import select

    from relaychat.api.middleware.auth import issue_token
    from relaychat.db.connection import get_db_context, init_db
    from relaychat.db.models import User, UserType

    valid_types = [t.value for t in UserType]
    if user_type not in valid_types:
        console.print(f"[red]Invalid type '{user_type}'. Use one of: {', '.join(valid_types)}[/red]")
        raise typer.Exit(1)

    init_db()
    token, digest = issue_token()
    with get_db_context() as db:
        if db.execute(select(User).where(User.email == email)).scalar_one_or_none():
            console.print(f"[red]User {email} already exists.[/red]")
            raise typer.Exit(1)
        user = User(email=email, user_type=user_type, token_hash=digest)
        db.add(user)
        db.flush()
        user_id = user.id

    _log.info("Created user %s (%s)", user_id, user_type)
    console.print(f"[green]Created user[/green] {email} ({user_type})")
    console.print(f"  id:    {user_id}")
    console.print(f"  token: [bold]{token}[/bold]")
    console.print("[yellow]Store this token now; it cannot be shown again.[/yellow]")


# --- Integration commands ---


@integrations_app.command("list")
def integrations_list():
    """Show catalog integrations with their auth config and tool counts."""
    from relaychat.orchestrator.agent.tools import build_tool_registry
    from relaychat.services.integration_catalog import get_integrations

    registry = build_tool_registry()
    table = Table(title="Integrations")
    table.add_column("Name", style="cyan")
    table.add_column("App ID")
    table.add_column("Auth Config")
    table.add_column("Tools", justify="right")
    for integration in get_integrations():
        table.add_row(
            integration.name,
            integration.app_id,
            integration.auth_config_id or "[dim]not required[/dim]",
            str(len(registry.by_integration(integration.name))),
        )
    console.print(table)


if __name__ == "__main__":
    app()
