from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .client import HarperClient
from .connections import load_connections
from .errors import DugError
from .logging import setup_debug_logging
from .settings import Settings, load_settings

app = typer.Typer(
    add_completion=False,
    help="dug: interactive, read-only data exploration for Harper",
    rich_markup_mode="rich",
)
console = Console()
logger = logging.getLogger("dug.app")


# ═══════════════════════════════════════════════════════════════════════════════
# TUI LAUNCH
# ═══════════════════════════════════════════════════════════════════════════════

async def _auto_connect(client: HarperClient, url: str, user: str, password: str) -> bool:
    logger.info("Auto-connecting to %s", url)
    try:
        with console.status(f"Connecting to {url}...", spinner="dots"):
            await client.connect(url, user, password)
    except DugError as exc:
        logger.error("Auto-connect failed: %s", exc)
        console.print(f"[red]Connection failed:[/red] {exc}")
        console.print("[dim]Starting in connect mode...[/dim]\n")
        return False
    return True


async def _run_tui(settings: Settings, url: str | None, user: str | None, password: str | None) -> None:
    """Launch the screen router, starting on the dashboard when auto-connect works."""
    from .tui.navigator import NavigationEntry, Navigator
    from .tui.router import Router
    from .tui.state import UIState
    # Import screens to register them
    from .tui import screens  # noqa: F401

    async with HarperClient.from_settings(settings) as client:
        state = UIState()
        root = NavigationEntry.connect(url, user, password)
        if url and user and password and await _auto_connect(client, url, user, password):
            root = NavigationEntry.dashboard(url)
            state.remember(connected_url=url, username=user)

        router = Router(
            console=console,
            settings=settings,
            client=client,
            state=state,
            nav=Navigator(root),
        )
        # Alternate screen buffer, restored on exit
        with console.screen():
            await router.run()


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN CALLBACK
# ═══════════════════════════════════════════════════════════════════════════════

@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Harper instance URL (default: HARPER_URL)"),
    user: Optional[str] = typer.Option(None, "--user", help="Username (default: HARPER_USER)"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="Password (default: HARPER_PASSWORD)"),
    whats_up: bool = typer.Option(False, "--whats-up", help="what's up Dug?"),
    version: bool = typer.Option(False, "--version", help="Show the version and exit"),
):
    """
    [bold]dug[/bold]: browse a Harper instance from the terminal.

    [dim]Run without a command to open the browser. With URL, user and
    password all set it connects straight away.[/dim]

    [bold]Examples:[/bold]
      dug                                         # Pick or enter a connection
      dug -u http://localhost:9925 --user HDB_ADMIN -p secret
      dug recent                                  # List saved connections
    """
    if version:
        console.print(f"dug {__version__}")
        raise typer.Exit(code=0)
    if whats_up:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)
    if ctx.invoked_subcommand is not None:
        return

    settings = load_settings()
    setup_debug_logging(settings)
    logger.info("dug starting")

    try:
        asyncio.run(
            _run_tui(
                settings,
                url or settings.HARPER_URL,
                user or settings.HARPER_USER,
                password or settings.HARPER_PASSWORD,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[dim]👋 Interrupted. Goodbye![/]")
    raise typer.Exit(code=0)


# ═══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command("recent", help="List recently used connections")
def recent():
    settings = load_settings()
    saved = load_connections(settings.connections_path)
    if not saved:
        console.print("[dim]No saved connections yet.[/dim]")
        return

    table = Table(title="[bold]Recent connections[/bold]")
    table.add_column("#", style="dim", justify="right")
    table.add_column("URL", style="cyan")
    table.add_column("Username")
    for i, conn in enumerate(saved, 1):
        table.add_row(str(i), conn.url, conn.username)
    console.print(table)


def main():
    app()
