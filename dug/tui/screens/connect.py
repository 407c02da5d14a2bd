"""Connect screen: the entry point of a session."""
from __future__ import annotations

import logging
import random

import questionary
from questionary import Choice, Separator
from rich.panel import Panel

from ...connections import SavedConnection, load_connections, save_connection
from ...errors import DugError
from ..components import BRAND_STYLE, render_frame, render_key_hints
from ..navigator import ConnectParams, NavigationEntry, Screen
from ..router import NavResult, Router, register_screen

logger = logging.getLogger("dug.connect")

DEFAULT_URL = "http://localhost:9925"
DEFAULT_USER = "HDB_ADMIN"
MAX_RECENT_SHOWN = 5
FALLBACK_ERROR = "I cannot smell the server. Is it running?"

# Failed attempt, kept between renders so the form comes back pre-filled
PREFILL_KEY = "connect_prefill"
ERROR_KEY = "connect_error"


def _tagline() -> str:
    return "SQUIRREL!!!" if random.random() < 0.1 else "I have just met your data and I LOVE it!"


async def _pick_recent(recent: list[SavedConnection]) -> SavedConnection | str | None:
    choices: list = [Choice(title=c.label, value=c) for c in recent[:MAX_RECENT_SHOWN]]
    choices.extend([
        Separator(),
        Choice(title="New connection", value="new"),
        Choice(title="Quit", value="exit"),
    ])
    return await questionary.select(
        "Recent connections",
        choices=choices,
        style=BRAND_STYLE,
    ).ask_async()


@register_screen(Screen.CONNECT)
async def show_connect(router: Router) -> NavResult:
    """Collect URL, username and password, then connect and open the dashboard."""
    params = router.nav.current().params
    if not isinstance(params, ConnectParams):
        return "home"

    render_frame(router)
    router.console.print(Panel.fit(f"[bold cyan]dug 🐕[/bold cyan]\n[dim]{_tagline()}[/dim]", border_style="cyan"))
    router.console.print()

    error = router.state.data.pop(ERROR_KEY, None)
    if error:
        router.console.print(f"[red]{error}[/red]\n")

    url, username = router.state.data.pop(PREFILL_KEY, (params.url or "", params.username or ""))
    password = params.password or ""

    recent = load_connections(router.settings.connections_path)
    if recent and not url:
        picked = await _pick_recent(recent)
        if picked is None or picked == "exit":
            return "exit"
        if isinstance(picked, SavedConnection):
            url, username = picked.url, picked.username

    render_key_hints(router)
    url = await questionary.text("URL", default=url or DEFAULT_URL, style=BRAND_STYLE).ask_async()
    if url is None:
        return "exit"
    username = await questionary.text("Username", default=username or DEFAULT_USER, style=BRAND_STYLE).ask_async()
    if username is None:
        return "exit"
    password = await questionary.password("Password", default=password, style=BRAND_STYLE).ask_async()
    if password is None:
        return "exit"

    url = url.strip() or DEFAULT_URL
    username = username.strip() or DEFAULT_USER
    if not password.strip():
        router.state.data[ERROR_KEY] = "A password is required."
        router.state.data[PREFILL_KEY] = (url, username)
        return None

    try:
        with router.console.status(f"Connecting to {url}...", spinner="dots"):
            await router.client.connect(url, username, password.strip())
    except DugError as exc:
        router.state.data[ERROR_KEY] = str(exc) or FALLBACK_ERROR
        router.state.data[PREFILL_KEY] = (url, username)
        return None

    save_connection(router.settings.connections_path, url, username, router.settings.DUG_MAX_RECENT)
    router.client.clear_cache()
    router.state.remember(connected_url=url, username=username)
    logger.info("Connected, navigating to dashboard")
    return NavigationEntry.dashboard(url)
