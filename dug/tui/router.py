"""Main router and screen registry for the TUI."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from .navigator import NavigationEntry, Navigator, Screen
from .state import UIState
from .terminal import TerminalSize, TerminalSizeSource

if TYPE_CHECKING:
    from rich.console import Console

    from ..client import HarperClient
    from ..settings import Settings

logger = logging.getLogger("dug.app")

# What a screen hands back: a command ("exit", "home", "back"), a new entry
# to push, or None to be shown again.
NavResult = Union[str, NavigationEntry, None]
ScreenFn = Callable[["Router"], Awaitable[NavResult]]


class Router:
    """Main navigation loop with screen dispatch.

    The router maintains the main event loop and dispatches to registered
    screen coroutines based on the current navigation entry. It owns the
    terminal-size subscription for the lifetime of ``run``.
    """

    def __init__(
        self,
        console: Console,
        settings: Settings,
        client: HarperClient,
        state: UIState | None = None,
        nav: Navigator | None = None,
        terminal: TerminalSizeSource | None = None,
    ):
        """Initialize router with dependencies.

        Args:
            console: Rich Console for output
            settings: Application settings
            client: Harper query client shared by every screen
            state: UI session state
            nav: Navigator instance
            terminal: Terminal size source; screens read ``router.size``
        """
        self.console = console
        self.settings = settings
        self.client = client
        self.state = state or UIState()
        self.nav = nav or Navigator()
        self.terminal = terminal or TerminalSizeSource()

    @property
    def size(self) -> TerminalSize:
        return self.state.terminal

    def _on_resize(self, size: TerminalSize) -> None:
        self.state.terminal = size

    async def run(self) -> None:
        """Run the main navigation loop.

        Dispatches to screen coroutines until "exit" is received.
        Handles navigation commands: exit, home, back, or a new entry.
        """
        unsubscribe = self.terminal.subscribe(self._on_resize)
        self.terminal.start()
        self.state.terminal = self.terminal.size
        try:
            await self._loop()
        finally:
            unsubscribe()
            self.terminal.stop()

    async def _loop(self) -> None:
        while True:
            entry = self.nav.current()
            self.state.add_to_history(entry.screen.value)
            self.state.terminal = self.terminal.poll()

            screen_fn = SCREENS.get(entry.screen)
            if screen_fn is None:
                # Unknown screen - reset to home
                self.console.print(
                    f"[yellow]Warning:[/yellow] Unknown screen '{entry.screen.value}', "
                    "returning to the first screen"
                )
                self.nav.home()
                if self.nav.depth() == 1 and SCREENS.get(self.nav.current().screen) is None:
                    break
                continue

            try:
                result = await screen_fn(self)
            except KeyboardInterrupt:
                self.console.print("\n[dim]Interrupted. Returning home...[/]")
                self.nav.home()
                continue

            result = self._normalize_nav_result(result)

            if result == "exit":
                self.console.print("\n[dim]👋 Goodbye![/]")
                break
            elif result == "home":
                self.nav.home()
            elif result == "back":
                self.nav.pop()
            elif isinstance(result, NavigationEntry):
                # Returning the current entry means "refresh", not a new frame
                if result != entry:
                    self.nav.push(result)
            elif isinstance(result, str):
                logger.debug("ignoring unknown navigation result %r", result)
            # If result is None, stay on current screen

    def go_home_after_disconnect(self) -> None:
        """Drop the connection and restart the session at the connect screen."""
        self.client.disconnect()
        self.state.forget_connection()
        self.nav.state = self.nav.state.initial(NavigationEntry.connect())

    @staticmethod
    def _normalize_nav_result(result: Any) -> NavResult:
        """Normalize common nav aliases/titles to canonical commands.

        Some prompts may return rendered labels such as "← Back" instead of
        the internal value "back".
        """
        if result is None or isinstance(result, NavigationEntry):
            return result
        s = str(result).strip().lower()
        if not s:
            return None
        if s in {"back", "← back", "< back", "go back", "previous", "prev", "b", "esc"}:
            return "back"
        if s in {"home", "main", "main menu", "h"}:
            return "home"
        if s in {"exit", "quit", "q"}:
            return "exit"
        return str(result)


# Screen registry - maps screens to handler coroutines
SCREENS: dict[Screen, ScreenFn] = {}


def register_screen(screen: Screen):
    """Decorator to register a screen coroutine.

    Usage:
        @register_screen(Screen.DASHBOARD)
        async def show_dashboard(router: Router) -> NavResult:
            ...
    """
    def decorator(fn: ScreenFn) -> ScreenFn:
        SCREENS[screen] = fn
        return fn
    return decorator
