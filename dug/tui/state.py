"""Session state shared across screens."""
from __future__ import annotations

from dataclasses import dataclass, field

from .terminal import TerminalSize


@dataclass
class UIState:
    """UI session state - what the user is connected to and where they have been.

    This state persists across screen transitions during a single TUI session.
    Screen-local state (selection, filters, page) lives in each screen and is
    dropped when the screen is left.
    """

    # Active connection
    connected_url: str = ""
    username: str | None = None

    # Latest size published by the terminal source
    terminal: TerminalSize = field(default_factory=TerminalSize)

    # Session history for debugging
    session_history: list[str] = field(default_factory=list)

    # Last message to flash on the next render (e.g. "Copied!")
    flash: str | None = None

    # Generic cross-screen data store
    data: dict = field(default_factory=dict)

    def remember(self, **kwargs) -> None:
        """Update state with new values; unknown names are ignored.

        Example:
            state.remember(connected_url="http://localhost:9925", username="HDB_ADMIN")
        """
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def add_to_history(self, screen: str) -> None:
        """Record screen visit in session history."""
        self.session_history.append(screen)

    def take_flash(self) -> str | None:
        message, self.flash = self.flash, None
        return message

    def forget_connection(self) -> None:
        self.connected_url = ""
        self.username = None
