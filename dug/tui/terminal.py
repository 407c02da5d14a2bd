"""Terminal size as an explicit event source.

The router subscribes on start and unsubscribes on teardown; screens only
ever see the ``TerminalSize`` the router hands them.
"""
from __future__ import annotations

import logging
import shutil
import signal
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger("dug.app")

# Lines reserved for chrome: breadcrumb + margin, screen header, table
# header/separator, page indicator, key hints footer, margins.
RESERVED_LINES = 12
MIN_PAGE_SIZE = 5


@dataclass(frozen=True)
class TerminalSize:
    columns: int = 80
    rows: int = 24

    @property
    def table_page_size(self) -> int:
        return max(MIN_PAGE_SIZE, self.rows - RESERVED_LINES)


def read_terminal_size() -> TerminalSize:
    size = shutil.get_terminal_size(fallback=(80, 24))
    return TerminalSize(columns=size.columns or 80, rows=size.lines or 24)


Listener = Callable[[TerminalSize], None]


class TerminalSizeSource:
    """Publishes size changes to subscribers.

    ``start`` installs a SIGWINCH handler where the platform has one;
    ``poll`` can be called at any time to pick up a change manually.
    """

    def __init__(self, reader: Callable[[], TerminalSize] = read_terminal_size):
        self._reader = reader
        self._listeners: list[Listener] = []
        self._previous_handler: Any = None
        self._installed = False
        self.size = reader()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns the matching unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def poll(self) -> TerminalSize:
        size = self._reader()
        if size != self.size:
            self.size = size
            logger.debug("terminal resized to %dx%d", size.columns, size.rows)
            for listener in list(self._listeners):
                listener(size)
        return self.size

    def start(self) -> None:
        sigwinch = getattr(signal, "SIGWINCH", None)
        if sigwinch is None or self._installed:
            return
        try:
            self._previous_handler = signal.signal(sigwinch, lambda *_: self.poll())
            self._installed = True
        except ValueError:
            # signal handlers can only be installed from the main thread
            logger.debug("SIGWINCH handler not installed (not main thread)")

    def stop(self) -> None:
        if not self._installed:
            return
        signal.signal(signal.SIGWINCH, self._previous_handler or signal.SIG_DFL)
        self._installed = False
        self._previous_handler = None
