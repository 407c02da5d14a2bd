"""Navigation stack for screen-based routing."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union
from urllib.parse import urlsplit

logger = logging.getLogger("dug.nav")

APP_LABEL = "dug \U0001F415"


class Screen(str, Enum):
    CONNECT = "connect"
    DASHBOARD = "dashboard"
    DATABASE = "database"
    TABLE = "table"
    RECORD = "record"
    SYSTEM = "system"


# ─── Per-screen parameters ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class ConnectParams:
    url: str | None = None
    username: str | None = None
    password: str | None = None


@dataclass(frozen=True)
class DashboardParams:
    url: str = ""


@dataclass(frozen=True)
class DatabaseParams:
    database: str


@dataclass(frozen=True)
class TableParams:
    database: str
    table: str


@dataclass(frozen=True)
class RecordParams:
    database: str
    table: str
    record: dict[str, Any] = field(default_factory=dict)
    primary_key: str = "id"

    @property
    def record_id(self) -> Any:
        return self.record.get(self.primary_key, self.record.get("id", "record"))


@dataclass(frozen=True)
class SystemParams:
    pass


ScreenParams = Union[ConnectParams, DashboardParams, DatabaseParams, TableParams, RecordParams, SystemParams]

PARAMS_FOR_SCREEN: dict[Screen, type] = {
    Screen.CONNECT: ConnectParams,
    Screen.DASHBOARD: DashboardParams,
    Screen.DATABASE: DatabaseParams,
    Screen.TABLE: TableParams,
    Screen.RECORD: RecordParams,
    Screen.SYSTEM: SystemParams,
}


@dataclass(frozen=True)
class NavigationEntry:
    screen: Screen
    params: ScreenParams

    def __post_init__(self) -> None:
        expected = PARAMS_FOR_SCREEN[self.screen]
        if not isinstance(self.params, expected):
            raise TypeError(f"{self.screen.value} screen takes {expected.__name__}, got {type(self.params).__name__}")

    @classmethod
    def connect(cls, url: str | None = None, username: str | None = None, password: str | None = None) -> NavigationEntry:
        return cls(Screen.CONNECT, ConnectParams(url=url, username=username, password=password))

    @classmethod
    def dashboard(cls, url: str = "") -> NavigationEntry:
        return cls(Screen.DASHBOARD, DashboardParams(url=url))

    @classmethod
    def database(cls, database: str) -> NavigationEntry:
        return cls(Screen.DATABASE, DatabaseParams(database=database))

    @classmethod
    def table(cls, database: str, table: str) -> NavigationEntry:
        return cls(Screen.TABLE, TableParams(database=database, table=table))

    @classmethod
    def record(cls, database: str, table: str, record: dict[str, Any], primary_key: str = "id") -> NavigationEntry:
        return cls(Screen.RECORD, RecordParams(database=database, table=table, record=record, primary_key=primary_key))

    @classmethod
    def system(cls) -> NavigationEntry:
        return cls(Screen.SYSTEM, SystemParams())


# ─── State machine ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NavigationState:
    """Immutable, never-empty stack of navigation entries.

    Transitions return a new state, except ``pop`` on a single-frame stack
    which returns ``self`` so callers can detect the no-op by identity.
    """

    stack: tuple[NavigationEntry, ...]

    def __post_init__(self) -> None:
        if not self.stack:
            raise ValueError("navigation stack cannot be empty")

    @classmethod
    def initial(cls, root: NavigationEntry) -> NavigationState:
        return cls((root,))

    @property
    def current(self) -> NavigationEntry:
        return self.stack[-1]

    @property
    def root(self) -> NavigationEntry:
        return self.stack[0]

    def push(self, entry: NavigationEntry) -> NavigationState:
        return NavigationState(self.stack + (entry,))

    def pop(self) -> NavigationState:
        if len(self.stack) <= 1:
            return self
        return NavigationState(self.stack[:-1])

    def reset(self) -> NavigationState:
        return NavigationState(self.stack[:1])

    def __len__(self) -> int:
        return len(self.stack)


def _host_of(url: str) -> str:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        host = None
    return host or url


def breadcrumb_items(entry: NavigationEntry, connected_url: str = "") -> list[str]:
    """Breadcrumb for the current screen only: app, host, then screen path."""
    items = [APP_LABEL]
    if connected_url:
        items.append(_host_of(connected_url))

    params = entry.params
    if isinstance(params, DatabaseParams):
        items.append(params.database or "database")
    elif isinstance(params, TableParams):
        items.extend([params.database or "db", params.table or "table"])
    elif isinstance(params, RecordParams):
        items.extend([params.database or "db", params.table or "table", str(params.record_id)])
    elif isinstance(params, SystemParams):
        items.append("system")
    return items


class Navigator:
    """Stack-based navigation with breadcrumbs.

    - Push on enter: navigating forward pushes to stack
    - Pop on Back: returns to previous screen (the root is never popped)
    - Reset on Home: collapses the stack to the session root
    """

    def __init__(self, root: NavigationEntry | None = None):
        """Initialize with the session's entry screen (connect by default)."""
        self.state = NavigationState.initial(root or NavigationEntry.connect())

    @property
    def stack(self) -> tuple[NavigationEntry, ...]:
        return self.state.stack

    def push(self, entry: NavigationEntry) -> None:
        """Navigate to a new screen by pushing onto the stack."""
        logger.info("push %s", entry.screen.value)
        self.state = self.state.push(entry)

    def pop(self) -> NavigationEntry | None:
        """Go back to the previous screen.

        Returns:
            The entry that was popped, or None if at root
        """
        before = self.state
        self.state = before.pop()
        if self.state is before:
            return None
        logger.info("pop %s", before.current.screen.value)
        return before.current

    def home(self) -> None:
        """Reset navigation to the session root."""
        self.state = self.state.reset()

    def current(self) -> NavigationEntry:
        return self.state.current

    def depth(self) -> int:
        return len(self.state)

    def breadcrumbs(self, connected_url: str = "") -> str:
        """Breadcrumb string like "dug 🐕 > localhost > data > dog"."""
        return " > ".join(breadcrumb_items(self.current(), connected_url))
