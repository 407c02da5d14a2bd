"""Recently used connections (URL + username, never passwords)."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

logger = logging.getLogger("dug.connect")

MAX_RECENT = 10


@dataclass(frozen=True)
class SavedConnection:
    url: str
    username: str

    @property
    def label(self) -> str:
        return f"{self.username}@{self.url}"


def load_connections(path: Path) -> list[SavedConnection]:
    """Read saved connections, most recent first.

    A missing or unreadable file yields an empty list.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return []
    if not isinstance(raw, list):
        return []

    out: list[SavedConnection] = []
    for item in raw:
        if isinstance(item, dict) and isinstance(item.get("url"), str) and isinstance(item.get("username"), str):
            out.append(SavedConnection(url=item["url"], username=item["username"]))
    return out


def remember_connection(
    existing: list[SavedConnection],
    url: str,
    username: str,
    limit: int = MAX_RECENT,
) -> list[SavedConnection]:
    """Move (url, username) to the front, dropping duplicates and the overflow."""
    entry = SavedConnection(url=url, username=username)
    rest = [c for c in existing if c != entry]
    return [entry, *rest][: max(0, limit)]


def save_connection(path: Path, url: str, username: str, limit: int = MAX_RECENT) -> None:
    """Record a successful connection. Failures are logged, never raised."""
    try:
        updated = remember_connection(load_connections(path), url, username, limit)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps([asdict(c) for c in updated], indent=2), encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not save connection to %s: %s", path, exc)
