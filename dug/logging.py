from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

ROOT_LOGGER = "dug"


def namespace_of(logger_name: str) -> str:
    """Map a logger name to its debug namespace (``dug.api`` -> ``dug:api``)."""
    return logger_name.replace(".", ":")


class NamespaceFilter(logging.Filter):
    """Pass records whose namespace matches a debug pattern.

    The pattern is a comma/space separated list of globs. Entries prefixed
    with ``-`` exclude, e.g. ``dug:*,-dug:nav``.
    """

    def __init__(self, pattern: str):
        super().__init__()
        self.include: list[str] = []
        self.exclude: list[str] = []
        for part in pattern.replace(",", " ").split():
            if part.startswith("-"):
                self.exclude.append(part[1:])
            else:
                self.include.append(part)

    def matches(self, namespace: str) -> bool:
        if any(fnmatch.fnmatchcase(namespace, p) for p in self.exclude):
            return False
        return any(fnmatch.fnmatchcase(namespace, p) for p in self.include)

    def filter(self, record: logging.LogRecord) -> bool:
        return self.matches(namespace_of(record.name))


def setup_debug_logging(settings: object) -> Path | None:
    """Configure the opt-in append-only debug log.

    Returns the log file path, or None when debug logging is disabled.

    Notes:
      - Nothing is written to the terminal: the TUI owns the screen.
      - This function is safe to call multiple times (it resets handlers).
    """

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers = []
    root.propagate = False

    pattern = getattr(settings, "debug_pattern", None)
    if not pattern:
        root.addHandler(logging.NullHandler())
        return None

    log_file = Path(getattr(settings, "debug_log_path"))
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level_name = str(getattr(settings, "DUG_LOG_LEVEL", "DEBUG") or "DEBUG").upper().strip()
    level = getattr(logging, level_name, logging.DEBUG)

    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    file_handler = logging.FileHandler(filename=str(log_file), mode="a", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(fmt))
    file_handler.addFilter(NamespaceFilter(pattern))

    root.setLevel(level)
    root.addHandler(file_handler)

    logging.getLogger("dug.app").info("dug debug logging enabled (file=%s, pattern=%s)", os.fspath(log_file), pattern)

    return log_file
