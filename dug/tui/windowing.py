"""Viewport math for the data grid.

Pure functions, recomputed on every render: which rows are visible given
the selection and terminal height, and which columns fit given their
natural widths, the horizontal scroll offset and the terminal width.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

MIN_COL_WIDTH = 8
MAX_COL_WIDTH = 30
COL_GAP = 2
# Row marker: "  ▶ " / "    "
MARKER_WIDTH = 4
ELLIPSIS = "…"

TIMESTAMP_COLS = frozenset({"__createdtime__", "__updatedtime__"})

_NEWLINES = re.compile(r"[\r\n]+")


# ═══════════════════════════════════════════════════════════════════════════════
# CELL FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

def format_timestamp(value: Any) -> str:
    """Render epoch milliseconds as a local date-time string."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    try:
        return datetime.fromtimestamp(value / 1000).strftime("%x, %X")
    except (OverflowError, OSError, ValueError):
        return str(value)


def format_cell(value: Any, column: str) -> str:
    """Format one cell as a single-line string."""
    if value is None:
        return ""
    if column in TIMESTAMP_COLS and isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_timestamp(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    else:
        text = str(value)
    return _NEWLINES.sub(" ", text)


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    if max_len <= 0:
        return ""
    return text[: max_len - 1] + ELLIPSIS


def pad_cell(text: str, width: int) -> str:
    cut = truncate(text, width)
    return cut + " " * max(0, width - len(cut))


def order_columns(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    """Column order for a page of rows: regular keys first, ``__internal__`` last."""
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    keys = list(seen)
    regular = [k for k in keys if not k.startswith("__")]
    internal = [k for k in keys if k.startswith("__")]
    return regular + internal


def natural_width(column: str, rows: Iterable[Mapping[str, Any]]) -> int:
    widest = len(column)
    for row in rows:
        widest = max(widest, len(format_cell(row.get(column), column)))
    return max(MIN_COL_WIDTH, min(widest, MAX_COL_WIDTH))


def natural_widths(columns: Sequence[str], rows: Sequence[Mapping[str, Any]]) -> list[int]:
    return [natural_width(col, rows) for col in columns]


# ═══════════════════════════════════════════════════════════════════════════════
# VERTICAL WINDOWING
# ═══════════════════════════════════════════════════════════════════════════════

def row_window(total_rows: int, selected_row: int, max_visible_rows: int) -> tuple[int, int]:
    """Return ``(start, end)`` of the visible rows, end exclusive.

    The window starts at 0 while the selection fits in the first window;
    past that it trails the selection so the selected row is the last one
    visible.
    """
    total = max(0, total_rows)
    size = min(max(0, max_visible_rows), total)
    start = 0
    if selected_row >= size:
        start = selected_row - size + 1
    start = max(0, min(start, total - size))
    return start, start + size


# ═══════════════════════════════════════════════════════════════════════════════
# HORIZONTAL WINDOWING
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ColumnWindow:
    start: int
    end: int
    widths: tuple[int, ...]
    hidden_left: int
    hidden_right: int

    @property
    def count(self) -> int:
        return self.end - self.start


def column_window(widths: Sequence[int], start: int, budget: int, gap: int = COL_GAP) -> ColumnWindow:
    """Pack columns left to right from ``start`` into ``budget`` characters.

    Every column after the first also pays ``gap``. A first column wider
    than the whole budget is clipped (never below MIN_COL_WIDTH) rather
    than dropped.
    """
    n = len(widths)
    if n == 0:
        return ColumnWindow(0, 0, (), 0, 0)
    start = max(0, min(start, n - 1))

    used = 0
    fitted: list[int] = []
    for i in range(start, n):
        cost = widths[i] + (gap if fitted else 0)
        if used + cost > budget:
            if not fitted:
                fitted.append(max(MIN_COL_WIDTH, budget))
            break
        used += cost
        fitted.append(widths[i])

    end = start + len(fitted)
    return ColumnWindow(start, end, tuple(fitted), start, n - end)


def max_column_start(widths: Sequence[int], budget: int, gap: int = COL_GAP) -> int:
    """Largest useful scroll offset: pack backward from the last column."""
    n = len(widths)
    if n == 0:
        return 0
    used = 0
    start = n
    for i in range(n - 1, -1, -1):
        cost = widths[i] + (gap if start < n else 0)
        if used + cost > budget:
            break
        used += cost
        start = i
    return min(start, n - 1)


# ═══════════════════════════════════════════════════════════════════════════════
# COMBINED VIEWPORT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ViewportWindow:
    row_start: int
    row_end: int
    col_start: int
    col_end: int
    hidden_left: int
    hidden_right: int
    col_widths: tuple[int, ...]

    @property
    def rows_above(self) -> int:
        return self.row_start


def viewport(
    total_rows: int,
    selected_row: int,
    max_visible_rows: int,
    widths: Sequence[int],
    col_start: int,
    terminal_width: int,
    marker_width: int = MARKER_WIDTH,
    gap: int = COL_GAP,
) -> ViewportWindow:
    row_start, row_end = row_window(total_rows, selected_row, max_visible_rows)
    budget = terminal_width - marker_width
    start = min(max(0, col_start), max_column_start(widths, budget, gap))
    cols = column_window(widths, start, budget, gap)
    return ViewportWindow(
        row_start=row_start,
        row_end=row_end,
        col_start=cols.start,
        col_end=cols.end,
        hidden_left=cols.hidden_left,
        hidden_right=cols.hidden_right,
        col_widths=cols.widths,
    )
