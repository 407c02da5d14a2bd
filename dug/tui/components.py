"""Reusable UI components for the TUI."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Sequence, TypeVar

import questionary
from questionary import Choice, Separator
from rapidfuzz import fuzz, process, utils
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .navigator import Screen
from .windowing import COL_GAP, MARKER_WIDTH, format_cell, natural_widths, order_columns, pad_cell, viewport

if TYPE_CHECKING:
    from rich.console import Console

    from ..models import TableSchema
    from ..relationships import RelationshipInfo
    from .fetch import ApiCall
    from .router import Router
    from .terminal import TerminalSize

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════════════════════════
# BRAND STYLING
# ═══════════════════════════════════════════════════════════════════════════════

BRAND_STYLE = questionary.Style([
    ("qmark", "fg:#00b4d8 bold"),         # Cyan accent
    ("question", "bold"),
    ("answer", "fg:#90e0ef bold"),         # Light cyan for answers
    ("highlighted", "fg:#00b4d8 bold"),    # Highlighted item
    ("pointer", "fg:#00b4d8 bold"),        # Arrow pointer
    ("selected", "fg:#90e0ef"),            # Selected item
])

EMPTY_MESSAGE = "I looked everywhere but couldn't find anything."

# Minimum match score out of 100 for the list filters
FUZZY_SCORE_CUTOFF = 60


# ═══════════════════════════════════════════════════════════════════════════════
# NAVIGATION HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def nav_choices(include_separator: bool = True, include_back: bool = True) -> list:
    """Standard Back/Home/Quit choices.

    Append to every screen's menu for consistent navigation. The fixed
    shortcut keys only take effect in shortcut menus.
    """
    choices: list = []
    if include_separator:
        choices.append(Separator())
    if include_back:
        choices.extend([
            Choice(title="← Back", value="back", shortcut_key="b"),
            Choice(title="Home", value="home", shortcut_key="0"),
        ])
    choices.append(Choice(title="Quit", value="exit", shortcut_key="q"))
    return choices


def action(key: str, label: str, value: str | None = None) -> Choice:
    """A menu entry bound to a single-key shortcut (letters and digits only)."""
    return Choice(title=label, value=value or label, shortcut_key=key)


async def ask_action(message: str, choices: list, default: Any = None, shortcuts: bool = False) -> Any:
    """Show a select menu; Ctrl+C or Esc-cancel reads as "back"."""
    kwargs: dict[str, Any] = {"style": BRAND_STYLE, "use_shortcuts": shortcuts}
    if shortcuts:
        # j/k are bound as actions on screens that scroll
        kwargs["use_jk_keys"] = False
    if default is not None and any(getattr(c, "value", None) == default for c in choices):
        kwargs["default"] = default
    result = await questionary.select(message, choices=choices, **kwargs).ask_async()
    return "back" if result is None else result


# ═══════════════════════════════════════════════════════════════════════════════
# KEY HINTS
# ═══════════════════════════════════════════════════════════════════════════════

# List screens drive a plain arrow/jk menu whose actions are labelled with
# the same keys; grid screens bind these keys directly as menu shortcuts.
KEY_HINTS: dict[Screen, list[tuple[str, str]]] = {
    Screen.CONNECT: [("Tab/Enter", "next field"), ("Ctrl+C", "quit")],
    Screen.DASHBOARD: [("j/k", "navigate"), ("Enter", "select"), ("/", "filter"), ("s", "system"), ("r", "refresh"), ("d", "disconnect")],
    Screen.DATABASE: [("j/k", "navigate"), ("Enter", "select"), ("/", "filter"), ("i", "info"), ("r", "refresh")],
    Screen.TABLE: [
        ("j/k", "navigate"),
        ("h/l", "scroll cols"),
        ("v", "view"),
        ("n/p", "page"),
        ("a", "search"),
        ("f", "query"),
        ("c", "columns"),
        ("s", "sort"),
        ("i", "schema"),
        ("r", "refresh"),
    ],
    Screen.RECORD: [("j/k", "scroll"), ("o", "follow link"), ("y", "copy")],
    Screen.SYSTEM: [("r", "refresh")],
}


def key_hints(screen: Screen, depth: int = 1) -> list[tuple[str, str]]:
    """Hints for ``screen``; back is only offered when there is somewhere to go."""
    hints = list(KEY_HINTS.get(screen, []))
    if screen is Screen.CONNECT:
        return hints
    if depth > 1:
        hints.append(("b", "back"))
    hints.append(("q", "quit"))
    return hints


def hints_text(hints: Iterable[tuple[str, str]]) -> Text:
    text = Text()
    for i, (key, label) in enumerate(hints):
        if i:
            text.append("  ")
        text.append(key, style="bold")
        text.append(f": {label}", style="dim")
    return text


def render_key_hints(router: Router) -> None:
    router.console.print()
    router.console.print(hints_text(key_hints(router.nav.current().screen, router.nav.depth())))


# ═══════════════════════════════════════════════════════════════════════════════
# CHROME
# ═══════════════════════════════════════════════════════════════════════════════

def render_breadcrumbs(router: Router) -> None:
    """Render navigation breadcrumbs for the current screen."""
    breadcrumbs = router.nav.breadcrumbs(router.state.connected_url)
    router.console.print(f"[dim]{breadcrumbs}[/dim]\n")


def render_frame(router: Router) -> None:
    """Clear the screen and draw the breadcrumb line plus any pending flash."""
    router.console.clear()
    render_breadcrumbs(router)
    flash = router.state.take_flash()
    if flash:
        router.console.print(f"[green]{flash}[/green]\n")


async def load(console: Console, call: ApiCall, message: str, *args: Any, **kwargs: Any) -> None:
    """Run ``call`` behind a spinner; the outcome lands on the call itself."""
    with console.status(message, spinner="dots"):
        await call.execute(*args, **kwargs)


async def reload(console: Console, call: ApiCall, message: str) -> None:
    with console.status(message, spinner="dots"):
        await call.retry()


def render_error(console: Console, message: str, retry: bool = True) -> None:
    """Render a failed load: the message, then how to retry."""
    content = f"[bold red]✗ {message}[/bold red]"
    if retry:
        content += "\n\n[dim]Press r to retry[/dim]"
    console.print(Panel.fit(content, border_style="red", title="Error"))
    console.print()


def render_stats_table(console: Console, stats: Mapping[str, Any], title: str = "Stats") -> None:
    """Render a two-column statistics table."""
    table = Table(title=f"[bold]{title}[/bold]", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", style="cyan")

    for key, value in stats.items():
        if isinstance(value, int) and not isinstance(value, bool):
            table.add_row(key, f"{value:,}")
        else:
            table.add_row(key, str(value))

    console.print(table)
    console.print()


# ═══════════════════════════════════════════════════════════════════════════════
# FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

def format_bytes(num: float) -> str:
    if num >= 1024 ** 3:
        return f"{num / 1024 ** 3:.1f} GB"
    if num >= 1024 ** 2:
        return f"{num / 1024 ** 2:.1f} MB"
    if num >= 1024:
        return f"{num / 1024:.1f} KB"
    return f"{num:g} B"


def format_uptime(seconds: float) -> str:
    seconds = int(seconds)
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    return " ".join(parts)


def plural(count: int, word: str) -> str:
    return f"{count:,} {word}{'' if count == 1 else 's'}"


# ═══════════════════════════════════════════════════════════════════════════════
# FUZZY FILTER
# ═══════════════════════════════════════════════════════════════════════════════

def fuzzy_filter(items: Sequence[T], query: str, key: Callable[[T], str] = str) -> list[T]:
    """Items matching ``query``, best match first; everything when the query is blank.

    Typos are tolerated: ``bread`` still finds ``breed``.
    """
    query = query.strip()
    if not query:
        return list(items)
    matches = process.extract(
        query,
        [key(item) for item in items],
        scorer=fuzz.WRatio,
        processor=utils.default_process,
        score_cutoff=FUZZY_SCORE_CUTOFF,
        limit=None,
    )
    return [items[index] for _, _, index in matches]


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEMA INFO
# ═══════════════════════════════════════════════════════════════════════════════

EXTRA_SCHEMA_FIELDS = (
    ("expiration", "Expiration"),
    ("ttl", "TTL"),
    ("export", "Export"),
    ("table_size", "Table Size"),
    ("db_size", "DB Size"),
    ("clustering", "Clustering"),
)


def schema_info_lines(schema: TableSchema, relationships: Sequence[RelationshipInfo] = ()) -> list[str]:
    lines = [
        f"Table: {schema.name}",
        f"Primary Key: {schema.hash_attribute}",
        f"Records: {schema.record_count:,}",
        f"Schema Defined: {'yes' if schema.schema_defined else 'no'}",
        f"Audit: {'yes' if schema.audit else 'no'}",
    ]
    extra = schema.extra
    for key, label in EXTRA_SCHEMA_FIELDS:
        if extra.get(key) is not None:
            lines.append(f"{label}: {extra[key]}")

    lines.extend(["", "Attributes:"])
    for attr in schema.attributes:
        badge = ""
        if attr.is_primary_key:
            badge = " [PK]"
        elif attr.indexed:
            badge = " [indexed]"
        lines.append(f"  {attr.attribute}{badge}")

    forward = [r for r in relationships if r.direction == "forward"]
    reverse = [r for r in relationships if r.direction == "reverse"]
    if forward or reverse:
        lines.extend(["", "Relationships:"])
        for r in forward:
            suffix = "" if r.source == "api" else " (inferred)"
            lines.append(f"  {r.attribute} → {r.target_table}{suffix}")
        for r in reverse:
            lines.append(f"  ← {r.target_table}.{r.reverse_attribute}")
    return lines


def indexed_summary(schema: TableSchema, max_show: int = 3) -> str:
    indexed = schema.indexed_attributes(include_primary_key=False)
    if not indexed:
        return ""
    shown = ", ".join(indexed[:max_show])
    more = f" +{len(indexed) - max_show} more" if len(indexed) > max_show else ""
    return f"indexed: {shown}{more}"


# ═══════════════════════════════════════════════════════════════════════════════
# DATA GRID
# ═══════════════════════════════════════════════════════════════════════════════

def render_data_grid(
    rows: Sequence[Mapping[str, Any]],
    selected_row: int,
    size: TerminalSize,
    col_start: int = 0,
    columns: Sequence[str] | None = None,
    page: int = 0,
    total_pages: int | None = None,
) -> Text:
    """Render the visible slice of ``rows`` as a fixed-width grid."""
    if not rows:
        return Text(f" {EMPTY_MESSAGE}", style="dim")

    cols = list(columns) if columns else order_columns(rows)
    view = viewport(
        total_rows=len(rows),
        selected_row=selected_row,
        max_visible_rows=size.table_page_size,
        widths=natural_widths(cols, rows),
        col_start=col_start,
        terminal_width=size.columns,
    )
    visible_cols = cols[view.col_start:view.col_end]
    gap = " " * COL_GAP
    marker_pad = " " * MARKER_WIDTH

    out = Text()
    header = gap.join(pad_cell(c, w) for c, w in zip(visible_cols, view.col_widths))
    out.append(marker_pad + header, style="dim bold")
    if view.hidden_left or view.hidden_right:
        out.append(f"  ‹{view.hidden_left} {view.hidden_right}›", style="dim")
    out.append("\n")
    out.append(marker_pad + gap.join("─" * w for w in view.col_widths) + "\n", style="dim")

    if view.rows_above:
        out.append(f"{marker_pad}↑ {view.rows_above} more above\n", style="dim")

    for idx in range(view.row_start, view.row_end):
        row = rows[idx]
        selected = idx == selected_row
        out.append(" ▶  " if selected else marker_pad, style="bold cyan" if selected else "")
        cells = gap.join(pad_cell(format_cell(row.get(c), c), w) for c, w in zip(visible_cols, view.col_widths))
        out.append(cells + "\n", style="reverse" if selected else "")

    below = len(rows) - view.row_end
    if below > 0:
        out.append(f"{marker_pad}↓ {below} more below\n", style="dim")

    if total_pages is not None and total_pages > 1:
        out.append(f"\n{marker_pad}page {page + 1}/{total_pages}  ·  row {selected_row + 1}/{len(rows)}", style="dim")
    return out
