"""Table screen: windowed data grid with paging, search, query builder and schema info."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Callable, Sequence

import questionary
from prompt_toolkit.completion import CompleteEvent, Completer, Completion
from prompt_toolkit.document import Document
from questionary import Choice
from rich.panel import Panel

from ...models import COMPARATORS, ConditionLike, DatabaseSchema, SortSpec, TableSchema
from ...relationships import RelationshipInfo, infer_relationships
from ..components import (
    BRAND_STYLE,
    action,
    ask_action,
    indexed_summary,
    load,
    nav_choices,
    plural,
    reload,
    render_data_grid,
    render_error,
    render_frame,
    render_key_hints,
    schema_info_lines,
)
from ..fetch import ApiCall
from ..navigator import NavigationEntry, Screen, TableParams
from ..query import DraftCondition, QueryDraft, attribute_suggestions, comparator_suggestions
from ..router import NavResult, Router, register_screen
from ..windowing import MARKER_WIDTH, max_column_start, natural_widths, order_columns

logger = logging.getLogger("dug.app")


class Overlay(str, Enum):
    NONE = "none"
    SEARCH = "search"
    SORT = "sort"
    COLUMNS = "columns"
    QUERY = "query"
    SCHEMA_INFO = "schema-info"


@dataclass
class TableView:
    """Screen-local state of the table browser.

    Rows come either from the paged condition query or, after a quick
    search, from ``search_by_value``; ``searching`` says which.
    """

    page_size: int
    page: int = 0
    selected_row: int = 0
    col_start: int = 0
    conditions: list[ConditionLike] = field(default_factory=list)
    operator: str = "and"
    sort: SortSpec | None = None
    custom_limit: int | None = None
    visible_columns: list[str] | None = None
    filter_summary: str = ""
    searching: bool = False
    search_attribute: str = ""
    search_value: str = ""
    overlay: Overlay = Overlay.NONE

    @property
    def limit(self) -> int:
        return self.custom_limit or self.page_size

    @property
    def offset(self) -> int:
        return self.page * self.page_size

    def total_pages(self, schema: TableSchema | None) -> int | None:
        if schema is None:
            return None
        return max(1, math.ceil(schema.record_count / self.page_size))

    def _reset_cursor(self) -> None:
        self.selected_row = 0
        self.col_start = 0

    # navigation

    def move_row(self, delta: int, row_count: int) -> None:
        self.selected_row = max(0, min(self.selected_row + delta, row_count - 1))

    def scroll_columns(self, delta: int, widths: Sequence[int], terminal_width: int) -> None:
        """Scroll horizontally, never past the offset that already shows the last column."""
        last = max_column_start(widths, terminal_width - MARKER_WIDTH)
        self.col_start = max(0, min(self.col_start + delta, last))

    def has_next_page(self, schema: TableSchema | None, row_count: int) -> bool:
        total = self.total_pages(schema)
        if total is None:
            return row_count >= self.limit
        return self.page + 1 < total

    def next_page(self) -> None:
        self.page += 1
        self._reset_cursor()

    def prev_page(self) -> bool:
        if self.page == 0:
            return False
        self.page -= 1
        self._reset_cursor()
        return True

    # overlays

    def apply_search(self, attribute: str, value: str) -> None:
        self.search_attribute = attribute
        self.search_value = value
        self.filter_summary = f"search: {attribute}={value}"
        self.searching = True
        self._reset_cursor()

    def apply_sort(self, attribute: str, descending: bool) -> None:
        self.sort = SortSpec(attribute=attribute, descending=descending)
        self.page = 0
        self.searching = False
        self._reset_cursor()

    def apply_query(self, draft: QueryDraft) -> None:
        conditions = draft.build_conditions()
        self.conditions = list(conditions)
        self.operator = draft.operator
        self.sort = draft.build_sort()
        self.custom_limit = draft.build_limit(self.page_size)
        self.page = 0
        self.searching = False
        self.filter_summary = f" {draft.operator} ".join(
            f"{c.attribute} {c.comparator} {c.value}" for c in conditions
        )
        self._reset_cursor()

    def apply_columns(self, selected: list[str], all_columns: list[str]) -> None:
        self.visible_columns = None if len(selected) == len(all_columns) else selected
        self.col_start = 0

    def clear_filters(self) -> None:
        self.filter_summary = ""
        self.searching = False
        self.search_attribute = ""
        self.search_value = ""
        self.conditions = []
        self._reset_cursor()

    def query_kwargs(self, schema: TableSchema | None) -> dict[str, Any]:
        return {
            "conditions": self.conditions,
            "operator": self.operator,
            "offset": self.offset,
            "limit": self.limit,
            "sort": self.sort,
            "get_attributes": ["*"],
            "hash_attribute": schema.hash_attribute if schema else None,
        }

    def header_line(self, schema: TableSchema | None, elapsed_ms: int | None) -> str:
        count = schema.record_count if schema else None
        parts = [
            plural(count, "record") if count is not None else "? records",
            f"pk: {schema.hash_attribute if schema else '?'}",
        ]
        if schema and indexed_summary(schema):
            parts.append(indexed_summary(schema))
        parts.append(f"{elapsed_ms or 0}ms")
        if self.sort:
            parts.append(f"sort: {self.sort.attribute} {'DESC' if self.sort.descending else 'ASC'}")
        return "  ·  ".join(parts)


# ═══════════════════════════════════════════════════════════════════════════════
# OVERLAYS
# ═══════════════════════════════════════════════════════════════════════════════

class SuggestionCompleter(Completer):
    """Completions from ``suggest(typed)``, each replacing everything typed so far."""

    def __init__(self, suggest: Callable[[str], list[str]]):
        self._suggest = suggest

    def get_completions(self, document: Document, complete_event: CompleteEvent):
        typed = document.text_before_cursor
        for suggestion in self._suggest(typed):
            yield Completion(suggestion, start_position=-len(typed))


async def _ask_attribute(message: str, attributes: list[str]) -> str | None:
    answer = await questionary.autocomplete(
        message,
        choices=attributes,
        completer=SuggestionCompleter(partial(attribute_suggestions, attributes)),
        style=BRAND_STYLE,
    ).ask_async()
    return answer.strip() if answer and answer.strip() else None


async def _ask_comparator() -> str | None:
    answer = await questionary.autocomplete(
        "Comparator",
        choices=list(COMPARATORS),
        default="equals",
        completer=SuggestionCompleter(comparator_suggestions),
        validate=lambda typed: typed.strip() in COMPARATORS or "Unknown comparator",
        style=BRAND_STYLE,
    ).ask_async()
    return answer.strip() if answer else None


async def _search_overlay(view: TableView, attributes: list[str]) -> tuple[str, str] | None:
    attribute = await _ask_attribute("Quick search: attribute", attributes)
    if attribute is None:
        return None
    value = await questionary.text(f"{attribute} =", style=BRAND_STYLE).ask_async()
    if not value or not value.strip():
        return None
    view.apply_search(attribute, value.strip())
    return attribute, value.strip()


async def _sort_overlay(view: TableView, attributes: list[str]) -> bool:
    attribute = await _ask_attribute("Sort by", attributes)
    if attribute is None:
        return False
    direction = await questionary.select(
        "Direction",
        choices=[action("a", "ASC", "asc"), action("d", "DESC", "desc")],
        use_shortcuts=True,
        style=BRAND_STYLE,
    ).ask_async()
    if direction is None:
        return False
    view.apply_sort(attribute, descending=direction == "desc")
    return True


async def _columns_overlay(view: TableView, all_columns: list[str]) -> None:
    current = set(view.visible_columns or all_columns)
    picked = await questionary.checkbox(
        "Columns (space to toggle, enter to apply)",
        choices=[Choice(c, checked=c in current) for c in all_columns],
        style=BRAND_STYLE,
    ).ask_async()
    if picked:
        view.apply_columns(picked, all_columns)


async def _condition_prompt(attributes: list[str]) -> DraftCondition | None:
    attribute = await _ask_attribute("Attribute", attributes)
    if attribute is None:
        return None
    comparator = await _ask_comparator()
    if comparator is None:
        return None
    hint = "Values (comma-separated)" if comparator == "between" else "Value"
    value = await questionary.text(hint, style=BRAND_STYLE).ask_async()
    if value is None:
        return None
    return DraftCondition(attribute=attribute, comparator=comparator, value=value.strip())


async def _query_overlay(router: Router, view: TableView, attributes: list[str]) -> bool:
    """Build conditions, operator, sort and limit; True when the query should run."""
    draft = QueryDraft(operator=view.operator, limit=str(view.limit))
    if view.sort:
        draft.sort_attribute = view.sort.attribute
        draft.sort_descending = bool(view.sort.descending)

    while True:
        render_frame(router)
        router.console.print("[bold magenta]Query Builder[/bold magenta]\n")
        if not draft.conditions:
            router.console.print("[dim]  No conditions (all records)[/dim]")
        for i, cond in enumerate(draft.conditions):
            joiner = f"{draft.operator.upper()} " if i else "    "
            router.console.print(f"  {joiner}{cond.describe()}")
        router.console.print(f"\n[dim]  {draft.summary()}[/dim]\n")

        choice = await ask_action(
            "",
            [
                action("a", "Add condition", "add"),
                action("d", "Remove last condition", "remove"),
                action("o", f"Toggle operator (now {draft.operator.upper()})", "operator"),
                action("s", "Sort", "sort"),
                action("l", "Limit", "limit"),
                action("x", "Run query", "run"),
                action("c", "Cancel", "cancel"),
            ],
            shortcuts=True,
        )
        if choice == "add":
            cond = await _condition_prompt(attributes)
            if cond is not None:
                draft.conditions.append(cond)
        elif choice == "remove" and draft.conditions:
            draft.conditions.pop()
        elif choice == "operator":
            draft.toggle_operator()
        elif choice == "sort":
            attribute = await _ask_attribute("Sort by (blank for none)", attributes)
            draft.sort_attribute = attribute or ""
            if attribute:
                draft.sort_descending = bool(
                    await questionary.confirm("Descending?", default=draft.sort_descending, style=BRAND_STYLE).ask_async()
                )
        elif choice == "limit":
            typed = await questionary.text("Limit", default=draft.limit, style=BRAND_STYLE).ask_async()
            if typed is not None:
                draft.limit = typed.strip()
        elif choice == "run":
            view.apply_query(draft)
            return True
        elif choice in ("cancel", "back"):
            return False


async def _schema_overlay(router: Router, lines: list[str]) -> None:
    size = router.size
    window = max(1, size.rows - 12)
    scroll = 0
    while True:
        render_frame(router)
        body = "\n".join(lines[scroll:scroll + window])
        footer = ""
        if len(lines) > window:
            footer = f"\n\n[dim]{scroll + 1}-{min(scroll + window, len(lines))} of {len(lines)}[/dim]"
        router.console.print(Panel(body + footer, title="[bold blue]Schema Info[/bold blue]", border_style="blue"))
        if len(lines) <= window:
            await questionary.press_any_key_to_continue("Press any key to close").ask_async()
            return
        choice = await ask_action(
            "",
            [action("j", "Scroll down", "down"), action("k", "Scroll up", "up"), action("c", "Close", "close")],
            default="down",
            shortcuts=True,
        )
        if choice == "down":
            scroll = min(scroll + 1, max(0, len(lines) - window))
        elif choice == "up":
            scroll = max(scroll - 1, 0)
        else:
            return


async def _open_overlay(
    router: Router,
    view: TableView,
    attributes: list[str],
    columns: list[str],
    schema_lines: list[str],
) -> bool:
    """Show the overlay named by ``view.overlay``; True when rows must be fetched again."""
    overlay = view.overlay
    try:
        if overlay is Overlay.SEARCH:
            return await _search_overlay(view, attributes) is not None
        if overlay is Overlay.QUERY:
            return await _query_overlay(router, view, attributes)
        if overlay is Overlay.SORT:
            return await _sort_overlay(view, attributes)
        if overlay is Overlay.COLUMNS:
            await _columns_overlay(view, columns)
        elif overlay is Overlay.SCHEMA_INFO and schema_lines:
            await _schema_overlay(router, schema_lines)
        return False
    finally:
        view.overlay = Overlay.NONE


# menu value -> overlay it opens
OVERLAY_ACTIONS = {
    "search": Overlay.SEARCH,
    "query": Overlay.QUERY,
    "columns": Overlay.COLUMNS,
    "sort": Overlay.SORT,
    "schema": Overlay.SCHEMA_INFO,
}


# ═══════════════════════════════════════════════════════════════════════════════
# SCREEN
# ═══════════════════════════════════════════════════════════════════════════════

def _grid_actions(view: TableView) -> list:
    return [
        action("j", "Down", "down"),
        action("k", "Up", "up"),
        action("h", "Scroll columns left", "left"),
        action("l", "Scroll columns right", "right"),
        action("v", "View record", "view"),
        action("n", "Next page", "next"),
        action("p", "Previous page", "prev"),
        action("a", "Search by value", "search"),
        action("f", "Query builder", "query"),
        action("c", "Columns", "columns"),
        action("s", "Sort", "sort"),
        action("i", "Schema info", "schema"),
        action("r", "Clear filters and refresh" if view.filter_summary else "Refresh", "refresh"),
        *nav_choices(),
    ]


@register_screen(Screen.TABLE)
async def show_table(router: Router) -> NavResult:
    params = router.nav.current().params
    if not isinstance(params, TableParams):
        return "home"
    database, table = params.database, params.table
    console = router.console
    client = router.client

    view = TableView(page_size=router.size.table_page_size)
    schema_call: ApiCall[TableSchema] = ApiCall(client.describe_table)
    db_call: ApiCall[DatabaseSchema] = ApiCall(client.describe_database)
    rows_call: ApiCall[list[dict[str, Any]]] = ApiCall(client.search_by_conditions)
    search_call: ApiCall[list[dict[str, Any]]] = ApiCall(client.search_by_value)

    async def fetch_rows() -> None:
        if view.searching:
            await load(
                console,
                search_call,
                "Searching...",
                database,
                table,
                view.search_attribute,
                view.search_value,
                get_attributes=["*"],
            )
        else:
            await load(console, rows_call, "Loading data...", database, table, **view.query_kwargs(schema_call.data))

    await load(console, schema_call, f"Loading {table}...", database, table)
    await load(console, db_call, f"Loading {database}...", database)
    await fetch_rows()

    last_choice = "down"
    try:
        while True:
            schema = schema_call.data
            relationships: list[RelationshipInfo] = []
            if schema is not None and db_call.data is not None:
                relationships = infer_relationships(table, schema, db_call.data)
            attributes = schema.attribute_names() if schema else []
            rows = (search_call.data or []) if view.searching else (rows_call.data or [])

            render_frame(router)
            console.print(f"[bold]Table [cyan]{table}[/cyan][/bold]")
            elapsed = search_call.elapsed_ms if view.searching else rows_call.elapsed_ms
            console.print(f"[dim]{view.header_line(schema, elapsed)}[/dim]")
            if view.filter_summary:
                console.print(f"[dim]Filter:[/dim] [yellow]{view.filter_summary}[/yellow] [dim](r to clear)[/dim]")
            console.print()

            error = search_call.error if view.searching else rows_call.error
            if error:
                render_error(console, error)
            else:
                console.print(
                    render_data_grid(
                        rows,
                        selected_row=view.selected_row,
                        size=router.size,
                        col_start=view.col_start,
                        columns=view.visible_columns,
                        page=view.page,
                        total_pages=view.total_pages(schema),
                    )
                )
            render_key_hints(router)

            choice = await ask_action("", _grid_actions(view), default=last_choice, shortcuts=True)
            last_choice = choice
            columns = view.visible_columns or order_columns(rows)

            if choice == "down":
                view.move_row(1, len(rows))
            elif choice == "up":
                view.move_row(-1, len(rows))
            elif choice in ("left", "right"):
                delta = -1 if choice == "left" else 1
                view.scroll_columns(delta, natural_widths(columns, rows), router.size.columns)
            elif choice == "view":
                if rows:
                    row = rows[min(view.selected_row, len(rows) - 1)]
                    return NavigationEntry.record(database, table, row, schema.hash_attribute if schema else "id")
            elif choice == "next":
                if not view.searching and view.has_next_page(schema, len(rows)):
                    view.next_page()
                    await fetch_rows()
            elif choice == "prev":
                if view.prev_page():
                    await fetch_rows()
            elif choice in OVERLAY_ACTIONS:
                view.overlay = OVERLAY_ACTIONS[choice]
                schema_lines = schema_info_lines(schema, relationships) if schema is not None else []
                if await _open_overlay(router, view, attributes, attributes or order_columns(rows), schema_lines):
                    await fetch_rows()
            elif choice == "refresh":
                client.clear_cache()
                view.clear_filters()
                if schema_call.error:
                    await reload(console, schema_call, "Retrying...")
                await fetch_rows()
            else:
                return choice
    finally:
        for call in (schema_call, db_call, rows_call, search_call):
            call.dispose()
