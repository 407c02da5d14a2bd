"""Record screen: one record as a colored JSON tree with relationship links."""
from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from rich.text import Text

from ...errors import DugError
from ...relationships import RelationshipInfo, infer_relationships
from ..components import action, ask_action, nav_choices, render_frame, render_key_hints
from ..json_tree import get_line_key_map, render_json, to_text
from ..navigator import NavigationEntry, RecordParams, Screen
from ..router import NavResult, Router, register_screen
from ..windowing import TIMESTAMP_COLS, format_timestamp

logger = logging.getLogger("dug.app")

# breadcrumb, header, hints and the reverse-link block
RESERVED_LINES = 8


def display_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``record`` with internal timestamps rendered as dates."""
    out = dict(record)
    for col in TIMESTAMP_COLS:
        if out.get(col):
            out[col] = format_timestamp(out[col])
    return out


def forward_links(relationships: Sequence[RelationshipInfo]) -> dict[str, RelationshipInfo]:
    return {r.attribute: r for r in relationships if r.direction == "forward"}


def osc52_copy(payload: str) -> str:
    """Escape sequence asking the terminal to put ``payload`` on the clipboard."""
    encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
    return f"\x1b]52;c;{encoded}\x07"


@dataclass
class LineCursor:
    """Selected line plus the scroll offset that keeps it in view."""

    total: int
    height: int
    selected: int = 0
    offset: int = 0

    def move(self, delta: int) -> None:
        self.selected = max(0, min(self.selected + delta, max(0, self.total - 1)))
        if self.selected < self.offset:
            self.offset = self.selected
        elif self.selected >= self.offset + self.height:
            self.offset = self.selected - self.height + 1

    def page(self, direction: int) -> None:
        self.move(direction * self.height)


async def follow_link(
    router: Router,
    database: str,
    record: Mapping[str, Any],
    link: RelationshipInfo,
    target_primary_key: str = "id",
) -> NavigationEntry | str:
    """Look up the record ``link`` points at; an error message when that fails."""
    value = record.get(link.attribute)
    if value is None:
        return f"{link.attribute} is null"
    try:
        with router.console.status("Loading related record...", spinner="dots"):
            results = await router.client.search_by_id(database, link.target_table, [value], get_attributes=["*"])
    except DugError as exc:
        return str(exc) or "Failed to load related record"
    if not results:
        return f"No record found in {link.target_table} for {value}"
    return NavigationEntry.record(database, link.target_table, results[0], target_primary_key)


@register_screen(Screen.RECORD)
async def show_record(router: Router) -> NavResult:
    params = router.nav.current().params
    if not isinstance(params, RecordParams):
        return "home"
    console = router.console
    database, table, record = params.database, params.table, params.record

    relationships: list[RelationshipInfo] = []
    tables: dict = {}
    try:
        tables = await router.client.describe_database(database)
        if table in tables:
            relationships = infer_relationships(table, tables[table], tables)
    except DugError as exc:
        # links are an extra; the record itself is already loaded
        logger.warning("relationships unavailable for %s.%s: %s", database, table, exc)

    links = forward_links(relationships)
    reverse = [r for r in relationships if r.direction == "reverse"]
    shown = display_record(record)
    lines = render_json(shown)
    key_map = get_line_key_map(shown)
    cursor = LineCursor(total=len(lines), height=max(1, router.size.rows - RESERVED_LINES))
    message: Text | None = None
    last_choice = "down"

    while True:
        cursor.height = max(1, router.size.rows - RESERVED_LINES)
        render_frame(router)
        header = Text()
        header.append(f"{database}.{table}", style="bold")
        header.append(" / ", style="dim")
        header.append(str(params.record_id), style="bold cyan")
        console.print(header)
        console.print()

        for i in range(cursor.offset, min(cursor.offset + cursor.height, len(lines))):
            key = key_map.get(i)
            note = f"→ {links[key].target_table}" if key in links else None
            console.print(to_text(lines[i], selected=i == cursor.selected, annotation=note))

        selected_key = key_map.get(cursor.selected)
        selected_link = links.get(selected_key) if selected_key else None
        if selected_link:
            console.print(f"[dim]o: follow {selected_key} → {selected_link.target_table}[/dim]")
        if message is not None:
            console.print(message)
            message = None
        if reverse:
            console.print("\n[dim bold]Referenced by:[/dim bold]")
            for r in reverse:
                console.print(f"[dim]  {r.target_table} (via {r.reverse_attribute})[/dim]")
        if len(lines) > cursor.height:
            end = min(cursor.offset + cursor.height, len(lines))
            console.print(f"[dim]line {cursor.offset + 1}-{end} of {len(lines)}[/dim]")
        render_key_hints(router)

        choices = [
            action("j", "Down", "down"),
            action("k", "Up", "up"),
            action("d", "Page down", "pgdn"),
            action("u", "Page up", "pgup"),
        ]
        if selected_link:
            choices.append(action("o", f"Follow {selected_key} → {selected_link.target_table}", "follow"))
        choices.append(action("y", "Copy record", "copy"))
        choices.extend(nav_choices())

        choice = await ask_action("", choices, default=last_choice, shortcuts=True)
        last_choice = choice
        if choice == "down":
            cursor.move(1)
        elif choice == "up":
            cursor.move(-1)
        elif choice == "pgdn":
            cursor.page(1)
        elif choice == "pgup":
            cursor.page(-1)
        elif choice == "copy":
            console.file.write(osc52_copy(json.dumps(record, indent=2, default=str)))
            console.file.flush()
            message = Text("Copied!", style="green")
        elif choice == "follow" and selected_link:
            target = tables.get(selected_link.target_table)
            primary_key = target.hash_attribute if target is not None else "id"
            outcome = await follow_link(router, database, record, selected_link, primary_key)
            if isinstance(outcome, NavigationEntry):
                return outcome
            message = Text(outcome, style="red")
        else:
            return choice
