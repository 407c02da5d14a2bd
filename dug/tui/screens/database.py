"""Database screen: the tables of one database."""
from __future__ import annotations

from dataclasses import dataclass

import questionary
from questionary import Choice, Separator

from ...models import DatabaseSchema, TableSchema
from ..components import (
    BRAND_STYLE,
    ask_action,
    fuzzy_filter,
    load,
    nav_choices,
    plural,
    reload,
    render_error,
    render_frame,
    render_key_hints,
)
from ..fetch import ApiCall
from ..navigator import DatabaseParams, NavigationEntry, Screen
from ..router import NavResult, Router, register_screen


@dataclass(frozen=True)
class TableSummary:
    name: str
    hash_attribute: str
    record_count: int
    indexed_attributes: tuple[str, ...]


def summarize_tables(data: DatabaseSchema) -> list[TableSummary]:
    return [
        TableSummary(
            name=schema.name,
            hash_attribute=schema.hash_attribute,
            record_count=schema.record_count,
            indexed_attributes=tuple(schema.indexed_attributes()),
        )
        for schema in data.values()
    ]


def table_details(schema: TableSchema) -> list[str]:
    return [
        f"Schema defined: {'yes' if schema.schema_defined else 'no'}",
        f"Audit: {'yes' if schema.audit else 'no'}",
        f"Attributes: {', '.join(schema.attribute_names())}",
    ]


def _title(table: TableSummary) -> str:
    title = f"{table.name}  ·  pk: {table.hash_attribute}  ·  {plural(table.record_count, 'record')}"
    if table.indexed_attributes:
        title += f"  ·  indexed: {', '.join(table.indexed_attributes)}"
    return title


@register_screen(Screen.DATABASE)
async def show_database(router: Router) -> NavResult:
    """Table list with fuzzy filter, per-table info and refresh."""
    params = router.nav.current().params
    if not isinstance(params, DatabaseParams):
        return "home"
    database = params.database
    console = router.console

    call: ApiCall[DatabaseSchema] = ApiCall(router.client.describe_database)
    filter_text = ""
    expanded: str | None = None
    last_choice = None

    await load(console, call, f"Loading tables for {database}...", database)

    try:
        while True:
            render_frame(router)

            if call.error:
                render_error(console, call.error)
                render_key_hints(router)
                choice = await ask_action("", [Choice("r Retry", value="refresh"), *nav_choices()])
                if choice == "refresh":
                    await reload(console, call, "Retrying...")
                    continue
                return choice

            data = call.data or {}
            tables = summarize_tables(data)
            total = sum(t.record_count for t in tables)
            shown = fuzzy_filter(tables, filter_text, key=lambda t: t.name)

            console.print(f"[bold]Tables in [cyan]{database}[/cyan][/bold]")
            console.print(
                f"[dim]{plural(len(tables), 'table')}  ·  {total:,} total records  ·  {call.elapsed_ms or 0}ms[/dim]\n"
            )
            if filter_text:
                console.print(f"[dim]Filter:[/dim] [yellow]{filter_text}[/yellow]\n")
            if not shown:
                console.print("[dim]  No tables found.[/dim]")
                console.print("[dim]  Create one in Harper Studio or via the Operations API.[/dim]")

            schema = next((s for s in data.values() if s.name == expanded), None)
            if schema is not None:
                console.print(f"[bold]{schema.name}[/bold]")
                for line in table_details(schema):
                    console.print(f"      [dim]{line}[/dim]")
            render_key_hints(router)

            choices: list = [Choice(title=_title(t), value=("table", t.name)) for t in shown]
            choices.extend([
                Separator(),
                Choice("/ Filter", value="filter"),
                Choice("i Info", value="info"),
                Choice("r Refresh", value="refresh"),
                *nav_choices(),
            ])
            choice = await ask_action("Select a table", choices, default=last_choice)
            last_choice = choice

            if isinstance(choice, tuple):
                return NavigationEntry.table(database, choice[1])
            if choice == "filter":
                typed = await questionary.text(
                    "Filter (blank clears)", default=filter_text, style=BRAND_STYLE
                ).ask_async()
                if typed is not None:
                    filter_text = typed.strip()
                continue
            if choice == "info":
                if not shown:
                    continue
                picked = await questionary.select(
                    "Show info for",
                    choices=[t.name for t in shown],
                    default=expanded if expanded in {t.name for t in shown} else None,
                    style=BRAND_STYLE,
                ).ask_async()
                # Picking the expanded table again collapses it
                expanded = None if picked in (None, expanded) else picked
                continue
            if choice == "refresh":
                router.client.clear_cache()
                await reload(console, call, "Refreshing...")
                continue
            return choice
    finally:
        call.dispose()
