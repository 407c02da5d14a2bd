"""Dashboard screen: every database on the instance."""
from __future__ import annotations

from dataclasses import dataclass

import questionary
from questionary import Choice, Separator

from ...models import DescribeAll
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
from ..navigator import NavigationEntry, Screen
from ..router import NavResult, Router, register_screen


@dataclass(frozen=True)
class DatabaseSummary:
    name: str
    table_count: int
    total_records: int


def summarize_databases(data: DescribeAll) -> list[DatabaseSummary]:
    return [
        DatabaseSummary(
            name=name,
            table_count=len(tables),
            total_records=sum(t.record_count for t in tables.values()),
        )
        for name, tables in data.items()
    ]


@register_screen(Screen.DASHBOARD)
async def show_dashboard(router: Router) -> NavResult:
    """Database list with fuzzy filter, refresh and a jump to system info."""
    console = router.console
    call: ApiCall[DescribeAll] = ApiCall(router.client.describe_all)
    filter_text = ""
    last_choice = None

    await load(console, call, f"Sniffing around {router.state.connected_url or router.client.url}...")

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

            databases = summarize_databases(call.data or {})
            total = sum(db.total_records for db in databases)
            shown = fuzzy_filter(databases, filter_text, key=lambda db: db.name)

            console.print("[bold]Databases[/bold] [yellow](⊙.⊙)[/yellow]")
            console.print(
                f"[dim]{plural(len(databases), 'database')}  ·  {total:,} total records  ·  {call.elapsed_ms or 0}ms[/dim]\n"
            )
            if filter_text:
                console.print(f"[dim]Filter:[/dim] [yellow]{filter_text}[/yellow]\n")
            if not shown:
                console.print("[dim]  No databases found.[/dim]")
                console.print("[dim]  Create one in Harper Studio or via the Operations API.[/dim]")
            render_key_hints(router)

            choices: list = [
                Choice(
                    title=f"{db.name}  ·  {plural(db.table_count, 'table')}  ·  {plural(db.total_records, 'record')}",
                    value=("db", db.name),
                )
                for db in shown
            ]
            choices.extend([
                Separator(),
                Choice("/ Filter", value="filter"),
                Choice("s System info", value="system"),
                Choice("r Refresh", value="refresh"),
                Choice("d Disconnect", value="disconnect"),
                *nav_choices(),
            ])
            choice = await ask_action("Select a database", choices, default=last_choice)
            last_choice = choice

            if isinstance(choice, tuple):
                return NavigationEntry.database(choice[1])
            if choice == "filter":
                typed = await questionary.text(
                    "Filter (blank clears)", default=filter_text, style=BRAND_STYLE
                ).ask_async()
                if typed is not None:
                    filter_text = typed.strip()
                continue
            if choice == "system":
                return NavigationEntry.system()
            if choice == "disconnect":
                router.go_home_after_disconnect()
                return None
            if choice == "refresh":
                router.client.clear_cache()
                await reload(console, call, "Refreshing...")
                continue
            return choice
    finally:
        call.dispose()
