"""System screen: host, CPU, memory and uptime of the Harper instance."""
from __future__ import annotations

from questionary import Choice

from ...models import SystemInfo
from ..components import (
    action,
    ask_action,
    format_bytes,
    format_uptime,
    load,
    nav_choices,
    plural,
    reload,
    render_error,
    render_frame,
    render_key_hints,
    render_stats_table,
)
from ..fetch import ApiCall
from ..navigator import Screen
from ..router import NavResult, Router, register_screen


def system_stats(info: SystemInfo) -> dict[str, str | int]:
    """Flatten the sections the screen shows into label -> value rows."""
    stats: dict[str, str | int] = {}
    sys = info.system
    if sys.node_version:
        stats["Node.js"] = f"v{sys.node_version}"
    if sys.platform:
        stats["Platform"] = f"{sys.platform} ({sys.arch or ''})"
    if sys.hostname:
        stats["Hostname"] = sys.hostname

    cpu = info.cpu
    if cpu is not None:
        if cpu.brand:
            stats["CPU"] = cpu.brand
        if cpu.cores is not None:
            stats["Cores"] = f"{cpu.cores} @ {cpu.speed:g} GHz" if cpu.speed else str(cpu.cores)
        if cpu.current_load is not None and cpu.current_load.currentLoad is not None:
            stats["CPU Load"] = f"{cpu.current_load.currentLoad:.1f}%"

    mem = info.memory
    if mem is not None and mem.total is not None:
        used = mem.active if mem.active is not None else (mem.used or 0)
        available = mem.available if mem.available is not None else (mem.free or 0)
        stats["Memory"] = (
            f"{format_bytes(used)} used / {format_bytes(mem.total)} total ({format_bytes(available)} available)"
        )

    if info.time is not None and info.time.uptime is not None:
        stats["Uptime"] = format_uptime(info.time.uptime)
    if info.threads:
        stats["Threads"] = plural(len(info.threads), "worker")
    return stats


@register_screen(Screen.SYSTEM)
async def show_system(router: Router) -> NavResult:
    console = router.console
    call: ApiCall[SystemInfo] = ApiCall(router.client.system_information)
    await load(console, call, "Loading system information...")

    try:
        while True:
            render_frame(router)
            if call.error:
                render_error(console, call.error)
            elif call.data is not None:
                render_stats_table(console, system_stats(call.data), title="System")
                console.print(f"[dim]{call.elapsed_ms or 0}ms[/dim]")
            render_key_hints(router)

            choices: list[Choice] = [action("r", "Refresh", "refresh"), *nav_choices()]
            choice = await ask_action("", choices, default="refresh", shortcuts=True)
            if choice == "refresh":
                await reload(console, call, "Refreshing...")
                continue
            return choice
    finally:
        call.dispose()
