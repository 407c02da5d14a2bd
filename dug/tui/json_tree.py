"""Colored, line-addressable JSON rendering for the record screen."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

from rich.text import Text

# segment color -> rich style
STYLES = {
    "green": "green",
    "yellow": "yellow",
    "cyan": "cyan",
    "dim": "dim",
    "bold": "bold",
}


@dataclass
class Segment:
    text: str
    color: str | None = None


@dataclass
class RenderedLine:
    segments: list[Segment] = field(default_factory=list)
    top_level_key: str | None = None

    @property
    def plain(self) -> str:
        return "".join(s.text for s in self.segments)

    def find(self, color: str) -> Segment | None:
        return next((s for s in self.segments if s.color == color), None)


def _scalar(value: Any) -> Segment:
    if value is None:
        return Segment("null", "dim")
    if isinstance(value, bool):
        return Segment("true" if value else "false", "cyan")
    if isinstance(value, (int, float)):
        return Segment(json.dumps(value), "yellow")
    if isinstance(value, str):
        return Segment(json.dumps(value, ensure_ascii=False), "green")
    return Segment(str(value))


def _strip_indent(segments: list[Segment]) -> list[Segment]:
    kept = [s for s in segments if s.text.strip() or s.color]
    return [Segment(s.text.lstrip(" "), s.color) for s in kept]


def render_json(value: Any, indent: int = 0, track_keys: bool = False) -> list[RenderedLine]:
    """Render ``value`` as pretty JSON lines with colored segments.

    With ``track_keys`` each line that opens a top-level object key carries
    that key, so a selected line can be mapped back to an attribute.
    """
    prefix = Segment(" " * indent)

    if isinstance(value, (list, tuple)):
        if not value:
            return [RenderedLine([prefix, Segment("[]")])]
        lines = [RenderedLine([prefix, Segment("[")])]
        for i, item in enumerate(value):
            child = render_json(item, indent + 2)
            if i < len(value) - 1:
                child[-1].segments.append(Segment(","))
            lines.extend(child)
        lines.append(RenderedLine([Segment(" " * indent), Segment("]")]))
        return lines

    if isinstance(value, Mapping):
        if not value:
            return [RenderedLine([prefix, Segment("{}")])]
        lines = [RenderedLine([prefix, Segment("{")])]
        keys = list(value)
        for i, key in enumerate(keys):
            last = i == len(keys) - 1
            child = render_json(value[key], indent + 2)
            head = [
                Segment(" " * (indent + 2)),
                Segment(json.dumps(str(key), ensure_ascii=False), "bold"),
                Segment(": "),
                *_strip_indent(child[0].segments),
            ]
            tracked = str(key) if track_keys else None
            if len(child) == 1:
                if not last:
                    head.append(Segment(","))
                lines.append(RenderedLine(head, tracked))
                continue
            lines.append(RenderedLine(head, tracked))
            rest = child[1:]
            if not last:
                rest[-1].segments.append(Segment(","))
            lines.extend(rest)
        lines.append(RenderedLine([Segment(" " * indent), Segment("}")]))
        return lines

    return [RenderedLine([prefix, _scalar(value)])]


def get_line_key_map(data: Any) -> dict[int, str]:
    """Line index -> top-level key for every line that starts a key."""
    return {
        i: line.top_level_key
        for i, line in enumerate(render_json(data, 0, track_keys=True))
        if line.top_level_key
    }


def to_text(line: RenderedLine, selected: bool = False, annotation: str | None = None) -> Text:
    text = Text()
    for seg in line.segments:
        text.append(seg.text, style=STYLES.get(seg.color or "", ""))
    if selected:
        text.stylize("reverse")
    if annotation:
        text.append(f" {annotation}", style="dim magenta")
    return text
