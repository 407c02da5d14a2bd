"""Query builder state: draft conditions typed by the user, turned into API conditions."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from ..models import COMPARATORS, Condition, SortSpec

DEFAULT_LIMIT = 25
MAX_SUGGESTIONS = 5

_INFINITIES = {"Infinity": math.inf, "+Infinity": math.inf, "-Infinity": -math.inf}


def coerce_value(raw: str) -> str | int | float | bool:
    """Interpret typed text: ``true``/``false`` as booleans, numerals as numbers."""
    if raw == "true":
        return True
    if raw == "false":
        return False
    text = raw.strip()
    if not text or "_" in text:
        return raw
    if text in _INFINITIES:
        return _INFINITIES[text]
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return raw
    if math.isnan(number) or math.isinf(number):
        return raw
    return number


def attribute_suggestions(attributes: list[str], typed: str) -> list[str]:
    if not typed:
        return []
    lower = typed.lower()
    return [a for a in attributes if lower in a.lower()][:MAX_SUGGESTIONS]


def comparator_suggestions(typed: str) -> list[str]:
    if not typed:
        return list(COMPARATORS)
    lower = typed.lower()
    return [c for c in COMPARATORS if lower in c]


@dataclass
class DraftCondition:
    attribute: str = ""
    comparator: str = "equals"
    value: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.attribute and self.value)

    def describe(self) -> str:
        return f"{self.attribute or '?'} {self.comparator} {self.value or '?'}"

    def to_condition(self) -> Condition:
        if self.comparator == "between":
            value: Any = [coerce_value(part.strip()) for part in self.value.split(",")]
        else:
            value = coerce_value(self.value)
        return Condition(attribute=self.attribute, comparator=self.comparator, value=value)


@dataclass
class QueryDraft:
    """Everything the query builder collects before execution."""

    conditions: list[DraftCondition] = field(default_factory=list)
    operator: str = "and"
    sort_attribute: str = ""
    sort_descending: bool = False
    limit: str = str(DEFAULT_LIMIT)

    def toggle_operator(self) -> None:
        self.operator = "or" if self.operator == "and" else "and"

    def build_conditions(self) -> list[Condition]:
        """Only complete drafts are sent."""
        return [c.to_condition() for c in self.conditions if c.complete]

    def build_sort(self) -> SortSpec | None:
        if not self.sort_attribute:
            return None
        return SortSpec(attribute=self.sort_attribute, descending=self.sort_descending)

    def build_limit(self, default: int = DEFAULT_LIMIT) -> int:
        try:
            return int(self.limit)
        except ValueError:
            return default

    def summary(self) -> str:
        sort = (
            f"sort: {self.sort_attribute} {'DESC' if self.sort_descending else 'ASC'}"
            if self.sort_attribute
            else "sort: none"
        )
        return f"{sort}  limit: {self.limit}"
