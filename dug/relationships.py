"""Foreign-key style relationships between tables of one database.

Harper has no declared foreign keys, so links are derived from:
1. API-provided ``relationship`` metadata on an attribute, when present;
2. naming convention: ``fooId`` / ``foo_id`` points at table ``Foo`` (forward);
3. other tables holding ``thisTableId`` / ``this_table_id`` (reverse).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping

from .models import TableSchema

Direction = Literal["forward", "reverse"]
Source = Literal["api", "inferred"]


@dataclass(frozen=True)
class RelationshipInfo:
    attribute: str
    target_table: str
    direction: Direction
    source: Source
    # For reverse edges: the attribute on the other table that points back.
    reverse_attribute: str | None = None


def strip_id_suffix(name: str) -> str | None:
    """Return the base name of ``fooId`` / ``foo_id``, or None."""
    if name.endswith("Id") and len(name) > 2:
        return name[:-2]
    if name.endswith("_id") and len(name) > 3:
        return name[:-3]
    return None


def infer_relationships(
    table_name: str,
    table_schema: TableSchema,
    all_tables: Mapping[str, TableSchema],
) -> list[RelationshipInfo]:
    results: list[RelationshipInfo] = []
    seen: set[tuple[str, str, str]] = set()
    by_lower = {name.lower(): name for name in all_tables}

    def add(rel: RelationshipInfo) -> None:
        key = (rel.direction, rel.attribute, rel.target_table)
        if key not in seen:
            seen.add(key)
            results.append(rel)

    # Forward: attributes on this table
    for attr in table_schema.attributes:
        name = attr.attribute

        if attr.relationship is not None:
            add(RelationshipInfo(name, attr.relationship.table, "forward", "api"))
            continue

        base = strip_id_suffix(name)
        if not base:
            continue
        match = by_lower.get(base.lower())
        if match and match != table_name:
            add(RelationshipInfo(name, match, "forward", "inferred"))

    # Reverse: other tables pointing at this one
    for other_name, other_schema in all_tables.items():
        if other_name == table_name:
            continue
        for attr in other_schema.attributes:
            base = strip_id_suffix(attr.attribute)
            if base and base.lower() == table_name.lower():
                add(
                    RelationshipInfo(
                        attr.attribute,
                        other_name,
                        "reverse",
                        "inferred",
                        reverse_attribute=attr.attribute,
                    )
                )

    return results
