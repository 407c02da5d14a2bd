"""Response and query shapes for the Harper operations API.

Every schema-validated entity keeps its known fields typed and stores any
additional server fields in ``model_extra`` so they round-trip untouched.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, TypeAdapter, ValidationError, field_validator

Comparator = Literal[
    "equals",
    "not_equal",
    "contains",
    "starts_with",
    "ends_with",
    "greater_than",
    "greater_than_equal",
    "less_than",
    "less_than_equal",
    "between",
]

COMPARATORS: tuple[str, ...] = (
    "equals",
    "not_equal",
    "contains",
    "starts_with",
    "ends_with",
    "greater_than",
    "greater_than_equal",
    "less_than",
    "less_than_equal",
    "between",
)

Operator = Literal["and", "or"]


# ─── Table schema ──────────────────────────────────────────────────────────────

class RelationshipMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    table: str


class Attribute(BaseModel):
    """A table attribute as reported by ``describe_all``."""

    model_config = ConfigDict(extra="allow")

    attribute: str
    indexed: bool = False
    is_primary_key: bool = False
    relationship: RelationshipMeta | None = None

    @field_validator("indexed", "is_primary_key", mode="before")
    @classmethod
    def _literal_true_only(cls, v: Any) -> bool:
        # 1, "true" and other truthy values are not flags.
        return v is True

    @field_validator("relationship", mode="before")
    @classmethod
    def _usable_relationship(cls, v: Any) -> Any:
        if isinstance(v, dict) and isinstance(v.get("table"), str):
            return v
        return None


class TableSchema(BaseModel):
    """Schema of a single table.

    Extra keys such as ``db_size``, ``table_size`` or ``expiration`` are kept
    in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_name: str = Field(alias="schema")
    name: str
    hash_attribute: str
    audit: StrictBool
    schema_defined: StrictBool
    attributes: list[Attribute]
    record_count: int

    @property
    def extra(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    def attribute_names(self) -> list[str]:
        return [a.attribute for a in self.attributes]

    def indexed_attributes(self, include_primary_key: bool = True) -> list[str]:
        return [
            a.attribute
            for a in self.attributes
            if a.indexed and (include_primary_key or not a.is_primary_key)
        ]


DatabaseSchema = dict[str, TableSchema]
DescribeAll = dict[str, DatabaseSchema]

describe_all_adapter: TypeAdapter[DescribeAll] = TypeAdapter(DescribeAll)


# ─── Queries ───────────────────────────────────────────────────────────────────

class Condition(BaseModel):
    attribute: str
    comparator: Comparator
    value: Any = None


class ConditionGroup(BaseModel):
    operator: Operator
    conditions: list[Condition | ConditionGroup]


class SortSpec(BaseModel):
    attribute: str
    descending: bool | None = None
    next: SortSpec | None = None


ConditionLike = Condition | ConditionGroup


# ─── System information ────────────────────────────────────────────────────────
# Harper returns system, time, cpu, memory, disk, network, threads, ... all
# loosely typed.

class _Loose(BaseModel):
    model_config = ConfigDict(extra="allow")


class SystemSection(_Loose):
    platform: str | None = None
    arch: str | None = None
    hostname: str | None = None
    node_version: str | None = None


class TimeSection(_Loose):
    uptime: float | None = None


class CpuLoad(_Loose):
    currentLoad: float | None = None


class CpuSection(_Loose):
    brand: str | None = None
    cores: int | None = None
    speed: float | None = None
    current_load: CpuLoad | None = None


class MemorySection(_Loose):
    total: float | None = None
    free: float | None = None
    used: float | None = None
    active: float | None = None
    available: float | None = None


class SystemInfo(_Loose):
    system: SystemSection
    time: TimeSection | None = None
    cpu: CpuSection | None = None
    memory: MemorySection | None = None
    threads: list[dict[str, Any]] | None = None


# ─── Validation errors ─────────────────────────────────────────────────────────

MAX_REPORTED_ISSUES = 3


def format_validation_error(err: ValidationError) -> str:
    """Summarize a validation error as a short human-readable message.

    Only the first three issues are listed, followed by a count of the rest.
    """
    issues = err.errors()
    lines = []
    for issue in issues[:MAX_REPORTED_ISSUES]:
        path = ".".join(str(p) for p in issue["loc"])
        lines.append(f"  {path}: {issue['msg']}")
    if len(issues) > MAX_REPORTED_ISSUES:
        lines.append(f"  ...and {len(issues) - MAX_REPORTED_ISSUES} more")
    return "Unexpected response shape:\n" + "\n".join(lines)
