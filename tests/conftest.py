from __future__ import annotations

import os
import sys

import pytest


def _ensure_project_root_on_path() -> None:
    # When running via the venv's pytest entrypoint, the CWD is not guaranteed to
    # be on sys.path. Ensure the repository root (containing `dug/`) is importable.
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_path()


def table_schema_dict(
    name: str,
    attributes: list[dict] | list[str],
    *,
    database: str = "data",
    hash_attribute: str = "id",
    record_count: int = 0,
    **extra,
) -> dict:
    """A describe_all table entry as Harper returns it."""
    attrs = [
        a if isinstance(a, dict) else {"attribute": a, "is_primary_key": a == hash_attribute, "indexed": a == hash_attribute}
        for a in attributes
    ]
    return {
        "schema": database,
        "name": name,
        "hash_attribute": hash_attribute,
        "audit": True,
        "schema_defined": True,
        "attributes": attrs,
        "record_count": record_count,
        **extra,
    }


@pytest.fixture
def describe_all_payload() -> dict:
    """Two related tables in ``data`` plus an empty ``dev`` database."""
    return {
        "data": {
            "dog": table_schema_dict(
                "dog",
                [
                    {"attribute": "id", "is_primary_key": True, "indexed": True},
                    {"attribute": "ownerId", "indexed": True},
                    {"attribute": "name"},
                ],
                record_count=3,
                db_size=4096,
            ),
            "owner": table_schema_dict("owner", ["id", "name"], record_count=2),
        },
        "dev": {},
    }
