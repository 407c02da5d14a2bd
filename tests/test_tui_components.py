"""Tests for shared TUI helpers: formatting, fuzzy filter, schema info and the grid."""
from __future__ import annotations

from questionary import Separator

from dug.models import describe_all_adapter
from dug.relationships import infer_relationships
from dug.tui.components import (
    EMPTY_MESSAGE,
    format_bytes,
    format_uptime,
    fuzzy_filter,
    hints_text,
    indexed_summary,
    key_hints,
    nav_choices,
    plural,
    render_data_grid,
    schema_info_lines,
)
from dug.tui.navigator import Screen
from dug.tui.terminal import TerminalSize


def test_nav_choices_layout():
    choices = nav_choices()
    assert isinstance(choices[0], Separator)
    assert [c.value for c in choices[1:]] == ["back", "home", "exit"]
    assert [c.value for c in nav_choices(include_separator=False, include_back=False)] == ["exit"]


def test_key_hints_offer_back_only_with_history():
    assert ("b", "back") not in key_hints(Screen.DASHBOARD, depth=1)
    assert ("b", "back") in key_hints(Screen.TABLE, depth=3)
    assert key_hints(Screen.TABLE, depth=3)[-1] == ("q", "quit")
    assert ("q", "quit") not in key_hints(Screen.CONNECT)


def test_hints_text():
    assert hints_text([("j/k", "navigate"), ("q", "quit")]).plain == "j/k: navigate  q: quit"


def test_format_bytes():
    assert format_bytes(512) == "512 B"
    assert format_bytes(4096) == "4.0 KB"
    assert format_bytes(5 * 1024 ** 2) == "5.0 MB"
    assert format_bytes(3 * 1024 ** 3) == "3.0 GB"


def test_format_uptime():
    assert format_uptime(59) == "0m"
    assert format_uptime(3 * 3600 + 120) == "3h 2m"
    assert format_uptime(90061) == "1d 1h 1m"


def test_plural():
    assert plural(1, "record") == "1 record"
    assert plural(0, "table") == "0 tables"
    assert plural(1200, "record") == "1,200 records"


def test_fuzzy_filter_ranks_exact_hits_first():
    items = ["prod_dogs", "dog", "dev_ops_go", "owner"]
    assert fuzzy_filter(items, "dog") == ["dog", "prod_dogs"]
    assert fuzzy_filter(items, "DOG")[0] == "dog"
    assert fuzzy_filter(items, "zzz") == []


def test_fuzzy_filter_tolerates_typos():
    assert fuzzy_filter(["dog", "owner"], "dgo") == ["dog"]
    assert fuzzy_filter(["breed", "owner"], "bread") == ["breed"]


def test_fuzzy_filter_blank_query_keeps_order():
    items = ["b", "a"]
    assert fuzzy_filter(items, "  ") == ["b", "a"]


def test_fuzzy_filter_with_key():
    items = [{"name": "owner"}, {"name": "dog"}]
    assert fuzzy_filter(items, "dg", key=lambda i: i["name"]) == [{"name": "dog"}]


def test_schema_info_lines(describe_all_payload):
    tables = describe_all_adapter.validate_python(describe_all_payload)["data"]
    dog = tables["dog"]
    lines = schema_info_lines(dog, infer_relationships("dog", dog, tables))

    assert lines[:5] == [
        "Table: dog",
        "Primary Key: id",
        "Records: 3",
        "Schema Defined: yes",
        "Audit: yes",
    ]
    assert "DB Size: 4096" in lines
    assert "  id [PK]" in lines
    assert "  ownerId [indexed]" in lines
    assert "  name" in lines
    assert lines[-2:] == ["Relationships:", "  ownerId → owner (inferred)"]

    owner_lines = schema_info_lines(tables["owner"], infer_relationships("owner", tables["owner"], tables))
    assert owner_lines[-1] == "  ← dog.ownerId"


def test_indexed_summary(describe_all_payload):
    tables = describe_all_adapter.validate_python(describe_all_payload)["data"]
    assert indexed_summary(tables["dog"]) == "indexed: ownerId"
    assert indexed_summary(tables["owner"]) == ""


def test_render_data_grid_empty():
    assert render_data_grid([], 0, TerminalSize()).plain.strip() == EMPTY_MESSAGE


def test_render_data_grid_window_and_paging():
    rows = [{"id": i, "name": f"dog{i}"} for i in range(10)]
    # 17 rows leaves room for five data rows
    text = render_data_grid(rows, 0, TerminalSize(80, 17), page=0, total_pages=3).plain

    assert "▶" in text
    assert "dog4" in text
    assert "dog5" not in text
    assert "↓ 5 more below" in text
    assert "more above" not in text
    assert "page 1/3  ·  row 1/10" in text


def test_render_data_grid_scrolls_with_selection():
    rows = [{"id": i} for i in range(10)]
    text = render_data_grid(rows, 9, TerminalSize(80, 17)).plain
    assert "↑ 5 more above" in text
    assert "more below" not in text
    assert "page" not in text


def test_render_data_grid_respects_column_choice():
    rows = [{"id": 1, "name": "Rex", "secret": "x"}]
    text = render_data_grid(rows, 0, TerminalSize(), columns=["name"]).plain
    assert "name" in text
    assert "secret" not in text
