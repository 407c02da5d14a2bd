"""Tests for grid viewport math and cell formatting."""
from __future__ import annotations

from datetime import datetime

from dug.tui.windowing import (
    MAX_COL_WIDTH,
    MIN_COL_WIDTH,
    column_window,
    format_cell,
    format_timestamp,
    max_column_start,
    natural_width,
    order_columns,
    pad_cell,
    row_window,
    truncate,
    viewport,
)


# ─── rows ──────────────────────────────────────────────────────────────────────

def test_row_window_starts_at_zero_while_selection_fits():
    assert row_window(100, 0, 10) == (0, 10)
    assert row_window(100, 9, 10) == (0, 10)


def test_row_window_trails_selection():
    assert row_window(100, 10, 10) == (1, 11)
    assert row_window(100, 55, 10) == (46, 56)
    assert row_window(100, 99, 10) == (90, 100)


def test_row_window_small_and_empty_data():
    assert row_window(3, 2, 10) == (0, 3)
    assert row_window(0, 0, 10) == (0, 0)


def test_selected_row_always_visible():
    for selected in range(50):
        start, end = row_window(50, selected, 7)
        assert start <= selected < end
        assert end - start == 7


# ─── columns ───────────────────────────────────────────────────────────────────

def test_column_window_packs_with_gaps():
    window = column_window([5, 5, 5], 0, 14)
    assert (window.start, window.end) == (0, 2)
    assert window.widths == (5, 5)
    assert window.hidden_left == 0
    assert window.hidden_right == 1


def test_column_window_from_offset():
    window = column_window([10, 10, 10, 10], 2, 100)
    assert (window.start, window.end) == (2, 4)
    assert window.hidden_left == 2
    assert window.hidden_right == 0
    assert window.count == 2


def test_wide_first_column_is_clipped_not_dropped():
    window = column_window([30, 8], 0, 20)
    assert window.widths == (20,)
    assert window.count == 1

    tiny = column_window([30], 0, 3)
    assert tiny.widths == (MIN_COL_WIDTH,)


def test_column_window_empty():
    window = column_window([], 0, 80)
    assert window.count == 0


def test_max_column_start_packs_backward():
    assert max_column_start([10, 10, 10, 10], 22) == 2
    assert max_column_start([10, 10], 100) == 0
    assert max_column_start([50], 10) == 0


def test_viewport_clamps_scroll_offset():
    view = viewport(
        total_rows=30,
        selected_row=29,
        max_visible_rows=10,
        widths=[10, 10, 10, 10],
        col_start=99,
        terminal_width=26,
    )
    assert (view.row_start, view.row_end) == (20, 30)
    assert view.rows_above == 20
    assert view.col_start == 2
    assert view.col_end == 4
    assert view.hidden_left == 2
    assert view.hidden_right == 0


# ─── formatting ────────────────────────────────────────────────────────────────

def test_format_cell():
    assert format_cell(None, "a") == ""
    assert format_cell(True, "a") == "true"
    assert format_cell(3, "a") == "3"
    assert format_cell({"b": [1, 2]}, "a") == '{"b":[1,2]}'
    assert format_cell("two\nlines", "a") == "two lines"


def test_timestamp_columns_render_dates():
    ms = 1_700_000_000_000
    expected = datetime.fromtimestamp(ms / 1000).strftime("%x, %X")
    assert format_cell(ms, "__createdtime__") == expected
    assert format_timestamp("soon") == "soon"
    assert format_cell(ms, "created") == str(ms)


def test_truncate_and_pad():
    assert truncate("abcdef", 4) == "abc…"
    assert truncate("abc", 4) == "abc"
    assert truncate("abc", 0) == ""
    assert pad_cell("ab", 4) == "ab  "
    assert pad_cell("abcdef", 4) == "abc…"


def test_order_columns_puts_internal_last():
    rows = [{"__createdtime__": 1, "id": 1, "name": "a"}, {"id": 2, "age": 3}]
    assert order_columns(rows) == ["id", "name", "age", "__createdtime__"]


def test_natural_width_is_bounded():
    assert natural_width("id", [{"id": 1}]) == MIN_COL_WIDTH
    assert natural_width("x", [{"x": "y" * 100}]) == MAX_COL_WIDTH
    assert natural_width("name", [{"name": "Bartholomew"}]) == 11
