"""Tests for the result table and CSV export."""

from __future__ import annotations

import csv
import io

import pytest

from delphi_app.presentation import build_table, cell_flags, option_columns, paginate, rows_to_csv
from delphi_app.results import AnalysisOption, AnalysisRow

from conftest import NON_ESSENTIAL


def _row(item_id, percents, *, n=10, prompt=None, non_essential=None):
    return AnalysisRow(
        project_id="p1",
        project_title="Project",
        round_id="r1",
        round_label="Vòng 1",
        item_id=item_id,
        full_prompt=prompt or f"Question {item_id}",
        N=n,
        options=[AnalysisOption(option_label=k, percent=v) for k, v in percents.items()],
        nonEssentialPercent=non_essential,
    )


def test_high_non_essential_flag_uses_cut_off():
    """35% is flagged at a 30% cut-off; 25% is not."""
    high = _row("i1", {"Thiết yếu": 65.0, NON_ESSENTIAL: 35.0}, non_essential=35.0)
    low = _row("i2", {"Thiết yếu": 75.0, NON_ESSENTIAL: 25.0}, non_essential=25.0)

    table = build_table([high, low], cut_off_consensus=70, cut_off_nonessential=30)

    assert [r.high_non_essential for r in table.rows] == [True, False]
    ne_cells = [next(c for c in r.cells if c.option_label == NON_ESSENTIAL) for r in table.rows]
    assert [c.high_non_essential for c in ne_cells] == [True, False]
    # the non-essential column is never judged for consensus
    assert not any(c.low_consensus for c in ne_cells)


def test_cell_flags_low_consensus():
    row = _row("i1", {"A": 69.9, "B": 70.0})

    a = cell_flags(row, "A", cut_off_consensus=70, cut_off_nonessential=30)
    b = cell_flags(row, "B", cut_off_consensus=70, cut_off_nonessential=30)

    assert a.low_consensus and not b.low_consensus


def test_cell_for_missing_option_has_no_flags():
    cell = cell_flags(_row("i1", {"A": 10.0}), "B", cut_off_consensus=70, cut_off_nonessential=30)
    assert cell.percent is None
    assert not cell.low_consensus and not cell.high_non_essential


def test_missing_non_essential_percent_is_never_high():
    table = build_table([_row("i1", {"A": 10.0})], cut_off_nonessential=0)
    assert table.rows[0].high_non_essential is False


def test_columns_cover_all_rows_sorted():
    rows = [_row("i1", {"C": 1.0, "A": 2.0}), _row("i2", {"B": 3.0})]
    assert option_columns(rows) == ["A", "B", "C"]

    table = build_table(rows, page=2, page_size=1)
    assert table.columns == ["A", "B", "C"]
    assert [c.option_label for c in table.rows[0].cells] == ["A", "B", "C"]


@pytest.mark.parametrize(
    "page, expected_page, expected_ids",
    [(1, 1, ["i0", "i1"]), (3, 3, ["i4"]), (0, 1, ["i0", "i1"]), (99, 3, ["i4"])],
)
def test_paginate_clamps_page(page, expected_page, expected_ids):
    rows = [_row(f"i{i}", {"A": 50.0}) for i in range(5)]

    window = paginate(rows, page, 2)

    assert window.page == expected_page
    assert window.total_pages == 3
    assert window.total_rows == 5
    assert [r.item_id for r in window.rows] == expected_ids


def test_paginate_empty_has_one_page():
    window = paginate([], 1, 25)
    assert window.total_pages == 1
    assert window.rows == []


def test_table_uses_configured_defaults():
    table = build_table([_row("i1", {"A": 50.0})])
    assert table.cut_off_consensus == 70
    assert table.cut_off_nonessential == 30
    assert table.page_size == 25


def test_csv_layout():
    rows = [
        _row("i1", {"A": 33.333, "B": 66.667}, n=3, prompt="First"),
        _row("i2", {"C": 100.0}, n=2, prompt="Second"),
    ]

    text = rows_to_csv(rows)
    parsed = list(csv.reader(io.StringIO(text)))

    assert parsed[0] == ["Project", "Round", "Question", "N", "A", "B", "C"]
    assert parsed[1] == ["Project", "Vòng 1", "First", "3", "33.3", "66.7", ""]
    assert parsed[2] == ["Project", "Vòng 1", "Second", "2", "", "", "100.0"]


def test_csv_quotes_commas_in_prompts():
    text = rows_to_csv([_row("i1", {"A": 50.0}, prompt="Assess, then plan")])
    parsed = list(csv.reader(io.StringIO(text)))
    assert parsed[1][2] == "Assess, then plan"


def test_csv_of_no_rows_is_header_only():
    parsed = list(csv.reader(io.StringIO(rows_to_csv([]))))
    assert parsed == [["Project", "Round", "Question", "N"]]
