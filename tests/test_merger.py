"""Tests for combining analysis runs."""

from __future__ import annotations

import pytest

from delphi_app.merger import merge_runs
from delphi_app.results import AnalysisOption, AnalysisRow


def _row(n, percents, *, item_id="i1", round_id="r1", prompt="Q", title="Project", label="Vòng 1", non_essential=None):
    return AnalysisRow(
        project_id="p1",
        project_title=title,
        round_id=round_id,
        round_label=label,
        item_id=item_id,
        full_prompt=prompt,
        N=n,
        options=[AnalysisOption(option_label=k, percent=v) for k, v in percents.items()],
        nonEssentialPercent=non_essential,
    )


def test_merging_a_run_with_itself_doubles_n():
    run = [
        _row(3, {"A": 100 / 3, "B": 200 / 3}, item_id="i1"),
        _row(7, {"A": 0.0, "B": 100.0}, item_id="i2", prompt="R"),
    ]

    merged = merge_runs([run, run])

    assert [r.n for r in merged] == [6, 14]
    for original, combined in zip(run, merged):
        for opt in original.options:
            assert combined.percent_for(opt.option_label) == pytest.approx(opt.percent, abs=1e-9)


def test_merge_two_cohorts_scenario():
    """2 users all on A plus 3 users split 1/2 gives 40/60 over 5."""
    k1 = [_row(2, {"A": 100.0, "B": 0.0})]
    k2 = [_row(3, {"A": 0.0, "B": 100.0})]

    merged = merge_runs([k1, k2])

    assert len(merged) == 1
    assert merged[0].n == 5
    assert merged[0].percent_for("A") == pytest.approx(40.0)
    assert merged[0].percent_for("B") == pytest.approx(60.0)


def test_rows_with_no_participants_are_skipped():
    merged = merge_runs([[_row(0, {"A": 0.0})], [_row(4, {"A": 50.0})]])

    assert merged[0].n == 4
    assert merged[0].percent_for("A") == pytest.approx(50.0)


def test_item_present_in_one_run_only_is_kept():
    merged = merge_runs([[_row(2, {"A": 50.0}, item_id="i1")], [_row(3, {"A": 100.0}, item_id="i2", prompt="R")]])

    assert [(r.item_id, r.n) for r in merged] == [("i1", 2), ("i2", 3)]


def test_non_essential_percent_is_weighted_by_n():
    a = [_row(1, {"Không thiết yếu": 100.0}, non_essential=100.0)]
    b = [_row(3, {"Không thiết yếu": 0.0}, non_essential=0.0)]

    merged = merge_runs([a, b])

    assert merged[0].non_essential_percent == pytest.approx(25.0)


def test_non_essential_stays_none_when_no_run_reports_it():
    merged = merge_runs([[_row(2, {"A": 50.0})], [_row(2, {"A": 50.0})]])
    assert merged[0].non_essential_percent is None


def test_single_run_is_reproduced():
    run = [_row(4, {"A": 25.0, "B": 75.0}, non_essential=None)]
    merged = merge_runs([run])
    assert merged[0].n == 4
    assert merged[0].percent_for("A") == pytest.approx(25.0)
    assert merged[0].percent_for("B") == pytest.approx(75.0)


def test_merged_rows_are_sorted():
    run = [
        _row(1, {"A": 100.0}, item_id="i3", title="Beta", prompt="a"),
        _row(1, {"A": 100.0}, item_id="i2", title="Alpha", prompt="z", round_id="r2", label="Vòng 2"),
        _row(1, {"A": 100.0}, item_id="i1", title="Alpha", prompt="m"),
    ]

    merged = merge_runs([run])

    assert [r.item_id for r in merged] == ["i1", "i2", "i3"]


def test_merge_of_nothing_is_empty():
    assert merge_runs([]) == []
    assert merge_runs([[], []]) == []
