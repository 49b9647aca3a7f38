"""Table view and CSV export of analysis rows.

Nothing here changes the numbers; it pages rows, flags cells against the
cut-offs and serialises the full row set.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

import pandas as pd
from pydantic import BaseModel, Field

from .options import is_non_essential_label
from .results import AnalysisRow
from .settings import settings

CSV_FIXED_COLUMNS = ["Project", "Round", "Question", "N"]


class RowPage(BaseModel):
    rows: List[AnalysisRow]
    page: int
    page_size: int
    total_pages: int
    total_rows: int


class TableCell(BaseModel):
    option_label: str
    percent: Optional[float] = None
    low_consensus: bool = False
    high_non_essential: bool = False


class TableRow(BaseModel):
    project_title: str
    round_id: str
    round_label: str
    item_id: str
    full_prompt: str
    N: int
    high_non_essential: bool = False
    cells: List[TableCell] = Field(default_factory=list)


class AnalysisTable(BaseModel):
    columns: List[str]
    rows: List[TableRow]
    page: int
    page_size: int
    total_pages: int
    total_rows: int
    cut_off_consensus: float
    cut_off_nonessential: float


def option_columns(rows: Sequence[AnalysisRow]) -> List[str]:
    """Sorted union of every option label seen in *rows*."""
    return sorted({opt.option_label for row in rows for opt in row.options})


def paginate(rows: Sequence[AnalysisRow], page: int = 1, page_size: Optional[int] = None) -> RowPage:
    size = page_size or settings.table_page_size
    total_pages = max(1, math.ceil(len(rows) / size))
    current = min(max(page, 1), total_pages)
    start = (current - 1) * size
    return RowPage(
        rows=list(rows[start : start + size]),
        page=current,
        page_size=size,
        total_pages=total_pages,
        total_rows=len(rows),
    )


def is_high_non_essential(row: AnalysisRow, cut_off_nonessential: float) -> bool:
    return row.non_essential_percent is not None and row.non_essential_percent >= cut_off_nonessential


def cell_flags(
    row: AnalysisRow,
    label: str,
    *,
    cut_off_consensus: float,
    cut_off_nonessential: float,
    marker: Optional[str] = None,
) -> TableCell:
    percent = row.percent_for(label)
    cell = TableCell(option_label=label, percent=percent)
    if percent is None:
        return cell
    if is_non_essential_label(label, marker or settings.non_essential_marker):
        cell.high_non_essential = is_high_non_essential(row, cut_off_nonessential)
    else:
        cell.low_consensus = percent < cut_off_consensus
    return cell


def build_table(
    rows: Sequence[AnalysisRow],
    *,
    page: int = 1,
    page_size: Optional[int] = None,
    cut_off_consensus: Optional[float] = None,
    cut_off_nonessential: Optional[float] = None,
    marker: Optional[str] = None,
) -> AnalysisTable:
    consensus = settings.default_cut_off_consensus if cut_off_consensus is None else cut_off_consensus
    nonessential = settings.default_cut_off_nonessential if cut_off_nonessential is None else cut_off_nonessential
    # Columns cover every row, not just the visible page, so they stay put while paging
    columns = option_columns(rows)
    window = paginate(rows, page, page_size)
    table_rows = [
        TableRow(
            project_title=row.project_title,
            round_id=row.round_id,
            round_label=row.round_label,
            item_id=row.item_id,
            full_prompt=row.full_prompt,
            N=row.n,
            high_non_essential=is_high_non_essential(row, nonessential),
            cells=[
                cell_flags(
                    row,
                    label,
                    cut_off_consensus=consensus,
                    cut_off_nonessential=nonessential,
                    marker=marker,
                )
                for label in columns
            ],
        )
        for row in window.rows
    ]
    return AnalysisTable(
        columns=columns,
        rows=table_rows,
        page=window.page,
        page_size=window.page_size,
        total_pages=window.total_pages,
        total_rows=window.total_rows,
        cut_off_consensus=consensus,
        cut_off_nonessential=nonessential,
    )


def _format_percent(value: Optional[float]) -> Optional[str]:
    return None if value is None else f"{value:.1f}"


def rows_to_csv(rows: Sequence[AnalysisRow]) -> str:
    """CSV of all *rows*: fixed columns then one column per option label.

    Options an item does not have are left empty rather than written as 0.
    """
    labels = option_columns(rows)
    data = [
        [row.project_title, row.round_label, row.full_prompt, row.n]
        + [_format_percent(row.percent_for(label)) for label in labels]
        for row in rows
    ]
    df = pd.DataFrame(data, columns=CSV_FIXED_COLUMNS + labels)
    return df.to_csv(index=False)
