from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..analyzer import run_analysis, run_cohort_analysis
from ..db import get_db
from ..merger import merge_runs
from ..presentation import AnalysisTable, build_table, rows_to_csv
from ..results import AnalysisResult, AnalysisRow
from ..settings import settings
from .auth import User, get_current_admin


router = APIRouter(prefix="/admin/analysis", tags=["analysis"])


class AnalysisRequest(BaseModel):
    round_ids: List[str] = Field(default_factory=list)
    cut_off: float = Field(default_factory=lambda: settings.default_cut_off_consensus, ge=0, le=100)
    cut_off_nonessential: float = Field(default_factory=lambda: settings.default_cut_off_nonessential, ge=0, le=100)
    cohort_code: Optional[str] = None


class CohortAnalysisRequest(AnalysisRequest):
    cohort_codes: List[str] = Field(default_factory=list)


class TableRequest(CohortAnalysisRequest):
    page: int = Field(default=1, ge=1)
    page_size: Optional[int] = Field(default=None, gt=0, le=500)


class MergeRequest(BaseModel):
    runs: List[List[AnalysisRow]] = Field(default_factory=list)


class MergeResponse(BaseModel):
    rows: List[AnalysisRow]
    run_count: int


def _cohort_codes(req: CohortAnalysisRequest) -> List[str]:
    # A single cohort_code is accepted here too
    codes = list(req.cohort_codes)
    if req.cohort_code:
        codes.insert(0, req.cohort_code)
    return codes


@router.post("", response_model=AnalysisResult)
def analyze_rounds(req: AnalysisRequest, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    return run_analysis(
        db,
        req.round_ids,
        cohort_code=req.cohort_code,
        cut_off_consensus=req.cut_off,
        cut_off_nonessential=req.cut_off_nonessential,
    )


@router.post("/merge", response_model=MergeResponse)
def merge_analysis_runs(req: MergeRequest, user: User = Depends(get_current_admin)):
    return MergeResponse(rows=merge_runs(req.runs), run_count=len(req.runs))


@router.post("/cohorts", response_model=AnalysisResult)
def analyze_cohorts(req: CohortAnalysisRequest, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    return run_cohort_analysis(
        db,
        req.round_ids,
        _cohort_codes(req),
        cut_off_consensus=req.cut_off,
        cut_off_nonessential=req.cut_off_nonessential,
    )


@router.post("/table", response_model=AnalysisTable)
def analysis_table(req: TableRequest, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    result = run_cohort_analysis(
        db,
        req.round_ids,
        _cohort_codes(req),
        cut_off_consensus=req.cut_off,
        cut_off_nonessential=req.cut_off_nonessential,
    )
    return build_table(
        result.rows,
        page=req.page,
        page_size=req.page_size,
        cut_off_consensus=result.meta.cut_off_consensus,
        cut_off_nonessential=result.meta.cut_off_nonessential,
    )


@router.post("/export")
def export_analysis_csv(req: CohortAnalysisRequest, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    result = run_cohort_analysis(
        db,
        req.round_ids,
        _cohort_codes(req),
        cut_off_consensus=req.cut_off,
        cut_off_nonessential=req.cut_off_nonessential,
    )
    # BOM so spreadsheet apps read the Vietnamese labels as UTF-8
    content = "\ufeff" + rows_to_csv(result.rows)
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=analysis.csv"},
    )
