from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalysisOption(BaseModel):
    option_label: str
    percent: float = Field(ge=0, le=100)


class AnalysisRow(BaseModel):
    """One analysed (round, item) pair; built per request, never stored."""

    model_config = ConfigDict(populate_by_name=True)

    project_id: str
    project_title: str
    round_id: str
    round_label: str
    item_id: str
    full_prompt: str
    n: int = Field(alias="N")
    options: List[AnalysisOption] = Field(default_factory=list)
    # None when the item has no "not essential" option
    non_essential_percent: Optional[float] = Field(default=None, alias="nonEssentialPercent")

    def percent_for(self, label: str) -> Optional[float]:
        for opt in self.options:
            if opt.option_label == label:
                return opt.percent
        return None


class AnalysisMeta(BaseModel):
    cut_off_consensus: float
    cut_off_nonessential: float
    round_count: int
    cohort_code: Optional[str] = None
    cohort_codes: List[str] = Field(default_factory=list)
    run_count: int = 1


class AnalysisResult(BaseModel):
    rows: List[AnalysisRow] = Field(default_factory=list)
    meta: AnalysisMeta
