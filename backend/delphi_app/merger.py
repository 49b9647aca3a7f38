"""Combine per-cohort analysis runs into one result.

Percentages from runs with different ``N`` cannot be averaged. Each run's
option percent is turned back into an (approximate, fractional) count
``N * percent / 100``; counts and ``N`` are summed per (round id, item id)
and the percent is recomputed from the sums. Cohorts are disjoint, so the
summed ``N`` is the merged participant count.

The reconstruction is lossy by nature (a run only keeps percentages), so
merged values match a joint analysis up to floating point error. Merging a
run with itself reproduces its percentages and doubles ``N``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .results import AnalysisOption, AnalysisRow


@dataclass
class _Accumulator:
    template: AnalysisRow
    total_n: int = 0
    counts: Dict[str, float] = field(default_factory=dict)
    non_essential_weighted: float = 0.0
    non_essential_n: int = 0

    def add(self, row: AnalysisRow) -> None:
        self.total_n += row.n
        for opt in row.options:
            # dict keeps first-seen label order across runs
            self.counts[opt.option_label] = self.counts.get(opt.option_label, 0.0) + row.n * opt.percent / 100
        if row.non_essential_percent is not None:
            self.non_essential_weighted += row.n * row.non_essential_percent
            self.non_essential_n += row.n

    def build(self) -> AnalysisRow:
        options = [
            AnalysisOption(option_label=label, percent=_clamp(count / self.total_n * 100))
            for label, count in self.counts.items()
        ]
        non_essential: Optional[float] = None
        if self.non_essential_n > 0:
            non_essential = _clamp(self.non_essential_weighted / self.non_essential_n)
        return self.template.model_copy(
            update={"n": self.total_n, "options": options, "non_essential_percent": non_essential}
        )


def _clamp(percent: float) -> float:
    return min(100.0, max(0.0, percent))


def merge_runs(runs: Iterable[Sequence[AnalysisRow]]) -> List[AnalysisRow]:
    groups: Dict[Tuple[str, str], _Accumulator] = {}
    for run in runs:
        for row in run:
            if row.n <= 0:
                continue
            key = (row.round_id, row.item_id)
            acc = groups.get(key)
            if acc is None:
                acc = groups[key] = _Accumulator(template=row)
            acc.add(row)

    merged = [acc.build() for acc in groups.values()]
    merged.sort(key=lambda r: (r.project_title, r.round_label, r.full_prompt, r.round_id, r.item_id))
    return merged
