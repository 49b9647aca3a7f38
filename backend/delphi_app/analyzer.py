"""Single-run consensus analysis.

For a set of rounds and an optional cohort, every item with declared options
gets one :class:`AnalysisRow`:

* ``N`` is the number of distinct users with any submitted response in the
  item's *round* (not the item), so percentages are comparable across the
  items of a round even when participants skipped some of them.
* ``percent`` of an option is the share of those ``N`` users whose answer to
  the item selected it.
* Items in rounds with ``N == 0`` and items without option labels are left out.

:func:`analyze` is a pure function over already-loaded records;
:func:`run_analysis` wires it to the store.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from .cohort import filter_by_cohort, normalize_cohort_code
from .errors import InvalidAnalysisRequest
from .merger import merge_runs
from .options import extract_option_labels, extract_selected_labels, is_non_essential_label
from .results import AnalysisMeta, AnalysisOption, AnalysisResult, AnalysisRow
from .settings import settings
from .store import ResponseRecord, RoundScope, load_cohort_codes, load_round_scope, load_submitted_responses

logger = logging.getLogger(__name__)


def round_label(round_number: int, template: Optional[str] = None) -> str:
    return (template or settings.round_label_template).format(number=round_number)


def analyze(
    scope: RoundScope,
    responses: Iterable[ResponseRecord],
    *,
    marker: Optional[str] = None,
    round_label_template: Optional[str] = None,
) -> List[AnalysisRow]:
    marker = marker or settings.non_essential_marker

    participants: Dict[str, Set[str]] = defaultdict(set)
    # (round_id, item_id) -> user_id -> selected labels
    selections: Dict[Tuple[str, str], Dict[str, Set[str]]] = defaultdict(lambda: defaultdict(set))
    for r in responses:
        participants[r.round_id].add(r.user_id)
        selections[(r.round_id, r.item_id)][r.user_id].update(extract_selected_labels(r.answer_json))

    keyed: List[Tuple[Tuple[str, int, str], AnalysisRow]] = []
    for item in scope.items:
        if not item.round_id:
            continue
        rnd = scope.rounds.get(item.round_id)
        if rnd is None:
            continue
        project = scope.projects.get(rnd.project_id)
        if project is None:
            continue
        n = len(participants.get(item.round_id, ()))
        if n == 0:
            continue
        labels = extract_option_labels(item.options_json)
        if not labels:
            continue

        chosen = selections.get((item.round_id, item.id), {})
        options: List[AnalysisOption] = []
        seen: Set[str] = set()
        for label in labels:
            # A label declared twice on the item is reported once
            if label in seen:
                continue
            seen.add(label)
            count = sum(1 for picked in chosen.values() if label in picked)
            options.append(AnalysisOption(option_label=label, percent=count / n * 100))

        non_essential: Optional[float] = None
        for opt in options:
            if is_non_essential_label(opt.option_label, marker):
                non_essential = opt.percent
                break

        row = AnalysisRow(
            project_id=rnd.project_id,
            project_title=project.title,
            round_id=rnd.id,
            round_label=round_label(rnd.round_number, round_label_template),
            item_id=item.id,
            full_prompt=item.prompt,
            N=n,
            options=options,
            nonEssentialPercent=non_essential,
        )
        keyed.append(((project.title, rnd.round_number, item.prompt), row))

    keyed.sort(key=lambda pair: pair[0])
    return [row for _, row in keyed]


def _validate_round_ids(round_ids: Optional[Sequence[str]]) -> List[str]:
    ids = [str(r) for r in (round_ids or []) if r is not None and str(r).strip()]
    if not ids:
        raise InvalidAnalysisRequest("round_ids[] is required")
    # duplicates are kept so round_count reflects the request as sent
    return ids


def run_analysis(
    db: Session,
    round_ids: Sequence[str],
    *,
    cohort_code: Optional[str] = None,
    cut_off_consensus: Optional[float] = None,
    cut_off_nonessential: Optional[float] = None,
) -> AnalysisResult:
    """Read the selected rounds and analyse them for one cohort (or all)."""
    ids = _validate_round_ids(round_ids)
    cohort = normalize_cohort_code(cohort_code)
    meta = AnalysisMeta(
        cut_off_consensus=settings.default_cut_off_consensus if cut_off_consensus is None else cut_off_consensus,
        cut_off_nonessential=settings.default_cut_off_nonessential if cut_off_nonessential is None else cut_off_nonessential,
        round_count=len(ids),
        cohort_code=cohort,
        cohort_codes=[cohort] if cohort else [],
    )

    scope = load_round_scope(db, ids)
    if not scope.rounds:
        logger.info("Analysis: none of %d rounds exist", len(ids))
        return AnalysisResult(rows=[], meta=meta)

    responses = load_submitted_responses(db, list(scope.rounds))
    responses = filter_by_cohort(responses, cohort, lambda users: load_cohort_codes(db, users))
    rows = analyze(scope, responses)
    logger.info(
        "Analysis done rounds=%d cohort=%s responses=%d rows=%d",
        len(ids),
        cohort or "all",
        len(responses),
        len(rows),
    )
    return AnalysisResult(rows=rows, meta=meta)


def run_cohort_analysis(
    db: Session,
    round_ids: Sequence[str],
    cohort_codes: Optional[Sequence[str]] = None,
    *,
    cut_off_consensus: Optional[float] = None,
    cut_off_nonessential: Optional[float] = None,
) -> AnalysisResult:
    """Analyse several cohorts as one population.

    Each cohort is analysed on its own, one after the other, and the runs are
    combined with :func:`merge_runs`. No cohort selected means "all".
    """
    codes = list(dict.fromkeys(c for c in (normalize_cohort_code(c) for c in cohort_codes or []) if c))
    if len(codes) <= 1:
        return run_analysis(
            db,
            round_ids,
            cohort_code=codes[0] if codes else None,
            cut_off_consensus=cut_off_consensus,
            cut_off_nonessential=cut_off_nonessential,
        )

    runs: List[AnalysisResult] = []
    for code in codes:
        runs.append(
            run_analysis(
                db,
                round_ids,
                cohort_code=code,
                cut_off_consensus=cut_off_consensus,
                cut_off_nonessential=cut_off_nonessential,
            )
        )
    first = runs[0].meta
    meta = AnalysisMeta(
        cut_off_consensus=first.cut_off_consensus,
        cut_off_nonessential=first.cut_off_nonessential,
        round_count=first.round_count,
        cohort_code=None,
        cohort_codes=codes,
        run_count=len(runs),
    )
    return AnalysisResult(rows=merge_runs(run.rows for run in runs), meta=meta)
