from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Mapping, Optional

from .store import ResponseRecord

logger = logging.getLogger(__name__)

CohortLookup = Callable[[List[str]], Mapping[str, Optional[str]]]


def normalize_cohort_code(raw: Optional[str]) -> Optional[str]:
    """Blank or missing input means "all cohorts"."""
    if raw is None or not raw.strip():
        return None
    return raw


def filter_by_cohort(
    responses: Iterable[ResponseRecord],
    cohort_code: Optional[str],
    lookup: CohortLookup,
) -> List[ResponseRecord]:
    """Keep responses whose user's cohort code equals *cohort_code* exactly.

    *lookup* is called once with every distinct user id and returns
    ``{user_id: cohort_code}``; users it does not return are dropped.
    """
    rows = list(responses)
    if cohort_code is None:
        return rows
    user_ids = sorted({r.user_id for r in rows})
    if not user_ids:
        return []
    cohorts = lookup(user_ids)
    kept = [r for r in rows if r.user_id in cohorts and cohorts[r.user_id] == cohort_code]
    logger.debug("Cohort %r kept %d of %d responses", cohort_code, len(kept), len(rows))
    return kept
