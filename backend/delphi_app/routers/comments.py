from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..analyzer import round_label
from ..cohort import filter_by_cohort, normalize_cohort_code
from ..db import get_db
from ..options import extract_comment
from ..store import load_cohort_codes, load_round_scope, load_submitted_responses
from .auth import User, get_current_admin


router = APIRouter(prefix="/admin/comments", tags=["comments"])
logger = logging.getLogger(__name__)


class RawCommentsRequest(BaseModel):
    round_id: str
    cohort_code: Optional[str] = None


class CommentRow(BaseModel):
    project_id: str
    project_title: str
    round_id: str
    round_label: str
    item_id: str
    item_prompt: str
    user_id: Optional[str] = None
    comment: str


class RawCommentsResponse(BaseModel):
    comments: List[CommentRow]
    total_responses_filtered: int = 0
    total_responses_all: int = 0
    cohort_code: Optional[str] = None


@router.post("/raw", response_model=RawCommentsResponse)
def raw_comments(req: RawCommentsRequest, user: User = Depends(get_current_admin), db: Session = Depends(get_db)):
    cohort = normalize_cohort_code(req.cohort_code)
    scope = load_round_scope(db, [req.round_id])
    rnd = scope.rounds.get(req.round_id)
    project = scope.projects.get(rnd.project_id) if rnd else None
    if rnd is None or project is None:
        return RawCommentsResponse(comments=[], cohort_code=cohort)

    items = {it.id: it for it in scope.items}
    responses = load_submitted_responses(db, [rnd.id])
    responses = filter_by_cohort(responses, cohort, lambda users: load_cohort_codes(db, users))

    label = round_label(rnd.round_number)
    comments: List[CommentRow] = []
    for r in responses:
        text = extract_comment(r.answer_json)
        if not text:
            continue
        item = items.get(r.item_id)
        if item is None:
            continue
        comments.append(
            CommentRow(
                project_id=project.id,
                project_title=project.title,
                round_id=rnd.id,
                round_label=label,
                item_id=item.id,
                item_prompt=item.prompt,
                user_id=r.user_id,
                comment=text,
            )
        )
    comments.sort(key=lambda c: (c.item_prompt, c.user_id or ""))
    logger.info("Raw comments round=%s cohort=%s comments=%d", rnd.id, cohort or "all", len(comments))
    return RawCommentsResponse(
        comments=comments,
        total_responses_filtered=len(comments),
        total_responses_all=len(responses),
        cohort_code=cohort,
    )
