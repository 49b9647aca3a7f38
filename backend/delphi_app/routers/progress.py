from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Round
from ..store import (
    count_items_by_round,
    fetch_all,
    load_profiles,
    load_response_progress,
    load_round_participants,
    load_round_scope,
)
from .auth import User, get_current_admin


router = APIRouter(prefix="/surveys", tags=["progress"])


class ProgressRow(BaseModel):
    user_id: str
    user_name: str
    email: str
    project_id: str
    project_title: str
    round_id: str
    round_number: int
    # True once every item of the round has a submitted response
    is_submitted: bool
    updated_at: Optional[datetime] = None
    submitted_items: int
    total_items: int


class ProgressResponse(BaseModel):
    items: List[ProgressRow]


def _resolve_round_ids(db: Session, project_id: Optional[str], round_id: Optional[str]) -> List[str]:
    if round_id:
        return [round_id]
    if project_id:
        rows = fetch_all(
            db,
            select(Round.id).where(Round.project_id == project_id).order_by(Round.id),
            step="rounds",
        )
        return [r.id for r in rows]
    return []


@router.get("/progress", response_model=ProgressResponse)
def survey_progress(
    project_id: Optional[str] = None,
    round_id: Optional[str] = None,
    status: Literal["all", "submitted", "not_submitted"] = "all",
    q: str = Query(default=""),
    user: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    round_ids = _resolve_round_ids(db, project_id, round_id)
    if not round_ids:
        return ProgressResponse(items=[])

    scope = load_round_scope(db, round_ids)
    totals = count_items_by_round(db, round_ids)
    participants = load_round_participants(db, round_ids)
    if not participants:
        return ProgressResponse(items=[])

    user_ids = sorted({uid for _, uid in participants if uid})
    profiles = load_profiles(db, user_ids)
    progress = load_response_progress(db, round_ids, user_ids)

    rows: List[ProgressRow] = []
    for rid, uid in participants:
        rnd = scope.rounds.get(rid)
        pid = rnd.project_id if rnd else ""
        project = scope.projects.get(pid)
        profile = profiles.get(uid)
        total = totals.get(rid, 0)
        done = progress.get((rid, uid))
        submitted = done.submitted_items if done else 0
        rows.append(
            ProgressRow(
                user_id=uid,
                user_name=profile.name if profile else "",
                email=profile.email if profile else "",
                project_id=pid,
                project_title=project.title if project else "",
                round_id=rid,
                round_number=rnd.round_number if rnd else 0,
                is_submitted=total > 0 and submitted >= total,
                updated_at=done.last_updated_at if done else None,
                submitted_items=submitted,
                total_items=total,
            )
        )

    needle = q.strip().lower()
    if needle:
        rows = [r for r in rows if needle in r.user_name.lower() or needle in r.email.lower()]
    if status == "submitted":
        rows = [r for r in rows if r.is_submitted]
    elif status == "not_submitted":
        rows = [r for r in rows if not r.is_submitted]

    rows.sort(key=lambda r: r.user_name or r.email)
    return ProgressResponse(items=rows)
