"""Read-only access to the survey store.

Every multi-row read goes through :func:`fetch_all`, which pages with
``LIMIT/OFFSET`` over a fully ordered select until a short page comes back.
Any failure raises :class:`StoreQueryError` naming the step; partial results
are never returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from .errors import StoreQueryError
from .models import Item, Profile, Project, Response, Round, RoundParticipant
from .settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectRecord:
    id: str
    title: str


@dataclass(frozen=True)
class RoundRecord:
    id: str
    project_id: str
    round_number: int


@dataclass(frozen=True)
class ItemRecord:
    id: str
    round_id: Optional[str]
    project_id: str
    prompt: str
    options_json: Any = None
    item_order: Optional[int] = None


@dataclass(frozen=True)
class ResponseRecord:
    round_id: str
    item_id: str
    user_id: str
    answer_json: Any = None


@dataclass(frozen=True)
class ProfileRecord:
    id: str
    name: str = ""
    email: str = ""
    cohort_code: Optional[str] = None


@dataclass(frozen=True)
class ResponseProgress:
    round_id: str
    user_id: str
    submitted_items: int
    last_updated_at: Optional[datetime]


@dataclass
class RoundScope:
    """Rounds, their projects and their items for one analysis request."""

    rounds: Dict[str, RoundRecord] = field(default_factory=dict)
    projects: Dict[str, ProjectRecord] = field(default_factory=dict)
    items: List[ItemRecord] = field(default_factory=list)


def chunked(values: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def fetch_all(db: Session, stmt: Select, *, step: str, page_size: Optional[int] = None) -> List[Any]:
    """Run *stmt* page by page and return every row.

    *stmt* must carry an ``ORDER BY`` covering a unique key, otherwise page
    boundaries are not stable.
    """
    size = page_size or settings.store_page_size
    rows: List[Any] = []
    offset = 0
    while True:
        try:
            page = db.execute(stmt.limit(size).offset(offset)).all()
        except SQLAlchemyError as exc:
            logger.error("Store read failed step=%s offset=%d: %s", step, offset, exc)
            raise StoreQueryError(step, exc) from exc
        rows.extend(page)
        logger.debug("Fetched %s page offset=%d rows=%d", step, offset, len(page))
        if len(page) < size:
            break
        offset += size
    return rows


def load_round_scope(db: Session, round_ids: Sequence[str], *, page_size: Optional[int] = None) -> RoundScope:
    ids = list(dict.fromkeys(round_ids))
    scope = RoundScope()
    if not ids:
        return scope

    round_rows = fetch_all(
        db,
        select(Round.id, Round.project_id, Round.round_number).where(Round.id.in_(ids)).order_by(Round.id),
        step="rounds",
        page_size=page_size,
    )
    for r in round_rows:
        scope.rounds[r.id] = RoundRecord(id=r.id, project_id=r.project_id, round_number=r.round_number or 0)
    if not scope.rounds:
        return scope

    project_ids = sorted({r.project_id for r in scope.rounds.values()})
    project_rows = fetch_all(
        db,
        select(Project.id, Project.title).where(Project.id.in_(project_ids)).order_by(Project.id),
        step="projects",
        page_size=page_size,
    )
    for p in project_rows:
        scope.projects[p.id] = ProjectRecord(id=p.id, title=p.title or "")

    item_rows = fetch_all(
        db,
        select(Item.id, Item.round_id, Item.project_id, Item.prompt, Item.options_json, Item.item_order)
        .where(Item.round_id.in_(list(scope.rounds)))
        .order_by(Item.round_id, Item.item_order, Item.id),
        step="items",
        page_size=page_size,
    )
    scope.items = [
        ItemRecord(
            id=i.id,
            round_id=i.round_id,
            project_id=i.project_id,
            prompt=i.prompt or "",
            options_json=i.options_json,
            item_order=i.item_order,
        )
        for i in item_rows
    ]
    return scope


def load_submitted_responses(
    db: Session,
    round_ids: Sequence[str],
    *,
    page_size: Optional[int] = None,
) -> List[ResponseRecord]:
    """Every submitted response of *round_ids*."""
    ids = list(dict.fromkeys(round_ids))
    if not ids:
        return []
    stmt = (
        select(Response.round_id, Response.item_id, Response.user_id, Response.answer_json)
        .where(Response.round_id.in_(ids))
        .where(Response.is_submitted.is_(True))
        .order_by(Response.round_id, Response.item_id, Response.user_id)
    )
    rows = fetch_all(db, stmt, step="responses", page_size=page_size)
    return [
        ResponseRecord(round_id=r.round_id, item_id=r.item_id, user_id=r.user_id, answer_json=r.answer_json)
        for r in rows
    ]


def load_profiles(db: Session, user_ids: Iterable[str]) -> Dict[str, ProfileRecord]:
    users = sorted(set(u for u in user_ids if u))
    profiles: Dict[str, ProfileRecord] = {}
    for batch in chunked(users, settings.store_in_chunk_size):
        rows = fetch_all(
            db,
            select(Profile.id, Profile.name, Profile.email, Profile.cohort_code)
            .where(Profile.id.in_(list(batch)))
            .order_by(Profile.id),
            step="profiles",
        )
        for p in rows:
            profiles[p.id] = ProfileRecord(id=p.id, name=p.name or "", email=p.email or "", cohort_code=p.cohort_code)
    return profiles


def load_cohort_codes(db: Session, user_ids: Iterable[str]) -> Dict[str, Optional[str]]:
    """Map user id to cohort code; users without a profile are absent."""
    return {uid: p.cohort_code for uid, p in load_profiles(db, user_ids).items()}


def load_round_participants(db: Session, round_ids: Sequence[str]) -> List[Tuple[str, str]]:
    ids = list(dict.fromkeys(round_ids))
    if not ids:
        return []
    rows = fetch_all(
        db,
        select(RoundParticipant.round_id, RoundParticipant.user_id)
        .where(RoundParticipant.round_id.in_(ids))
        .order_by(RoundParticipant.round_id, RoundParticipant.user_id),
        step="round_participants",
    )
    return [(r.round_id, r.user_id) for r in rows]


def count_items_by_round(db: Session, round_ids: Sequence[str]) -> Dict[str, int]:
    ids = list(dict.fromkeys(round_ids))
    if not ids:
        return {}
    try:
        rows = db.execute(
            select(Item.round_id, func.count(Item.id)).where(Item.round_id.in_(ids)).group_by(Item.round_id)
        ).all()
    except SQLAlchemyError as exc:
        logger.error("Store read failed step=items: %s", exc)
        raise StoreQueryError("items", exc) from exc
    return {rid: int(n) for rid, n in rows}


def load_response_progress(db: Session, round_ids: Sequence[str], user_ids: Iterable[str]) -> Dict[Tuple[str, str], ResponseProgress]:
    """Submitted-item count and latest update per (round id, user id)."""
    ids = list(dict.fromkeys(round_ids))
    users = sorted(set(user_ids))
    progress: Dict[Tuple[str, str], ResponseProgress] = {}
    if not ids or not users:
        return progress
    for batch in chunked(users, settings.store_in_chunk_size):
        stmt = (
            select(
                Response.round_id,
                Response.user_id,
                func.sum(case((Response.is_submitted.is_(True), 1), else_=0)),
                func.max(Response.updated_at),
            )
            .where(Response.round_id.in_(ids))
            .where(Response.user_id.in_(list(batch)))
            .group_by(Response.round_id, Response.user_id)
        )
        try:
            rows = db.execute(stmt).all()
        except SQLAlchemyError as exc:
            logger.error("Store read failed step=responses: %s", exc)
            raise StoreQueryError("responses", exc) from exc
        for rid, uid, submitted, last in rows:
            progress[(rid, uid)] = ResponseProgress(
                round_id=rid, user_id=uid, submitted_items=int(submitted or 0), last_updated_at=last
            )
    return progress
