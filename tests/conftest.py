"""Shared fixtures: in-memory survey store, seed helpers and an API client."""

from __future__ import annotations

import itertools
from typing import Any, Iterable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from delphi_app.db import Base, get_db
from delphi_app.main import app
from delphi_app.models import Item, Profile, Project, Response, Round, RoundParticipant
from delphi_app.routers.auth import User, get_current_admin

NON_ESSENTIAL = "Không thiết yếu"

_UNSET: Any = object()


class SurveyFactory:
    """Insert survey rows with short, readable ids."""

    def __init__(self, session):
        self.session = session
        self._seq = itertools.count(1)

    def _id(self, prefix: str) -> str:
        return f"{prefix}{next(self._seq)}"

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def project(self, title: str = "Project", *, id: Optional[str] = None) -> Project:
        return self._save(Project(id=id or self._id("p"), title=title))

    def round(self, project: Project, number: int = 1, *, status: str = "active", id: Optional[str] = None) -> Round:
        return self._save(Round(id=id or self._id("r"), project_id=project.id, round_number=number, status=status))

    def item(
        self,
        rnd: Round,
        prompt: str = "Question",
        options: Iterable[str] = ("A", "B"),
        *,
        options_json: Any = _UNSET,
        item_order: Optional[int] = None,
        id: Optional[str] = None,
    ) -> Item:
        payload = {"choices": list(options)} if options_json is _UNSET else options_json
        return self._save(
            Item(
                id=id or self._id("i"),
                project_id=rnd.project_id,
                round_id=rnd.id,
                prompt=prompt,
                type="single",
                options_json=payload,
                item_order=item_order,
            )
        )

    def answer(self, rnd: Round, item: Item, user_id: str, answer: Any, *, submitted: bool = True) -> Response:
        if isinstance(answer, (list, tuple)):
            answer = {"choices": list(answer)}
        elif isinstance(answer, str):
            answer = {"choices": [answer]}
        return self._save(
            Response(round_id=rnd.id, item_id=item.id, user_id=user_id, answer_json=answer, is_submitted=submitted)
        )

    def profile(
        self,
        user_id: str,
        *,
        cohort_code: Optional[str] = None,
        role: str = "expert",
        name: str = "",
        email: str = "",
    ) -> Profile:
        return self._save(Profile(id=user_id, cohort_code=cohort_code, role=role, name=name, email=email))

    def participant(self, rnd: Round, user_id: str) -> RoundParticipant:
        return self._save(RoundParticipant(round_id=rnd.id, user_id=user_id))


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, future=True)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def survey(db) -> SurveyFactory:
    return SurveyFactory(db)


@pytest.fixture()
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_admin] = lambda: User(id="admin-1", role="admin")
    yield TestClient(app)
    app.dependency_overrides.clear()
