from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, Boolean, JSON, ForeignKey, UniqueConstraint
from .db import Base


class Project(Base):
	__tablename__ = "projects"
	id = Column(String(36), primary_key=True)
	title = Column(String(512), nullable=False, default="")
	status = Column(String(32), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Round(Base):
	__tablename__ = "rounds"
	id = Column(String(36), primary_key=True)
	project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
	round_number = Column(Integer, nullable=False, default=1)
	# draft / active / closed; aggregation ignores it
	status = Column(String(32), nullable=False, default="draft")
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Item(Base):
	__tablename__ = "items"
	id = Column(String(36), primary_key=True)
	project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
	round_id = Column(String(36), ForeignKey("rounds.id"), nullable=True, index=True)
	prompt = Column(Text, nullable=False, default="")
	# single / multi / scale / text
	type = Column(String(32), nullable=True)
	# Usually {"choices": [...]}; historical rows may hold a bare list or a JSON string
	options_json = Column(JSON, nullable=True)
	item_order = Column(Integer, nullable=True)


class Response(Base):
	__tablename__ = "responses"
	__table_args__ = (UniqueConstraint("round_id", "item_id", "user_id", name="uq_responses_round_item_user"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	round_id = Column(String(36), ForeignKey("rounds.id"), nullable=False, index=True)
	item_id = Column(String(36), ForeignKey("items.id"), nullable=False, index=True)
	user_id = Column(String(36), nullable=False, index=True)
	# {"choices": [...]}, {"value": ...}, a bare list, or free text
	answer_json = Column(JSON, nullable=True)
	is_submitted = Column(Boolean, default=False, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Profile(Base):
	__tablename__ = "profiles"
	# Same id as the identity provider's user (token "sub")
	id = Column(String(36), primary_key=True)
	email = Column(String(256), nullable=True)
	name = Column(String(256), nullable=True)
	role = Column(String(32), nullable=True)
	cohort_code = Column(String(64), nullable=True)


class RoundParticipant(Base):
	__tablename__ = "round_participants"
	round_id = Column(String(36), ForeignKey("rounds.id"), primary_key=True)
	user_id = Column(String(36), ForeignKey("profiles.id"), primary_key=True)
	invited_at = Column(DateTime, default=datetime.utcnow, nullable=False)
