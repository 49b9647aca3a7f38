from __future__ import annotations
import logging

from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url or "sqlite:///./delphi.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for older survey databases (SQLite-friendly)
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception as exc:
		logger.warning("Schema inspection skipped: %s", exc)
		return
	with bind.begin() as conn:
		if "profiles" in tables:
			cols = {c["name"] for c in inspector.get_columns("profiles")}
			if "cohort_code" not in cols:
				conn.exec_driver_sql("ALTER TABLE profiles ADD COLUMN cohort_code VARCHAR(64)")
		if "responses" in tables:
			cols = {c["name"] for c in inspector.get_columns("responses")}
			if "is_submitted" not in cols:
				conn.exec_driver_sql("ALTER TABLE responses ADD COLUMN is_submitted BOOLEAN DEFAULT 0 NOT NULL")
