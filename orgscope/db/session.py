from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from orgscope.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """
    Main DB dependency.

    Services scope their own queries, either explicitly with ``apply_scope`` or for
    one block with ``orgscope.db.filters.scope_bound`` (the work-item list).
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
