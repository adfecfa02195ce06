"""Session factory, the request-scoped get_db dependency and transaction().

Services never commit on their own. Writes go through transaction(db), so an
exclusion replace or a rule replace lands in one commit or not at all.
Recompute workers take a fresh session from the factory per pass.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from curtain.db.engine import get_engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Bind a session factory to engine, or to the default engine."""
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


_SessionLocal: sessionmaker[Session] | None = None


def get_session_factory() -> sessionmaker[Session]:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = create_session_factory()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Commit db when the block exits cleanly, roll back and re-raise otherwise."""
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise
