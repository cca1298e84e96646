from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceFailure

logger = logging.getLogger("venue_settlement.settlement_engine.unit_of_work")


@contextmanager
def atomic(session: Session, operation: str) -> Iterator[Session]:
    """Commit everything done inside the block, or nothing at all."""
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("%s rolled back after database error", operation)
        raise PersistenceFailure(f"{operation} failed: {exc.__class__.__name__}") from exc
    except Exception:
        session.rollback()
        raise


@contextmanager
def read_guard(session: Session, operation: str) -> Iterator[Session]:
    """Roll back and raise PersistenceFailure when a read hits a database error."""
    try:
        yield session
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("%s failed with database error: %s", operation, exc.__class__.__name__)
        raise PersistenceFailure(f"{operation} failed: {exc.__class__.__name__}") from exc
