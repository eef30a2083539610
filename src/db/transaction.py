"""Transaction utilities for explicit transaction boundaries.

Every state transition and every settlement runs inside transaction() so a
status change, its progress update and its ledger write land together or
not at all.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from core.exceptions import PersistenceError


@contextmanager
def transaction(session: Session) -> Generator[Session]:
    """Commit on success, roll back on any exception.

    Operational database failures (locked database, dropped connection) are
    re-raised as PersistenceError so callers can retry them as transient.

    Example:
        with transaction(session):
            trips.compare_and_set_status(trip_id, TripStatus.ACTIVE, TripStatus.COMPLETED)
            finance.settle(session, trip_id)
    """
    try:
        yield session
        session.commit()
    except OperationalError as exc:
        session.rollback()
        raise PersistenceError(f"Database operation failed: {exc.orig}") from exc
    except DBAPIError as exc:
        session.rollback()
        if exc.connection_invalidated:
            raise PersistenceError("Database connection lost") from exc
        raise
    except Exception:
        session.rollback()
        raise

