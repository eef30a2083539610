"""Append-only activation check audit log."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..schema import TripActivationCheck


class ActivationCheckRepository:
    def __init__(self, session: Session):
        self.session = session

    def add(self, check: TripActivationCheck) -> TripActivationCheck:
        self.session.add(check)
        self.session.flush()
        return check

    def latest_activated_since(self, trip_id: str, since: datetime) -> TripActivationCheck | None:
        """Most recent successful check for trip_id at or after since."""
        stmt = (
            select(TripActivationCheck)
            .where(
                TripActivationCheck.scheduled_trip_id == trip_id,
                TripActivationCheck.activated.is_(True),
                TripActivationCheck.created_at >= since,
            )
            .order_by(TripActivationCheck.created_at.desc(), TripActivationCheck.id.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_recent(self, trip_id: str, limit: int = 10) -> list[TripActivationCheck]:
        stmt = (
            select(TripActivationCheck)
            .where(TripActivationCheck.scheduled_trip_id == trip_id)
            .order_by(TripActivationCheck.created_at.desc(), TripActivationCheck.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())
