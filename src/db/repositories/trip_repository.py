"""Scheduled trip repository with compare-and-set status writes."""

from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from core.exceptions import ConflictError
from trip import TripStatus

from ..schema import ScheduledTrip, TripPoint, TripProgress
from ..utils import utc_now


class TripRepository:
    """Repository for scheduled trips, their points and progress."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, trip: ScheduledTrip) -> ScheduledTrip:
        self.session.add(trip)
        self.session.flush()
        return trip

    def get(self, trip_id: str, with_details: bool = False) -> ScheduledTrip | None:
        if not with_details:
            return self.session.get(ScheduledTrip, trip_id)
        stmt = (
            select(ScheduledTrip)
            .where(ScheduledTrip.id == trip_id)
            .options(selectinload(ScheduledTrip.points), selectinload(ScheduledTrip.progress))
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def compare_and_set_status(
        self,
        trip_id: str,
        expected: TripStatus,
        target: TripStatus,
        **values: Any,
    ) -> None:
        """Move a trip from expected to target in a single conditional UPDATE.

        Raises ConflictError when no row matched, i.e. another writer changed
        the status first.
        """
        stmt = (
            update(ScheduledTrip)
            .where(ScheduledTrip.id == trip_id, ScheduledTrip.status == expected.value)
            .values(status=target.value, updated_at=utc_now(), **values)
            .execution_options(synchronize_session="fetch")
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise ConflictError(
                f"Trip status changed concurrently; expected {expected.value}",
                {"trip_id": trip_id, "expected": expected.value, "target": target.value},
            )

    def list_by_status(self, status: TripStatus) -> list[ScheduledTrip]:
        stmt = (
            select(ScheduledTrip)
            .where(ScheduledTrip.status == status.value)
            .options(selectinload(ScheduledTrip.points), selectinload(ScheduledTrip.progress))
            .order_by(ScheduledTrip.scheduled_time)
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_for_captain(
        self,
        captain_id: str,
        status: TripStatus | None = None,
        trip_date: date | None = None,
    ) -> list[ScheduledTrip]:
        stmt = (
            select(ScheduledTrip)
            .where(ScheduledTrip.assigned_captain_id == captain_id)
            .options(selectinload(ScheduledTrip.points), selectinload(ScheduledTrip.progress))
            .order_by(ScheduledTrip.scheduled_time)
        )
        if status is not None:
            stmt = stmt.where(ScheduledTrip.status == status.value)
        if trip_date is not None:
            stmt = stmt.where(ScheduledTrip.trip_date == trip_date)
        return list(self.session.execute(stmt).scalars().all())

    def list_page(
        self,
        offset: int,
        limit: int,
        status: TripStatus | None = None,
        captain_id: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> tuple[list[ScheduledTrip], int]:
        """Admin listing, newest scheduled first. Returns (page, total)."""
        conditions = []
        if status is not None:
            conditions.append(ScheduledTrip.status == status.value)
        if captain_id is not None:
            conditions.append(ScheduledTrip.assigned_captain_id == captain_id)
        if date_from is not None:
            conditions.append(ScheduledTrip.trip_date >= date_from)
        if date_to is not None:
            conditions.append(ScheduledTrip.trip_date <= date_to)

        total = self.session.execute(
            select(func.count()).select_from(ScheduledTrip).where(*conditions)
        ).scalar_one()

        stmt = (
            select(ScheduledTrip)
            .where(*conditions)
            .options(selectinload(ScheduledTrip.points), selectinload(ScheduledTrip.progress))
            .order_by(ScheduledTrip.scheduled_time.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all()), total

    def list_by_statuses(self, statuses: set[TripStatus]) -> list[ScheduledTrip]:
        stmt = select(ScheduledTrip).where(
            ScheduledTrip.status.in_([s.value for s in statuses])
        )
        return list(self.session.execute(stmt).scalars().all())

    def replace_points(self, trip: ScheduledTrip, points: list[TripPoint]) -> None:
        self.session.execute(delete(TripPoint).where(TripPoint.scheduled_trip_id == trip.id))
        self.session.expire(trip, ["points"])
        for point in points:
            point.scheduled_trip_id = trip.id
        self.session.add_all(points)
        self.session.flush()

    def get_progress(self, trip_id: str) -> TripProgress | None:
        stmt = select(TripProgress).where(TripProgress.scheduled_trip_id == trip_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert_progress(
        self,
        trip_id: str,
        captain_id: str,
        started_at: datetime,
        latitude: float | None,
        longitude: float | None,
    ) -> TripProgress:
        progress = self.get_progress(trip_id)
        if progress is None:
            progress = TripProgress(scheduled_trip_id=trip_id, captain_id=captain_id)
            self.session.add(progress)
        progress.captain_id = captain_id
        progress.current_point_index = 0
        progress.started_at = started_at
        progress.completed_at = None
        progress.last_location_update = started_at
        progress.last_latitude = latitude
        progress.last_longitude = longitude
        self.session.flush()
        return progress

    def delete(self, trip: ScheduledTrip) -> None:
        self.session.delete(trip)
        self.session.flush()

    def delete_all(self) -> int:
        result = self.session.execute(delete(ScheduledTrip))
        return result.rowcount  # type: ignore[attr-defined,no-any-return]

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(ScheduledTrip)
        ).scalar_one()
