"""Per-trip settlement ledger."""

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..schema import ScheduledTripLedger


class LedgerRepository:
    """At most one ledger row per trip; rows are updated in place."""

    def __init__(self, session: Session):
        self.session = session

    def get_for_trip(self, trip_id: str) -> ScheduledTripLedger | None:
        stmt = select(ScheduledTripLedger).where(ScheduledTripLedger.scheduled_trip_id == trip_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def add(self, entry: ScheduledTripLedger) -> ScheduledTripLedger:
        self.session.add(entry)
        self.session.flush()
        return entry

    def for_trips(self, trip_ids: list[str]) -> dict[str, ScheduledTripLedger]:
        if not trip_ids:
            return {}
        stmt = select(ScheduledTripLedger).where(
            ScheduledTripLedger.scheduled_trip_id.in_(trip_ids)
        )
        return {row.scheduled_trip_id: row for row in self.session.execute(stmt).scalars()}

    def delete_all(self) -> int:
        result = self.session.execute(delete(ScheduledTripLedger))
        return result.rowcount  # type: ignore[attr-defined,no-any-return]

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(ScheduledTripLedger)
        ).scalar_one()
