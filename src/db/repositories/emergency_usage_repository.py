"""Emergency termination usage records, one per captain per local day."""

from datetime import date

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..schema import EmergencyUsage


class EmergencyUsageRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_for_day(self, driver_id: str, usage_date: date) -> EmergencyUsage | None:
        stmt = select(EmergencyUsage).where(
            EmergencyUsage.driver_id == driver_id,
            EmergencyUsage.usage_date == usage_date,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def add(self, usage: EmergencyUsage) -> EmergencyUsage:
        """Insert and flush so the (driver_id, usage_date) constraint fires here."""
        self.session.add(usage)
        self.session.flush()
        return usage

    def delete_all(self) -> int:
        result = self.session.execute(delete(EmergencyUsage))
        return result.rowcount  # type: ignore[attr-defined,no-any-return]

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(EmergencyUsage)
        ).scalar_one()
