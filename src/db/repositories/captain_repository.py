"""Captain repository: online status, last location and running balances."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..schema import Captain
from ..utils import utc_now


class CaptainRepository:
    """Repository for captain reads and balance increments."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, captain_id: str) -> Captain | None:
        return self.session.get(Captain, captain_id)

    def upsert(
        self,
        captain_id: str,
        name: str,
        status: str,
        notification_token: str | None,
    ) -> Captain:
        captain = self.session.get(Captain, captain_id)
        if captain is None:
            captain = Captain(id=captain_id, name=name)
            self.session.add(captain)
        captain.name = name
        captain.status = status
        captain.notification_token = notification_token
        self.session.flush()
        return captain

    def update_last_location(
        self, captain_id: str, latitude: float, longitude: float, at: datetime
    ) -> None:
        captain = self.session.get(Captain, captain_id)
        if captain:
            captain.last_latitude = latitude
            captain.last_longitude = longitude
            captain.last_location_at = at

    def add_to_balance(self, captain_id: str, delta: Decimal) -> None:
        """Atomically increment both running balances by delta."""
        stmt = (
            update(Captain)
            .where(Captain.id == captain_id)
            .values(
                total_earning=Captain.total_earning + delta,
                scheduled_trip_balance=Captain.scheduled_trip_balance + delta,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session="fetch")
        )
        self.session.execute(stmt)

    def list_all(self) -> list[Captain]:
        return list(self.session.execute(select(Captain).order_by(Captain.name)).scalars().all())
