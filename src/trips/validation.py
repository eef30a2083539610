"""Input models and invariants for creating and replacing scheduled trips."""

from datetime import UTC, date, datetime, time, tzinfo
from decimal import Decimal

from pydantic import BaseModel, Field

from core.exceptions import ValidationError
from trip import TripType


class PointInput(BaseModel):
    name: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    order: int | None = Field(default=None, ge=0)
    is_final_point: bool = False
    expected_time: datetime | None = None


class TripDraft(BaseModel):
    """Full description of a trip as submitted by an admin."""

    name: str = Field(min_length=1)
    trip_date: date
    scheduled_time: str = Field(description="Local wall-clock time, HH:MM or HH:MM:SS")
    trip_type: TripType = TripType.DEPARTURE
    price: Decimal
    assigned_captain_id: str | None = None
    company_id: str | None = None
    points: list[PointInput]


def parse_scheduled_time(trip_date: date, value: str, local_tz: tzinfo) -> datetime:
    """Combine the trip date with a local HH:MM[:SS] and return the UTC instant."""
    try:
        wall_clock = time.fromisoformat(value.strip())
    except ValueError as e:
        raise ValidationError(
            "Invalid scheduled time format, expected HH:MM or HH:MM:SS",
            {"scheduled_time": value},
        ) from e
    if wall_clock.tzinfo is not None:
        raise ValidationError("Scheduled time must not carry a UTC offset", {"scheduled_time": value})
    local = datetime.combine(trip_date, wall_clock, tzinfo=local_tz)
    return local.astimezone(UTC)


def to_utc(value: datetime, local_tz: tzinfo) -> datetime:
    """Naive datetimes from clients are local wall-clock times."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=local_tz)
    return value.astimezone(UTC)


def validate_price(price: Decimal) -> Decimal:
    if price is None or price <= 0:
        raise ValidationError("Price must be greater than 0", {"price": str(price)})
    return price


def validate_points(points: list[PointInput], trip_type: TripType) -> list[PointInput]:
    """Check the checkpoint invariants and return the points sorted by order.

    Exactly one point is final, orders are unique and contiguous from 0
    (missing orders default to list position), and every point of an
    ARRIVAL trip has an expected time.
    """
    if not points:
        raise ValidationError("At least one point is required")

    finals = sum(1 for p in points if p.is_final_point)
    if finals == 0:
        raise ValidationError("At least one point must be marked as final point")
    if finals > 1:
        raise ValidationError(
            "Only one point can be marked as final point", {"final_points": finals}
        )

    if trip_type is TripType.ARRIVAL:
        missing = [p.name for p in points if p.expected_time is None]
        if missing:
            raise ValidationError(
                "Expected time is required for every point of an ARRIVAL trip",
                {"points": missing},
            )

    ordered = [
        p if p.order is not None else p.model_copy(update={"order": index})
        for index, p in enumerate(points)
    ]
    orders = sorted(p.order for p in ordered)  # type: ignore[type-var]
    if orders != list(range(len(ordered))):
        raise ValidationError(
            "Point orders must be unique and contiguous starting at 0", {"orders": orders}
        )
    return sorted(ordered, key=lambda p: p.order)  # type: ignore[arg-type,return-value]
