"""SQLAlchemy ORM models for scheduled trips and their settlement."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from trip import FinancialStatus, TripStatus, TripType

from .utils import UTCDateTime, new_id, utc_now

Money = Numeric(12, 2)


class Base(DeclarativeBase):
    pass


class Captain(Base):
    __tablename__ = "captains"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="inactive")
    notification_token: Mapped[str | None] = mapped_column(String, nullable=True)
    total_earning: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    scheduled_trip_balance: Mapped[Decimal] = mapped_column(
        Money, nullable=False, default=Decimal("0")
    )
    last_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_location_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (Index("idx_captain_status", "status"),)


class ScheduledTrip(Base):
    __tablename__ = "scheduled_trips"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    trip_date: Mapped[date] = mapped_column(Date, nullable=False)
    scheduled_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    trip_type: Mapped[str] = mapped_column(
        String, nullable=False, default=TripType.DEPARTURE.value
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=TripStatus.SCHEDULED.value
    )
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    assigned_captain_id: Mapped[str | None] = mapped_column(
        ForeignKey("captains.id"), nullable=True
    )
    company_id: Mapped[str | None] = mapped_column(String, nullable=True)

    financial_rule: Mapped[str | None] = mapped_column(String, nullable=True)
    financial_adjustment: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    net_amount: Mapped[Decimal | None] = mapped_column(Money, nullable=True)
    financial_status: Mapped[str] = mapped_column(
        String, nullable=False, default=FinancialStatus.NONE.value
    )
    financial_applied_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    emergency_terminated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    emergency_terminated_by: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now
    )

    assigned_captain: Mapped[Captain | None] = relationship(lazy="joined")
    points: Mapped[list["TripPoint"]] = relationship(
        back_populates="trip",
        order_by="TripPoint.order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    progress: Mapped[Optional["TripProgress"]] = relationship(
        back_populates="trip",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    activation_checks: Mapped[list["TripActivationCheck"]] = relationship(
        back_populates="trip",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_scheduled_trip_status", "status"),
        Index("idx_scheduled_trip_captain", "assigned_captain_id"),
        Index("idx_scheduled_trip_time", "scheduled_time"),
    )


class TripPoint(Base):
    __tablename__ = "trip_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scheduled_trip_id: Mapped[str] = mapped_column(
        ForeignKey("scheduled_trips.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    order: Mapped[int] = mapped_column("order", Integer, nullable=False)
    is_final_point: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expected_time: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    reached_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    trip: Mapped[ScheduledTrip] = relationship(back_populates="points")

    __table_args__ = (
        UniqueConstraint("scheduled_trip_id", "order", name="uq_trip_point_order"),
    )


class TripProgress(Base):
    __tablename__ = "trip_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scheduled_trip_id: Mapped[str] = mapped_column(
        ForeignKey("scheduled_trips.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    captain_id: Mapped[str] = mapped_column(String, nullable=False)
    current_point_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_location_update: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    trip: Mapped[ScheduledTrip] = relationship(back_populates="progress")


class TripActivationCheck(Base):
    """Append-only audit row for one activation evaluation."""

    __tablename__ = "trip_activation_checks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scheduled_trip_id: Mapped[str] = mapped_column(
        ForeignKey("scheduled_trips.id", ondelete="CASCADE"), nullable=False
    )
    captain_id: Mapped[str] = mapped_column(String, nullable=False)
    was_within_proximity: Mapped[bool] = mapped_column(Boolean, nullable=False)
    was_on_time: Mapped[bool] = mapped_column(Boolean, nullable=False)
    activated: Mapped[bool] = mapped_column(Boolean, nullable=False)
    captain_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    captain_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    distance_to_first_point: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    trip: Mapped[ScheduledTrip] = relationship(back_populates="activation_checks")

    __table_args__ = (
        Index("idx_activation_check_recent", "scheduled_trip_id", "activated", "created_at"),
    )


class ScheduledTripLedger(Base):
    """Current settlement of one trip; at most one row per trip."""

    __tablename__ = "scheduled_trip_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    scheduled_trip_id: Mapped[str] = mapped_column(
        ForeignKey("scheduled_trips.id"), nullable=False, unique=True
    )
    captain_id: Mapped[str] = mapped_column(ForeignKey("captains.id"), nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    adjustment_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    rule: Mapped[str] = mapped_column(String, nullable=False)
    status_at_calculation: Mapped[str] = mapped_column(String, nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


class EmergencyUsage(Base):
    """One emergency termination per captain per local calendar day."""

    __tablename__ = "emergency_usages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    driver_id: Mapped[str] = mapped_column(ForeignKey("captains.id"), nullable=False)
    trip_id: Mapped[str] = mapped_column(String, nullable=False)
    used_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    usage_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("driver_id", "usage_date", name="uq_emergency_usage_day"),
    )
