from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from trip import TripStatus, TripType
from trips.validation import TripDraft

# --- Requests ---


class CaptainRequest(BaseModel):
    """Mobile clients send camelCase; snake_case is accepted as well."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LocationRequest(CaptainRequest):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class ProgressRequest(CaptainRequest):
    trip_id: str
    checkpoint_index: int | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class TripWriteRequest(TripDraft):
    pass


class CaptainUpsertRequest(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    status: str = "inactive"
    notification_token: str | None = None


class NotifyCaptainRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1, max_length=2000)
    data: dict[str, Any] | None = None


# --- Responses ---


class TripPointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    latitude: float
    longitude: float
    order: int
    is_final_point: bool
    expected_time: datetime | None = None
    reached_at: datetime | None = None


class TripProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_point_index: int
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_location_update: datetime | None = None
    last_latitude: float | None = None
    last_longitude: float | None = None


class TripResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    trip_date: date
    scheduled_time: datetime
    trip_type: TripType
    status: TripStatus
    price: Decimal
    assigned_captain_id: str | None = None
    company_id: str | None = None
    financial_rule: str | None = None
    financial_adjustment: Decimal | None = None
    net_amount: Decimal | None = None
    financial_status: str
    financial_applied_at: datetime | None = None
    emergency_terminated_at: datetime | None = None
    emergency_terminated_by: str | None = None
    points: list[TripPointResponse] = []
    progress: TripProgressResponse | None = None


class ActivationStatusResponse(BaseModel):
    can_activate: bool
    reason: str | None = None
    distance_to_first_point: float | None = None
    is_within_proximity: bool | None = None
    is_on_time: bool | None = None
    is_within_time_window: bool | None = None
    is_too_early: bool | None = None
    earliest_start_time: datetime | None = None


class CaptainTripResponse(TripResponse):
    activation_status: ActivationStatusResponse | None = None


class ActivationCheckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    captain_id: str
    was_within_proximity: bool
    was_on_time: bool
    activated: bool
    captain_latitude: float
    captain_longitude: float
    distance_to_first_point: float
    created_at: datetime


class LedgerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    captain_id: str
    base_amount: Decimal
    adjustment_amount: Decimal
    net_amount: Decimal
    rule: str
    status_at_calculation: str
    calculated_at: datetime


class SettlementResponse(BaseModel):
    success: bool
    skipped: bool = False
    reason: str | None = None
    rule: str | None = None
    net_amount: Decimal | None = None


class TimingResponse(BaseModel):
    is_early: bool
    minutes: int
    status: str
    message: str | None = None


class TripEnvelope(BaseModel):
    success: bool = True
    message: str
    trip: TripResponse
    settlement: SettlementResponse | None = None


class ProgressEnvelope(TripEnvelope):
    completed: bool
    timing: TimingResponse | None = None


class TripDetailEnvelope(BaseModel):
    success: bool = True
    trip: TripResponse
    activation_checks: list[ActivationCheckResponse]
    ledger: LedgerResponse | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class TripListEnvelope(BaseModel):
    success: bool = True
    trips: list[TripResponse]
    pagination: Pagination


class CaptainTripListEnvelope(BaseModel):
    success: bool = True
    trips: list[CaptainTripResponse]


class ActivationSummaryResponse(BaseModel):
    trip_id: str
    trip_name: str
    can_activate: bool
    reason: str | None = None
    distance_to_first_point: float | None = None


class LocationEnvelope(BaseModel):
    success: bool = True
    message: str
    activation_checks: list[ActivationSummaryResponse]


class EmergencyStatusEnvelope(BaseModel):
    success: bool = True
    can_use: bool
    last_used_at: datetime | None = None
    message: str


class CaptainResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    status: str
    total_earning: Decimal
    scheduled_trip_balance: Decimal


class CaptainEnvelope(BaseModel):
    success: bool = True
    captain: CaptainResponse


class NotifyEnvelope(BaseModel):
    success: bool
    message: str


class ReconcileEnvelope(BaseModel):
    success: bool = True
    checked: int
    settled: int
    failed: list[str]


class MessageEnvelope(BaseModel):
    success: bool = True
    message: str
