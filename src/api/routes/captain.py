"""Captain-facing endpoints: start, checkpoint progress, location pings, emergency end."""

import asyncio
import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, Request

from api.auth import verify_api_key
from api.dependencies import CaptainIdDep, LifecycleDep, NotificationsDep
from api.models.trips import (
    ActivationStatusResponse,
    ActivationSummaryResponse,
    CaptainTripListEnvelope,
    CaptainTripResponse,
    EmergencyStatusEnvelope,
    LocationEnvelope,
    LocationRequest,
    ProgressEnvelope,
    ProgressRequest,
    SettlementResponse,
    TimingResponse,
    TripEnvelope,
    TripResponse,
)
from api.rate_limit import limiter
from finance.engine import FinanceResult
from trip import TripStatus
from trips.lifecycle import EMERGENCY_ALREADY_USED

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_api_key)])


def settlement_response(result: FinanceResult | None) -> SettlementResponse | None:
    if result is None:
        return None
    return SettlementResponse(
        success=result.success,
        skipped=result.skipped,
        reason=result.reason,
        rule=result.rule,
        net_amount=result.net_amount,
    )


@router.get("/captain/trips", response_model=CaptainTripListEnvelope)
def list_captain_trips(
    lifecycle: LifecycleDep,
    captain_id: CaptainIdDep,
    status: TripStatus | None = None,
    trip_date: date | None = Query(default=None, alias="date"),
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
) -> CaptainTripListEnvelope:
    """The captain's trips; SCHEDULED ones carry their current activation status."""
    entries = lifecycle.list_captain_trips(captain_id, status, trip_date, latitude, longitude)
    trips = []
    for entry in entries:
        item = CaptainTripResponse.model_validate(entry.trip)
        if entry.activation_status is not None:
            item.activation_status = ActivationStatusResponse(
                **entry.activation_status.model_dump()
            )
        trips.append(item)
    return CaptainTripListEnvelope(trips=trips)


@router.post("/trip/{trip_id}/start", response_model=TripEnvelope)
def start_trip(
    trip_id: str,
    body: LocationRequest,
    lifecycle: LifecycleDep,
    captain_id: CaptainIdDep,
) -> TripEnvelope:
    trip = lifecycle.start_trip(trip_id, captain_id, body.latitude, body.longitude)
    return TripEnvelope(message="Trip started successfully", trip=TripResponse.model_validate(trip))


@router.post("/trip/progress", response_model=ProgressEnvelope)
def update_trip_progress(
    body: ProgressRequest,
    lifecycle: LifecycleDep,
    captain_id: CaptainIdDep,
) -> ProgressEnvelope:
    result = lifecycle.update_progress(
        body.trip_id, captain_id, body.checkpoint_index, body.latitude, body.longitude
    )
    timing = None
    if result.timing is not None:
        timing = TimingResponse(**result.timing.model_dump(), message=result.timing_message)
    return ProgressEnvelope(
        message=result.message,
        trip=TripResponse.model_validate(result.trip),
        completed=result.completed,
        timing=timing,
        settlement=settlement_response(result.settlement),
    )


@router.post("/captain/location", response_model=LocationEnvelope)
@limiter.limit("120/minute")
async def update_captain_location(
    request: Request,
    body: LocationRequest,
    lifecycle: LifecycleDep,
    notifications: NotificationsDep,
    captain_id: CaptainIdDep,
) -> LocationEnvelope:
    """Record a ping, then announce trips that just became startable."""
    result = await asyncio.to_thread(
        lifecycle.update_captain_location, captain_id, body.latitude, body.longitude
    )
    for trip_id in result.notify_trip_ids:
        await notifications.send_trip_activation_notification(captain_id, trip_id)

    return LocationEnvelope(
        message="Location updated successfully",
        activation_checks=[
            ActivationSummaryResponse(
                trip_id=c.trip_id,
                trip_name=c.trip_name,
                can_activate=c.can_activate,
                reason=c.reason,
                distance_to_first_point=c.distance_to_first_point,
            )
            for c in result.activation_checks
        ],
    )


@router.get("/captain/emergency-status", response_model=EmergencyStatusEnvelope)
def emergency_status(lifecycle: LifecycleDep, captain_id: CaptainIdDep) -> EmergencyStatusEnvelope:
    status = lifecycle.emergency_usage_status(captain_id)
    return EmergencyStatusEnvelope(
        can_use=status.can_use,
        last_used_at=status.last_used_at,
        message=(
            "Emergency termination is available" if status.can_use else EMERGENCY_ALREADY_USED
        ),
    )


@router.post("/trip/{trip_id}/emergency-terminate", response_model=TripEnvelope)
def emergency_terminate(
    trip_id: str, lifecycle: LifecycleDep, captain_id: CaptainIdDep
) -> TripEnvelope:
    result = lifecycle.emergency_terminate(trip_id, captain_id)
    return TripEnvelope(
        message="Trip emergency terminated successfully",
        trip=TripResponse.model_validate(result.trip),
        settlement=settlement_response(result.settlement),
    )
