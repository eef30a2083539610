"""Admin endpoints: trip CRUD, forced transitions, captains and reconciliation."""

import math
from datetime import date

from fastapi import APIRouter, Depends, Query, Request

from api.auth import verify_api_key
from api.dependencies import FinanceDep, LifecycleDep, NotificationsDep, SessionFactoryDep
from api.models.trips import (
    ActivationCheckResponse,
    CaptainEnvelope,
    CaptainResponse,
    CaptainUpsertRequest,
    LedgerResponse,
    MessageEnvelope,
    NotifyCaptainRequest,
    NotifyEnvelope,
    Pagination,
    ReconcileEnvelope,
    TripDetailEnvelope,
    TripEnvelope,
    TripListEnvelope,
    TripResponse,
    TripWriteRequest,
)
from api.rate_limit import limiter
from api.routes.captain import settlement_response
from db.repositories import CaptainRepository
from db.transaction import transaction
from trip import TripStatus

router = APIRouter(dependencies=[Depends(verify_api_key)])

ADMIN_ACTOR = "admin"


@router.post("/trips", response_model=TripEnvelope, status_code=201)
def create_trip(body: TripWriteRequest, lifecycle: LifecycleDep) -> TripEnvelope:
    trip = lifecycle.create_trip(body)
    return TripEnvelope(
        message="Scheduled trip created successfully", trip=TripResponse.model_validate(trip)
    )


@router.get("/trips", response_model=TripListEnvelope)
def list_trips(
    lifecycle: LifecycleDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status: TripStatus | None = None,
    captain_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> TripListEnvelope:
    trips, total = lifecycle.list_trips(page, limit, status, captain_id, date_from, date_to)
    return TripListEnvelope(
        trips=[TripResponse.model_validate(t) for t in trips],
        pagination=Pagination(
            page=page, limit=limit, total=total, pages=math.ceil(total / limit) if total else 0
        ),
    )


@router.get("/trip/{trip_id}", response_model=TripDetailEnvelope)
def get_trip(trip_id: str, lifecycle: LifecycleDep) -> TripDetailEnvelope:
    details = lifecycle.get_trip(trip_id)
    return TripDetailEnvelope(
        trip=TripResponse.model_validate(details.trip),
        activation_checks=[
            ActivationCheckResponse.model_validate(c) for c in details.activation_checks
        ],
        ledger=LedgerResponse.model_validate(details.ledger) if details.ledger else None,
    )


@router.put("/trip/{trip_id}", response_model=TripEnvelope)
def update_trip(trip_id: str, body: TripWriteRequest, lifecycle: LifecycleDep) -> TripEnvelope:
    trip = lifecycle.update_trip(trip_id, body)
    return TripEnvelope(
        message="Scheduled trip updated successfully", trip=TripResponse.model_validate(trip)
    )


@router.delete("/trip/{trip_id}", response_model=MessageEnvelope)
def delete_trip(trip_id: str, lifecycle: LifecycleDep) -> MessageEnvelope:
    lifecycle.delete_trip(trip_id)
    return MessageEnvelope(message="Scheduled trip deleted successfully")


@router.post("/trip/{trip_id}/cancel", response_model=TripEnvelope)
def cancel_trip(trip_id: str, lifecycle: LifecycleDep) -> TripEnvelope:
    trip = lifecycle.cancel_trip(trip_id)
    return TripEnvelope(message="Scheduled trip cancelled", trip=TripResponse.model_validate(trip))


@router.post("/trip/{trip_id}/force-close", response_model=TripEnvelope)
def force_close(trip_id: str, lifecycle: LifecycleDep) -> TripEnvelope:
    result = lifecycle.force_close(trip_id)
    return TripEnvelope(
        message="Trip force closed",
        trip=TripResponse.model_validate(result.trip),
        settlement=settlement_response(result.settlement),
    )


@router.post("/trip/{trip_id}/emergency-terminate", response_model=TripEnvelope)
def admin_emergency_terminate(trip_id: str, lifecycle: LifecycleDep) -> TripEnvelope:
    result = lifecycle.admin_emergency_terminate(trip_id, ADMIN_ACTOR)
    return TripEnvelope(
        message="Trip emergency terminated",
        trip=TripResponse.model_validate(result.trip),
        settlement=settlement_response(result.settlement),
    )


@router.post("/finance/reconcile", response_model=ReconcileEnvelope)
def reconcile(request: Request, finance: FinanceDep) -> ReconcileEnvelope:
    """Settle terminal trips whose ledger row is missing or stale."""
    settings = request.app.state.settings
    result = finance.reconcile_unsettled_trips(
        include_failed=settings.workers.apply_failure_penalty
    )
    return ReconcileEnvelope(checked=result.checked, settled=result.settled, failed=result.failed)


@router.post("/captains", response_model=CaptainEnvelope)
def upsert_captain(body: CaptainUpsertRequest, session_factory: SessionFactoryDep) -> CaptainEnvelope:
    """Minimal captain seeding; the fleet system of record owns captains."""
    with session_factory() as session, transaction(session):
        captain = CaptainRepository(session).upsert(
            body.id, body.name, body.status, body.notification_token
        )
        response = CaptainResponse.model_validate(captain)
    return CaptainEnvelope(captain=response)


@router.post("/captains/{captain_id}/notify", response_model=NotifyEnvelope)
@limiter.limit("10/minute")
async def notify_captain(
    request: Request,
    captain_id: str,
    body: NotifyCaptainRequest,
    notifications: NotificationsDep,
) -> NotifyEnvelope:
    result = await notifications.notify_captain(captain_id, body.title, body.body, body.data)
    return NotifyEnvelope(success=result.success, message=result.reason)
