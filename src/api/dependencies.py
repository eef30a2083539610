"""FastAPI dependency injection providers."""

from typing import Annotated, Any

from fastapi import Depends, Request

from api.auth import get_captain_id


def get_lifecycle(request: Request) -> Any:
    """Retrieve TripLifecycleService from app state."""
    return request.app.state.lifecycle


def get_finance(request: Request) -> Any:
    """Retrieve FinanceEngine from app state."""
    return request.app.state.finance


def get_notifications(request: Request) -> Any:
    """Retrieve NotificationService from app state."""
    return request.app.state.notifications


def get_session_factory(request: Request) -> Any:
    return request.app.state.session_factory


LifecycleDep = Annotated[Any, Depends(get_lifecycle)]
FinanceDep = Annotated[Any, Depends(get_finance)]
NotificationsDep = Annotated[Any, Depends(get_notifications)]
SessionFactoryDep = Annotated[Any, Depends(get_session_factory)]
CaptainIdDep = Annotated[str, Depends(get_captain_id)]
