"""Maps service exceptions to `{"success": false, "message": ...}` responses."""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from core.exceptions import (
    AssignmentError,
    ConflictError,
    NotFoundError,
    TransientError,
    TripServiceError,
)

logger = logging.getLogger(__name__)


def status_for(exc: TripServiceError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, AssignmentError):
        return 403
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, TransientError):
        return 503
    # ValidationError, StateError, CaptainOfflineError, QuotaExceededError
    return 400


def error_body(message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if details:
        body["details"] = details
    return body


async def trip_service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, TripServiceError)
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=error_body(exc.message, exc.details))


async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    errors = [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": str(err.get("msg", "")),
            "type": str(err.get("type", "")),
        }
        for err in exc.errors()
    ]
    message = "Invalid request"
    if errors:
        first = errors[0]
        message = f"{'.'.join(first['loc'])}: {first['msg']}"
    return JSONResponse(status_code=400, content=error_body(message, {"errors": errors}))


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HTTPException)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TripServiceError, trip_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
