"""Expo push notification delivery for captains."""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import NetworkError, ServiceUnavailableError, TransientError
from db.schema import Captain, ScheduledTrip
from metrics import record_push
from settings import PushSettings

logger = logging.getLogger(__name__)

TRIP_AVAILABLE_TITLE = "Trip Available"


class PushTimeoutError(NetworkError):
    """Push provider did not answer within the timeout (retryable)."""

    pass


class PushServiceError(ServiceUnavailableError):
    """Push provider unreachable or returned 5xx (retryable)."""

    pass


@dataclass
class PushResult:
    success: bool
    reason: str


class PushNotificationSender:
    """Posts messages to the Expo push endpoint with a bounded timeout."""

    def __init__(
        self,
        settings: PushSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or PushSettings()
        self._transport = transport

    def is_valid_token(self, token: str | None) -> bool:
        return bool(token) and token.startswith(self.settings.token_prefix)  # type: ignore[union-attr]

    async def _post(self, message: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(self.settings.endpoint, json=message, headers=headers)
                if response.status_code >= 500:
                    raise PushServiceError(f"Push service error: {response.status_code}")
                return response.json()  # type: ignore[no-any-return]
        except httpx.TimeoutException as e:
            raise PushTimeoutError(
                f"Request timed out after {self.settings.timeout_seconds}s"
            ) from e
        except httpx.NetworkError as e:
            raise PushServiceError(f"Network error: {e}") from e
        except httpx.HTTPError as e:
            raise PushServiceError(f"Push transport error: {e}") from e

    async def send(
        self, token: str, title: str, body: str, data: dict[str, Any] | None = None
    ) -> PushResult:
        """Send one notification. Never raises; failures come back as PushResult."""
        if not token:
            return PushResult(False, "Captain has no notification token")
        if not self.is_valid_token(token):
            return PushResult(False, "Invalid notification token format")

        message = {
            "to": token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": data or {},
            "priority": "high",
        }
        try:
            payload = await self._post(message)
        except TransientError as e:
            logger.warning("Push notification failed: %s", e.message)
            record_push(False)
            return PushResult(False, e.message)
        except ValueError:
            record_push(False)
            return PushResult(False, "Invalid response from push service")

        status = (payload.get("data") or {}).get("status") if isinstance(payload, dict) else None
        if status == "ok":
            record_push(True)
            return PushResult(True, "Notification sent successfully")

        logger.error("Push service returned error: %s", payload)
        record_push(False)
        return PushResult(False, "Failed to send notification")


class NotificationService:
    """Resolves captain tokens and builds trip notifications."""

    def __init__(self, session_factory: sessionmaker[Session], sender: PushNotificationSender):
        self._session_factory = session_factory
        self._sender = sender

    def _lookup(
        self, captain_id: str, trip_id: str | None
    ) -> tuple[str | None, bool, str | None]:
        """Return (token, captain_found, trip_name)."""
        with self._session_factory() as session:
            captain = session.get(Captain, captain_id)
            trip_name = None
            if trip_id is not None:
                trip = session.get(ScheduledTrip, trip_id)
                trip_name = trip.name if trip else None
            if captain is None:
                return None, False, trip_name
            return captain.notification_token, True, trip_name

    async def notify_captain(
        self,
        captain_id: str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> PushResult:
        token, found, _ = await asyncio.to_thread(self._lookup, captain_id, None)
        if not found:
            return PushResult(False, "Captain not found")
        return await self._sender.send(token or "", title, body, data)

    async def send_trip_activation_notification(self, captain_id: str, trip_id: str) -> PushResult:
        token, found, trip_name = await asyncio.to_thread(self._lookup, captain_id, trip_id)
        if not found:
            return PushResult(False, "Captain not found")
        if trip_name is None:
            return PushResult(False, "Trip not found")

        data = {
            "orderData": json.dumps(
                {"type": "tripActivation", "tripId": trip_id, "tripName": trip_name}
            )
        }
        result = await self._sender.send(
            token or "",
            TRIP_AVAILABLE_TITLE,
            f'Your scheduled trip "{trip_name}" is now available to start!',
            data,
        )
        if result.success:
            logger.info("Trip activation notification sent to captain %s", captain_id)
        else:
            logger.warning(
                "Trip activation notification to captain %s failed: %s",
                captain_id,
                result.reason,
            )
        return result
