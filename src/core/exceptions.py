"""Exception hierarchy for the scheduled trip service.

Transient errors may succeed when retried (settlement writes, push delivery).
Permanent errors describe a request that will keep failing until its input
or the trip's state changes; the API maps each of them to a 4xx response.
"""

from typing import Any


class TripServiceError(Exception):
    """Base class; message is user-facing, details go into the error body."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(TripServiceError):
    pass


class NetworkError(TransientError):
    """Outbound call timed out or could not connect."""


class ServiceUnavailableError(TransientError):
    """Upstream answered with a 5xx."""


class PersistenceError(TransientError):
    """Database write or read failed for an operational reason."""


class PermanentError(TripServiceError):
    pass


class ValidationError(PermanentError):
    """Rejected trip, point or request input."""


class NotFoundError(PermanentError):
    pass


class StateError(PermanentError):
    """Operation attempted against a trip in the wrong status."""


class AssignmentError(PermanentError):
    """Captain is not the one assigned to the trip, or nobody is."""


class CaptainOfflineError(PermanentError):
    pass


class QuotaExceededError(PermanentError):
    """Daily emergency termination quota already used."""


class ConflictError(PermanentError):
    """A concurrent writer changed the trip first (compare-and-swap lost)."""
