"""Tests for the scheduled trip state machine."""

import pytest

from core.exceptions import StateError
from trip import TERMINAL_STATUSES, TripStatus, ensure_transition


@pytest.mark.unit
class TestTripStatusEnum:
    """Test TripStatus values and flags."""

    def test_values_are_upper_case_names(self):
        """Status values match their names."""
        assert [s.value for s in TripStatus] == [
            "SCHEDULED",
            "ACTIVE",
            "COMPLETED",
            "FAILED",
            "EMERGENCY_ENDED",
            "EMERGENCY_TERMINATED",
            "FORCE_CLOSED",
            "CANCELLED",
        ]

    def test_terminal_statuses(self):
        """Every status except SCHEDULED and ACTIVE is terminal."""
        assert not TripStatus.SCHEDULED.is_terminal
        assert not TripStatus.ACTIVE.is_terminal
        assert all(s.is_terminal for s in TERMINAL_STATUSES)

    def test_emergency_statuses(self):
        """Only the two emergency endings count as emergencies."""
        assert TripStatus.EMERGENCY_ENDED.is_emergency
        assert TripStatus.EMERGENCY_TERMINATED.is_emergency
        assert not TripStatus.FORCE_CLOSED.is_emergency


@pytest.mark.unit
class TestEnsureTransition:
    """Test legal and illegal lifecycle moves."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (TripStatus.SCHEDULED, TripStatus.ACTIVE),
            (TripStatus.SCHEDULED, TripStatus.FAILED),
            (TripStatus.SCHEDULED, TripStatus.CANCELLED),
            (TripStatus.ACTIVE, TripStatus.COMPLETED),
            (TripStatus.ACTIVE, TripStatus.EMERGENCY_ENDED),
            (TripStatus.ACTIVE, TripStatus.EMERGENCY_TERMINATED),
            (TripStatus.ACTIVE, TripStatus.FORCE_CLOSED),
        ],
    )
    def test_valid_transitions(self, current, target):
        """Allowed transitions are accepted."""
        ensure_transition(current, target)

    def test_scheduled_cannot_complete(self):
        """A scheduled trip cannot complete directly."""
        with pytest.raises(StateError, match="Invalid transition from SCHEDULED to COMPLETED"):
            ensure_transition(TripStatus.SCHEDULED, TripStatus.COMPLETED)

    def test_active_cannot_fail(self):
        """An active trip cannot be marked failed."""
        with pytest.raises(StateError):
            ensure_transition(TripStatus.ACTIVE, TripStatus.FAILED)

    def test_terminal_status_is_final(self):
        """Terminal statuses have no outgoing transitions."""
        with pytest.raises(StateError, match="Trip is already completed") as exc_info:
            ensure_transition(TripStatus.COMPLETED, TripStatus.ACTIVE)
        assert exc_info.value.details == {"status": "COMPLETED", "target": "ACTIVE"}
