"""Tests for checkpoint arrival timing."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from trips.timing import calculate_timing_difference, format_timing_message

EXPECTED = datetime(2025, 3, 10, 22, 10, tzinfo=UTC)
CAIRO_WINTER = timezone(timedelta(hours=2))


def at(hour: int, minute: int, second: int = 0) -> datetime:
    return datetime(2025, 3, 10, hour, minute, second, tzinfo=UTC)


@pytest.mark.unit
class TestCalculateTimingDifference:
    """Test early/late/on-time classification."""

    def test_late_rounds_to_nearest_minute(self):
        """22:13:13 against 22:10 is 3 minutes late."""
        result = calculate_timing_difference(EXPECTED, at(22, 13, 13))
        assert result is not None
        assert result.status == "late"
        assert result.minutes == 3
        assert result.is_early is False

    def test_one_minute_early(self):
        """Reports one minute early."""
        result = calculate_timing_difference(EXPECTED, at(22, 9))
        assert result is not None
        assert result.status == "early"
        assert result.minutes == 1
        assert result.is_early is True

    def test_under_a_minute_is_on_time(self):
        """Differences under a minute are on time."""
        for reached in (at(22, 10, 59), at(22, 9, 1), EXPECTED):
            result = calculate_timing_difference(EXPECTED, reached)
            assert result is not None
            assert result.status == "on-time"
            assert result.minutes == 0

    def test_exactly_sixty_seconds_is_late(self):
        """Sixty seconds counts as late."""
        result = calculate_timing_difference(EXPECTED, at(22, 11))
        assert result is not None
        assert result.status == "late"
        assert result.minutes == 1

    def test_half_minute_rounds_up(self):
        """Partial minutes round up."""
        result = calculate_timing_difference(EXPECTED, at(22, 12, 30))
        assert result is not None
        assert result.minutes == 3

    def test_missing_values_return_none(self):
        """Returns None when either time is missing."""
        assert calculate_timing_difference(None, at(22, 10)) is None
        assert calculate_timing_difference(EXPECTED, None) is None

    def test_unparseable_string_returns_none(self):
        """Returns None for an unparseable time string."""
        assert calculate_timing_difference("not-a-date", at(22, 10)) is None

    def test_iso_strings_accepted(self):
        """Accepts ISO formatted strings."""
        result = calculate_timing_difference(
            "2025-03-10T22:10:00+00:00", "2025-03-10T22:15:00+00:00"
        )
        assert result is not None
        assert result.status == "late"
        assert result.minutes == 5

    def test_naive_values_are_utc(self):
        """Treats naive values as UTC."""
        result = calculate_timing_difference(
            datetime(2025, 3, 10, 22, 10), at(22, 14)
        )
        assert result is not None
        assert result.minutes == 4


@pytest.mark.unit
class TestTimezoneCorrection:
    """Test the legacy local-time-stored-as-UTC correction."""

    def test_local_wall_clock_expected_time_is_corrected(self):
        """22:10 local (20:10 UTC) reached at 20:12 UTC is 2 minutes late."""
        result = calculate_timing_difference(EXPECTED, at(20, 12), CAIRO_WINTER)
        assert result is not None
        assert result.status == "late"
        assert result.minutes == 2

    def test_no_correction_without_local_timezone(self):
        """Uses the raw difference when no timezone is given."""
        result = calculate_timing_difference(EXPECTED, at(20, 12))
        assert result is not None
        assert result.status == "early"
        assert result.minutes == 118

    def test_correction_out_of_range_keeps_raw_difference(self):
        """Keeps the raw difference when the offset correction does not fit."""
        result = calculate_timing_difference(EXPECTED, at(10, 0), CAIRO_WINTER)
        assert result is not None
        assert result.status == "early"
        assert result.minutes == 730

    def test_small_early_difference_not_corrected(self):
        """Small early differences are not offset corrected."""
        result = calculate_timing_difference(EXPECTED, at(21, 40), CAIRO_WINTER)
        assert result is not None
        assert result.status == "early"
        assert result.minutes == 30


@pytest.mark.unit
class TestFormatTimingMessage:
    def test_messages(self):
        """Formats on time, early and late messages."""
        on_time = calculate_timing_difference(EXPECTED, EXPECTED)
        one_early = calculate_timing_difference(EXPECTED, at(22, 9))
        late = calculate_timing_difference(EXPECTED, at(22, 13, 13))

        assert format_timing_message(on_time) == "You arrived on time"
        assert format_timing_message(one_early) == "You arrived 1 minute early"
        assert format_timing_message(late) == "You arrived 3 minutes late"
        assert format_timing_message(None) is None
