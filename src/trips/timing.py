"""Checkpoint arrival timing relative to the expected time."""

import logging
import math
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ON_TIME_TOLERANCE = timedelta(seconds=60)
# Differences more than this far "early" are candidates for the legacy-zone correction.
CORRECTION_TRIGGER = timedelta(minutes=-60)
CORRECTED_MIN = timedelta(minutes=-60)
CORRECTED_MAX = timedelta(minutes=120)
SUSPICIOUS_DIFFERENCE = timedelta(hours=24)


class TimingResult(BaseModel):
    is_early: bool
    minutes: int
    status: Literal["on-time", "early", "late"]


def _to_instant(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        # Stored instants are UTC.
        return value.replace(tzinfo=UTC)
    return value


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_timing_difference(
    expected_time: datetime | str | None,
    reached_at: datetime | str | None,
    local_tz: tzinfo | None = None,
) -> TimingResult | None:
    """Compare an actual checkpoint arrival with its expected time.

    Returns None when either instant is missing or unparseable. A difference
    under one minute either way is on-time. When the arrival looks more than
    an hour early and local_tz is given, expected_time is reinterpreted as a
    local wall-clock value that was stored as UTC; the corrected value is used
    only if it lands within [-60, +120] minutes.
    """
    expected = _to_instant(expected_time)
    reached = _to_instant(reached_at)
    if expected is None or reached is None:
        return None

    raw_diff = reached - expected
    diff = raw_diff

    if abs(raw_diff) > SUSPICIOUS_DIFFERENCE:
        logger.warning(
            "Timing difference of %.1f hours between expected %s and reached %s, "
            "likely a data error",
            raw_diff.total_seconds() / 3600,
            expected.isoformat(),
            reached.isoformat(),
        )

    if raw_diff < CORRECTION_TRIGGER and local_tz is not None:
        offset = expected.astimezone(local_tz).utcoffset() or timedelta(0)
        corrected = reached - (expected - offset)
        if CORRECTED_MIN <= corrected <= CORRECTED_MAX:
            logger.info(
                "Applied timezone correction of %s to expected time %s",
                offset,
                expected.isoformat(),
            )
            diff = corrected

    if abs(diff) < ON_TIME_TOLERANCE:
        return TimingResult(is_early=False, minutes=0, status="on-time")

    is_early = diff < timedelta(0)
    minutes = _round_half_up(abs(diff).total_seconds() / 60)
    return TimingResult(
        is_early=is_early,
        minutes=minutes,
        status="early" if is_early else "late",
    )


def format_timing_message(timing: TimingResult | None) -> str | None:
    if timing is None:
        return None
    if timing.status == "on-time":
        return "You arrived on time"
    unit = "minute" if timing.minutes == 1 else "minutes"
    return f"You arrived {timing.minutes} {unit} {timing.status}"
