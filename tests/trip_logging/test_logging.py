import json
import logging

import pytest

from trip_logging import (
    ContextFilter,
    DefaultCorrelationFilter,
    DevFormatter,
    JSONFormatter,
    PIIFilter,
    log_context,
    log_trip_context,
    setup_logging,
)


def make_record(msg: str, *args, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("trips", level, __file__, 10, msg, args, None)


def prepare(record: logging.LogRecord) -> logging.LogRecord:
    for log_filter in (PIIFilter(), ContextFilter(), DefaultCorrelationFilter()):
        log_filter.filter(record)
    return record


@pytest.mark.unit
class TestPIIFilter:
    def test_masks_push_token_argument(self):
        """Masks push tokens passed as log arguments."""
        record = prepare(make_record("Sending to %s", "ExponentPushToken[abc123]"))
        assert record.getMessage() == "Sending to [PUSH_TOKEN]"

    def test_masks_email_and_phone_in_message(self):
        """Masks emails and phone numbers in the message."""
        record = prepare(make_record("Contact ops@example.com or +201-555-1234"))
        assert record.getMessage() == "Contact [EMAIL] or [PHONE]"

    def test_leaves_coordinates_alone(self):
        """Does not mask latitude and longitude values."""
        record = prepare(make_record("Captain at %.4f,%.4f", 30.0444, 31.2357))
        assert record.getMessage() == "Captain at 30.0444,31.2357"


@pytest.mark.unit
class TestContext:
    def test_trip_context_binds_fields(self):
        """Binds trip and captain ids onto records."""
        with log_trip_context("trip-1", captain_id="captain-1"):
            record = prepare(make_record("started"))
        assert record.trip_id == "trip-1"
        assert record.captain_id == "captain-1"
        assert record.correlation_id == "trip-1"

    def test_nested_context_restores_outer(self):
        """Restores the outer context when a nested one exits."""
        with log_context(worker="overdue"):
            with log_trip_context("trip-1"):
                pass
            record = prepare(make_record("tick"))
        assert record.worker == "overdue"
        assert not hasattr(record, "trip_id")
        assert record.correlation_id == "-"


@pytest.mark.unit
class TestFormatters:
    def test_json_includes_bound_fields(self):
        """JSON output carries the bound context fields."""
        with log_trip_context("trip-1", captain_id="captain-1"):
            record = prepare(make_record("Trip %s completed", "trip-1"))
        data = json.loads(JSONFormatter("test").format(record))

        assert data["message"] == "Trip trip-1 completed"
        assert data["service"] == "scheduled-trips"
        assert data["env"] == "test"
        assert data["trip_id"] == "trip-1"
        assert data["captain_id"] == "captain-1"
        assert "source" not in data

    def test_json_adds_source_for_warnings(self):
        """Warnings include the source location."""
        record = prepare(make_record("slow", level=logging.WARNING))
        data = json.loads(JSONFormatter().format(record))
        assert "correlation_id" not in data
        assert data["source"].endswith(":10")

    def test_dev_formatter_appends_context(self):
        """Dev output appends bound fields as key=value pairs."""
        with log_trip_context("trip-1", captain_id="captain-1"):
            record = prepare(make_record("started"))
        line = DevFormatter().format(record)
        assert line.endswith("trips: started [trip_id=trip-1 captain_id=captain-1]")

    def test_dev_formatter_without_context(self):
        """Dev output is unchanged when nothing is bound."""
        line = DevFormatter().format(prepare(make_record("plain")))
        assert line.endswith("trips: plain")


@pytest.mark.unit
def test_setup_logging_replaces_handlers():
    """Repeated setup replaces the previous root handler."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        first = setup_logging("DEBUG")
        second = setup_logging("WARNING", json_output=True)

        assert root.handlers == [second]
        assert first not in root.handlers
        assert isinstance(second.formatter, JSONFormatter)
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.captureWarnings(False)
