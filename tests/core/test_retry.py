from unittest.mock import MagicMock, patch

import pytest

from core.exceptions import NetworkError, PersistenceError, TransientError, ValidationError
from core.retry import RetryConfig, with_retry_sync


@pytest.fixture
def sleeps():
    """Record backoff waits instead of sleeping."""
    recorded: list[float] = []
    with patch("core.retry.time.sleep", side_effect=recorded.append):
        yield recorded


@pytest.mark.unit
class TestRetryConfig:
    def test_defaults(self):
        """Default policy values."""
        config = RetryConfig()
        assert (config.max_attempts, config.base_delay, config.multiplier) == (3, 0.5, 2.0)
        assert config.retryable_exceptions == (TransientError,)

    def test_delay_is_capped(self):
        """Backoff grows exponentially up to the cap."""
        config = RetryConfig(base_delay=10.0, multiplier=3.0, max_delay=20.0)
        assert [config.delay_for(n) for n in (0, 1, 5)] == [10.0, 20.0, 20.0]


@pytest.mark.unit
class TestWithRetrySync:
    def test_first_attempt_result_is_returned(self, sleeps):
        """Returns immediately when the first call succeeds."""
        operation = MagicMock(return_value={"settled": True})

        assert with_retry_sync(operation) == {"settled": True}
        operation.assert_called_once_with()
        assert sleeps == []

    def test_locked_database_is_retried(self, sleeps):
        """Retries a locked database until it frees up."""
        operation = MagicMock(
            side_effect=[PersistenceError("database is locked"), PersistenceError("locked"), 7]
        )

        assert with_retry_sync(operation, operation_name="settle trip t-1") == 7
        assert operation.call_count == 3
        assert sleeps == [0.5, 1.0]

    def test_last_error_propagates(self, sleeps):
        """Re-raises the last error after the final attempt."""
        operation = MagicMock(side_effect=NetworkError("push endpoint unreachable"))

        with pytest.raises(NetworkError, match="unreachable"):
            with_retry_sync(operation, RetryConfig(max_attempts=4, base_delay=1.0))

        assert operation.call_count == 4
        assert sleeps == [1.0, 2.0, 4.0]

    def test_permanent_error_is_not_retried(self, sleeps):
        """Does not retry errors outside the retryable set."""
        operation = MagicMock(side_effect=ValidationError("Price must be greater than 0"))

        with pytest.raises(ValidationError):
            with_retry_sync(operation)

        assert operation.call_count == 1
        assert sleeps == []

    def test_on_retry_receives_zero_based_attempts(self, sleeps):
        """Passes zero-based attempt numbers to the retry hook."""
        seen: list[tuple[str, int]] = []
        operation = MagicMock(side_effect=[NetworkError("a"), PersistenceError("b"), "ok"])

        with_retry_sync(operation, on_retry=lambda e, n: seen.append((type(e).__name__, n)))

        assert seen == [("NetworkError", 0), ("PersistenceError", 1)]

    def test_custom_retryable_exceptions(self, sleeps):
        """Honours a custom retryable exception tuple."""
        operation = MagicMock(side_effect=[TimeoutError(), "ok"])
        config = RetryConfig(retryable_exceptions=(TimeoutError,))

        assert with_retry_sync(operation, config) == "ok"
        assert sleeps == [0.5]
