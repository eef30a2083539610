"""Exponential backoff for operations that fail with TransientError.

The finance engine wraps each settlement in with_retry_sync; a locked or
briefly unavailable database surfaces as PersistenceError and is retried.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .exceptions import TransientError

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    retryable_exceptions: tuple[type[Exception], ...] = field(
        default_factory=lambda: (TransientError,)
    )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the zero-based attempt failed."""
        return min(self.base_delay * (self.multiplier**attempt), self.max_delay)


def with_retry_sync(
    operation: Callable[[], T],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
    on_retry: Callable[[Exception, int], None] | None = None,
) -> T:
    """Call operation until it succeeds or the attempts run out.

    Only config.retryable_exceptions are retried. Anything else, and the
    retryable error from the final attempt, propagates unchanged.
    on_retry receives the error and the zero-based attempt that failed.
    """
    config = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return operation()
        except config.retryable_exceptions as e:
            if attempt + 1 >= config.max_attempts:
                logger.error("%s gave up after %d attempts: %s", operation_name, attempt + 1, e)
                raise
            delay = config.delay_for(attempt)
            logger.warning(
                "%s failed on attempt %d of %d, next try in %.1fs: %s",
                operation_name,
                attempt + 1,
                config.max_attempts,
                delay,
                e,
            )
            if on_retry is not None:
                on_retry(e, attempt)
            time.sleep(delay)
            attempt += 1
