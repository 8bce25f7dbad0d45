"""Rate-limit aware retry policy for market data requests."""

import time
from collections.abc import Callable
from typing import TypeVar

from src.services.errors import RateLimitedError
from src.utils.config import config
from src.utils.logger import StructuredLogger

T = TypeVar("T")

RetryCallback = Callable[[int, float, RateLimitedError], None]


class RetryPolicy:
    """
    Retries a request only when the API answers 429.

    Each retry waits a fixed delay first. Every other error propagates
    immediately. When the retries are exhausted the last RateLimitedError
    is raised.
    """

    def __init__(self, max_retries: int | None = None, delay_seconds: float | None = None):
        """
        Initialize the policy.

        Args:
            max_retries: Retries after the first attempt (defaults to RETRY_MAX_RETRIES)
            delay_seconds: Wait before each retry (defaults to RETRY_DELAY_SECONDS)
        """
        self.max_retries = config.retry.max_retries if max_retries is None else max_retries
        self.delay_seconds = config.retry.delay_seconds if delay_seconds is None else delay_seconds
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")
        self.logger = StructuredLogger("RetryPolicy")

    def execute(self, request: Callable[[], T], on_retry: RetryCallback | None = None) -> T:
        """
        Run ``request`` with retry on rate limiting.

        Args:
            request: Zero-argument callable performing the request
            on_retry: Optional hook called as ``on_retry(retry_number, delay, error)``
                before each wait

        Returns:
            Whatever ``request`` returns on its first non-rate-limited success

        Raises:
            RateLimitedError: After ``max_retries`` retries all hit 429
            FetchError: Any other failure, on first occurrence
        """
        max_attempts = self.max_retries + 1
        attempt = 0

        while True:
            attempt += 1
            try:
                return request()
            except RateLimitedError as e:
                if attempt >= max_attempts:
                    self.logger.error(
                        "Request still rate limited after all retries",
                        context={"attempts": attempt, "max_retries": self.max_retries},
                    )
                    raise

                self.logger.warning(
                    f"Rate limited, retrying in {self.delay_seconds}s",
                    context={
                        "attempt": attempt,
                        "retry_delay_seconds": self.delay_seconds,
                        "error": e.reason,
                    },
                )
                if on_retry is not None:
                    on_retry(attempt, self.delay_seconds, e)

                time.sleep(self.delay_seconds)
