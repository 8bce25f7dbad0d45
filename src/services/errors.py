"""Fetch error taxonomy for market data requests.

Every failure is scoped to one poll cycle or one chart fetch. None of these
errors is fatal to the pipeline.
"""


class FetchError(Exception):
    """Base class for market data fetch failures."""

    kind = "fetch"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NetworkError(FetchError):
    """Transport-level failure (DNS, connection refused, timeout...)."""

    kind = "network"


class HttpError(FetchError):
    """Non-2xx response other than 429."""

    kind = "http"

    def __init__(self, status_code: int, reason: str | None = None):
        super().__init__(reason or f"HTTP error {status_code}")
        self.status_code = status_code


class RateLimitedError(FetchError):
    """HTTP 429 from the market data API."""

    kind = "rate_limited"
    status_code = 429

    def __init__(self, reason: str | None = None):
        super().__init__(reason or "Rate limited by market data API (HTTP 429)")


class DecodeError(FetchError):
    """Response body does not have the expected shape."""

    kind = "decode"
