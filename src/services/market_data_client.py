"""Market data client for the CoinGecko API."""

import time
from collections.abc import Iterable
from typing import Any

import requests

from src.models.market_data import ChartPoint, ChartSeries, PricePoint, TimeFrame
from src.services.errors import DecodeError, HttpError, NetworkError, RateLimitedError
from src.utils.config import config
from src.utils.logger import StructuredLogger


def _optional_number(item: dict[str, Any], key: str, default: float = 0.0) -> float:
    value = item.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"Field '{key}' must be a number, got {type(value).__name__}")
    return float(value)


def _upstream_error(payload: Any) -> tuple[int | None, str] | None:
    """Extract (error_code, error_message) from a CoinGecko error body."""
    if not isinstance(payload, dict):
        return None
    status = payload.get("status")
    if not isinstance(status, dict) or "error_message" not in status:
        return None
    error_code = status.get("error_code")
    if not isinstance(error_code, int) or isinstance(error_code, bool):
        error_code = None
    return error_code, str(status["error_message"])


class MarketDataClient:
    """Fetches live prices and chart history and decodes them into typed records."""

    def __init__(
        self,
        base_url: str | None = None,
        vs_currency: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root (defaults to COINGECKO_BASE_URL)
            vs_currency: Quote currency (defaults to VS_CURRENCY)
            timeout: Transport timeout in seconds (defaults to REQUEST_TIMEOUT)
            session: Optional requests session to reuse
        """
        self.base_url = (base_url or config.api.base_url).rstrip("/")
        self.vs_currency = vs_currency or config.api.vs_currency
        self.timeout = timeout if timeout is not None else config.api.request_timeout
        self.session = session or requests.Session()
        self.logger = StructuredLogger("MarketDataClient")

    def fetch_market_data(self, coin_ids: Iterable[str]) -> list[PricePoint]:
        """
        Fetch the latest prices for all given coins in a single request.

        Args:
            coin_ids: Coin ids to fetch (e.g. ["bitcoin", "ethereum"])

        Returns:
            PricePoints in the order the API returned them

        Raises:
            FetchError: NetworkError, HttpError, RateLimitedError or DecodeError
        """
        ids = list(coin_ids)
        if not ids:
            self.logger.debug("No coins requested, skipping market data fetch")
            return []

        params = {"vs_currency": self.vs_currency, "ids": ",".join(ids)}
        start_time = time.time()
        self.logger.info(
            "Starting market data fetch",
            context={"source": "CoinGecko", "coin_count": len(ids)},
        )

        payload = self._get_json("/coins/markets", params)
        points = self._decode_markets(payload)

        self.logger.info(
            "Successfully fetched market data",
            context={
                "source": "CoinGecko",
                "coin_count": len(points),
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return points

    def fetch_chart(self, coin_id: str, window_days: str | int | float = TimeFrame.DAY.days) -> ChartSeries:
        """
        Fetch the historical price series of one coin.

        Args:
            coin_id: Coin id (e.g. "bitcoin")
            window_days: Value of the ``days`` query parameter ("1", "7", "max"...)

        Returns:
            ChartSeries ascending by timestamp (``fetched_at`` left unset)

        Raises:
            FetchError: NetworkError, HttpError, RateLimitedError or DecodeError
        """
        days = str(window_days)
        self.logger.info(
            "Starting chart fetch",
            context={"source": "CoinGecko", "coin_id": coin_id, "days": days},
        )

        payload = self._get_json(
            f"/coins/{coin_id}/market_chart",
            {"vs_currency": self.vs_currency, "days": days},
        )
        series = self._decode_chart(coin_id, days, payload)

        self.logger.info(
            "Successfully fetched chart",
            context={"source": "CoinGecko", "coin_id": coin_id, "points": len(series.points)},
        )
        return series

    def _get_json(self, path: str, params: dict[str, str]) -> Any:
        """Issue a GET and map transport, status and body failures to FetchErrors."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.warning(
                "Market data request failed",
                context={"url": url, "result": "network_error"},
                exception=e,
            )
            raise NetworkError(f"Network error: {e}") from e

        status_code = response.status_code
        if not 200 <= status_code < 300:
            upstream = self._try_json(response)
            upstream_error = _upstream_error(upstream)
            message = upstream_error[1] if upstream_error else None
            self.logger.warning(
                "Market data API returned an error status",
                context={"url": url, "status_code": status_code, "error_message": message},
            )
            if status_code == 429:
                raise RateLimitedError(message)
            raise HttpError(status_code, message)

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"Response is not valid JSON: {e}") from e

        upstream_error = _upstream_error(payload)
        if upstream_error is not None:
            error_code, message = upstream_error
            if error_code == 429:
                raise RateLimitedError(message)
            raise HttpError(error_code or status_code, message)

        return payload

    @staticmethod
    def _try_json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    def _decode_markets(self, payload: Any) -> list[PricePoint]:
        if not isinstance(payload, list):
            raise DecodeError(f"Expected a JSON array of coins, got {type(payload).__name__}")

        points = []
        for index, item in enumerate(payload):
            if not isinstance(item, dict):
                raise DecodeError(f"Coin entry {index} is not an object")
            coin_id = item.get("id")
            if not isinstance(coin_id, str) or not coin_id:
                raise DecodeError(f"Coin entry {index} is missing its 'id'")

            name = item.get("name")
            symbol = item.get("symbol")
            price = _optional_number(item, "current_price")
            if price < 0:
                raise DecodeError(f"Negative price for {coin_id}: {price}")

            points.append(
                PricePoint(
                    coin_id=coin_id,
                    price=price,
                    change_24h_percent=_optional_number(item, "price_change_percentage_24h"),
                    name=name if isinstance(name, str) and name else coin_id,
                    symbol=symbol if isinstance(symbol, str) else "",
                )
            )
        return points

    def _decode_chart(self, coin_id: str, days: str, payload: Any) -> ChartSeries:
        if not isinstance(payload, dict) or not isinstance(payload.get("prices"), list):
            raise DecodeError("Expected a chart object with a 'prices' array")

        points = []
        for index, sample in enumerate(payload["prices"]):
            if not isinstance(sample, (list, tuple)) or len(sample) < 2:
                raise DecodeError(f"Chart sample {index} is not a [timestamp, price] pair")
            timestamp_ms, price = sample[0], sample[1]
            if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in (timestamp_ms, price)):
                raise DecodeError(f"Chart sample {index} contains a non-numeric value")
            points.append(ChartPoint(timestamp=timestamp_ms / 1000, price=float(price)))

        points.sort(key=lambda point: point.timestamp)
        return ChartSeries(coin_id=coin_id, points=points, window_days=days)
