"""Time-windowed cache of chart series, one entry per coin and window."""

import threading
import time
from collections.abc import Callable
from dataclasses import replace

from src.models.market_data import ChartSeries, TimeFrame
from src.services.errors import FetchError
from src.services.market_data_client import MarketDataClient
from src.utils.config import config
from src.utils.cycle_context import cycle_scope
from src.utils.event_store import CHART_FETCH_FAILED, CHART_UPDATED, EventStore
from src.utils.formatting import format_price
from src.utils.logger import StructuredLogger

WindowDays = str | int | float
CacheKey = tuple[str, str]


class ChartCache:
    """
    Serves chart series without refetching inside the freshness window.

    Entries are keyed by coin and chart window, so switching timeframe never
    evicts another window's series. A failed refetch never clears an existing
    entry: the stale series of the same window is returned and the failure is
    recorded (``last_error``) and published as a ``chart_fetch_failed`` event.
    Only when nothing is cached for that coin and window is the error raised
    to the caller.
    """

    def __init__(
        self,
        client: MarketDataClient | None = None,
        event_store: EventStore | None = None,
        freshness_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            client: Market data client used for fetches
            event_store: Event channel receiving chart events
            freshness_seconds: Default freshness window (defaults to CHART_FRESHNESS_SECONDS)
            clock: Source of the current time in epoch seconds
        """
        self.client = client or MarketDataClient()
        self.event_store = event_store or EventStore()
        self.freshness_seconds = (
            config.chart.freshness_seconds if freshness_seconds is None else freshness_seconds
        )
        self.clock = clock
        self.logger = StructuredLogger("ChartCache")
        self._entries: dict[CacheKey, ChartSeries] = {}
        self._errors: dict[CacheKey, FetchError] = {}
        self._lock = threading.Lock()

    def get_cached(self, coin_id: str, window_days: WindowDays = TimeFrame.DAY.days) -> ChartSeries | None:
        """Return the cached series of a coin and window without fetching."""
        with self._lock:
            return self._entries.get((coin_id, str(window_days)))

    def last_error(self, coin_id: str, window_days: WindowDays = TimeFrame.DAY.days) -> FetchError | None:
        """Return the error of the latest failed fetch of a coin and window, if any."""
        with self._lock:
            return self._errors.get((coin_id, str(window_days)))

    def is_fresh(
        self,
        coin_id: str,
        freshness_seconds: int | None = None,
        window_days: WindowDays = TimeFrame.DAY.days,
    ) -> bool:
        return self._fresh_entry((coin_id, str(window_days)), freshness_seconds) is not None

    def get_or_fetch(
        self,
        coin_id: str,
        freshness_seconds: int | None = None,
        force: bool = False,
        window_days: WindowDays = TimeFrame.DAY.days,
    ) -> ChartSeries:
        """
        Return the chart series of a coin, fetching it when stale.

        Args:
            coin_id: Coin id (e.g. "bitcoin")
            freshness_seconds: Maximum age of a cached series (defaults to the cache window)
            force: Fetch even if the cached series is fresh
            window_days: Chart window ("1", 7, "max"...); each window is cached separately

        Returns:
            The fresh series, the cached series when still fresh, or the stale
            cached series of the same window when a refetch failed

        Raises:
            FetchError: If the fetch failed and nothing is cached for the coin and window
        """
        key = (coin_id, str(window_days))
        if not force:
            cached = self._fresh_entry(key, freshness_seconds)
            if cached is not None:
                self.logger.debug("Using cached chart", context={"coin_id": coin_id, "days": key[1]})
                return cached

        with cycle_scope("chart") as cycle_id:
            start_time = self.clock()
            try:
                fetched = self.client.fetch_chart(coin_id, key[1])
            except FetchError as e:
                return self._handle_failure(key, cycle_id, e)

            fetched_at = self.clock()
            series = replace(fetched, coin_id=coin_id, window_days=key[1], fetched_at=fetched_at)
            with self._lock:
                self._entries[key] = series
                self._errors.pop(key, None)

            last_price = series.last_price
            self.event_store.publish(
                event_type=CHART_UPDATED,
                component="ChartCache",
                message=(
                    f"Chart updated for {coin_id}"
                    + (f" (last {format_price(last_price)})" if last_price is not None else "")
                ),
                context={"coin_id": coin_id, "points": len(series.points), "days": series.window_days},
                payload=series,
                cycle_id=cycle_id,
                duration_ms=(fetched_at - start_time) * 1000,
            )
            return series

    def invalidate(self, coin_id: str | None = None) -> None:
        """Drop every window of one coin, or every entry when ``coin_id`` is None."""
        with self._lock:
            if coin_id is None:
                self._entries.clear()
                self._errors.clear()
                return
            for store in (self._entries, self._errors):
                for key in [key for key in store if key[0] == coin_id]:
                    del store[key]

    def _fresh_entry(self, key: CacheKey, freshness_seconds: int | None) -> ChartSeries | None:
        window = self.freshness_seconds if freshness_seconds is None else freshness_seconds
        with self._lock:
            series = self._entries.get(key)
        if series is None or series.fetched_at is None:
            return None
        return series if self.clock() - series.fetched_at < window else None

    def _handle_failure(self, key: CacheKey, cycle_id: str, error: FetchError) -> ChartSeries:
        coin_id, days = key
        with self._lock:
            self._errors[key] = error
            stale = self._entries.get(key)

        self.logger.warning(
            "Chart fetch failed" + (", serving stale series" if stale is not None else ""),
            context={"coin_id": coin_id, "days": days, "reason": error.reason, "error_type": error.kind},
        )
        self.event_store.publish(
            event_type=CHART_FETCH_FAILED,
            component="ChartCache",
            message=f"Chart error: {error.reason}",
            context={
                "coin_id": coin_id,
                "days": days,
                "reason": error.reason,
                "error_type": error.kind,
                "served_stale": stale is not None,
            },
            cycle_id=cycle_id,
        )

        if stale is None:
            raise error
        return stale
