"""Price poller: periodic fetch, alert detection and price map ownership."""

import threading
import time
from collections.abc import Iterable
from datetime import date, datetime, timezone

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.models.market_data import PriceMap, PricePoint
from src.models.poller_context import PollerContext, PollerState
from src.services.alert_evaluator import alert_names, build_alert_message, evaluate
from src.services.errors import FetchError, RateLimitedError
from src.services.market_data_client import MarketDataClient
from src.services.retry_policy import RetryPolicy
from src.utils.config import config
from src.utils.cycle_context import cycle_scope
from src.utils.event_store import (
    ALERTS_TRIGGERED,
    POLL_DISCARDED,
    POLL_FAILED,
    POLL_RETRY,
    POLL_START,
    PRICES_UPDATED,
    EventStore,
)
from src.utils.formatting import format_percent
from src.utils.logger import StructuredLogger

POLL_JOB_ID = "price_poll"
MIN_ALERT_THRESHOLD = 1.0
MAX_ALERT_THRESHOLD = 20.0


def _validate_threshold(threshold_percent: float) -> float:
    if not MIN_ALERT_THRESHOLD <= threshold_percent <= MAX_ALERT_THRESHOLD:
        raise ValueError(
            f"Alert threshold must be between {MIN_ALERT_THRESHOLD:g} and "
            f"{MAX_ALERT_THRESHOLD:g} percent, got {threshold_percent}"
        )
    return float(threshold_percent)


class PricePoller:
    """
    Polls the market data API on a fixed interval.

    The poller is either idle or polling. Starting runs one cycle right away
    and then one every ``interval_seconds``. Completions are applied one at a
    time under the poller lock: the price map is swapped as a whole, alerts
    are evaluated on the new map and the resulting events are published.
    Stopping invalidates every cycle still in flight, so a late response can
    never change the price map of a stopped poller.
    """

    def __init__(
        self,
        client: MarketDataClient | None = None,
        retry_policy: RetryPolicy | None = None,
        event_store: EventStore | None = None,
        coin_ids: Iterable[str] | None = None,
        alert_threshold_percent: float | None = None,
        scheduler: BackgroundScheduler | None = None,
    ):
        """
        Initialize the poller.

        Args:
            client: Market data client (a default one is created if omitted)
            retry_policy: 429 retry policy (defaults from config)
            event_store: Event channel receiving the poller's events
            coin_ids: Coins to track (defaults to TRACKED_COINS)
            alert_threshold_percent: Alert threshold (defaults to ALERT_THRESHOLD_PERCENT)
            scheduler: APScheduler scheduler running the recurring job
        """
        self.client = client or MarketDataClient()
        self.retry_policy = retry_policy or RetryPolicy()
        self.event_store = event_store or EventStore()
        self.scheduler = scheduler or BackgroundScheduler()
        self.context = PollerContext(
            coin_ids=tuple(coin_ids if coin_ids is not None else config.poller.tracked_coins),
            alert_threshold_percent=_validate_threshold(
                config.poller.alert_threshold_percent
                if alert_threshold_percent is None
                else alert_threshold_percent
            ),
        )
        self.logger = StructuredLogger("PricePoller")
        self._lock = threading.RLock()
        self._scheduler_started = False

    @property
    def state(self) -> PollerState:
        with self._lock:
            return self.context.state

    @property
    def is_polling(self) -> bool:
        return self.state == PollerState.POLLING

    @property
    def price_map(self) -> PriceMap:
        """Snapshot of the latest applied price map."""
        with self._lock:
            return dict(self.context.price_map)

    @property
    def coin_ids(self) -> tuple[str, ...]:
        return self.context.coin_ids

    @property
    def alert_threshold_percent(self) -> float:
        with self._lock:
            return self.context.alert_threshold_percent

    @alert_threshold_percent.setter
    def alert_threshold_percent(self, value: float) -> None:
        threshold = _validate_threshold(value)
        with self._lock:
            self.context.alert_threshold_percent = threshold
        self.logger.info("Alert threshold updated", context={"threshold_percent": threshold})

    def start(self, interval_seconds: int | None = None) -> bool:
        """
        Start recurring polling.

        The first cycle runs immediately on the scheduler thread. Calling
        start while already polling does nothing.

        Args:
            interval_seconds: Seconds between cycles (defaults to POLL_INTERVAL_SECONDS)

        Returns:
            True if polling was started, False if it was already running

        Raises:
            ValueError: If the interval is not positive
        """
        interval = interval_seconds if interval_seconds is not None else config.poller.interval_seconds
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")

        with self._lock:
            if self.context.state == PollerState.POLLING:
                self.logger.debug(
                    "Poller already running, ignoring start",
                    context={"interval_seconds": self.context.interval_seconds},
                )
                return False

            self.context.state = PollerState.POLLING
            self.context.interval_seconds = interval

            self.scheduler.add_job(
                self._run_scheduled_cycle,
                IntervalTrigger(seconds=interval),
                id=POLL_JOB_ID,
                name="Market price poll",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                next_run_time=datetime.now(timezone.utc),
            )
            if not self._scheduler_started:
                self.scheduler.start()
                self._scheduler_started = True

        self.logger.info(
            "Price polling started",
            context={"interval_seconds": interval, "coin_count": len(self.context.coin_ids)},
        )
        return True

    def stop(self) -> bool:
        """
        Stop recurring polling.

        A cycle already in flight is allowed to finish but its result is
        discarded.

        Returns:
            True if polling was stopped, False if the poller was idle
        """
        with self._lock:
            if self.context.state == PollerState.IDLE:
                return False

            self.context.state = PollerState.IDLE
            self.context.interval_seconds = None
            self.context.generation += 1

            try:
                self.scheduler.remove_job(POLL_JOB_ID)
            except JobLookupError:
                self.logger.debug("Poll job already removed from scheduler")

        self.logger.info("Price polling stopped")
        return True

    def shutdown(self) -> None:
        """Stop polling and shut the scheduler down."""
        self.stop()
        with self._lock:
            if self._scheduler_started:
                self.scheduler.shutdown(wait=False)
                self._scheduler_started = False

    def poll_once(self) -> bool:
        """
        Run one poll cycle now, whether or not recurring polling is active.

        Returns:
            True if a fresh price map was applied, False on failure or when
            the result was discarded because the poller was stopped meanwhile
        """
        return self._poll(require_polling=False)

    def _run_scheduled_cycle(self) -> None:
        self._poll(require_polling=True)

    def _poll(self, require_polling: bool) -> bool:
        with self._lock:
            if require_polling and self.context.state != PollerState.POLLING:
                return False
            generation = self.context.generation
            coin_ids = self.context.coin_ids
            streak = self.context.streak.record(date.today())

        start_time = time.time()
        with cycle_scope("poll") as cycle_id:
            self.event_store.publish(
                event_type=POLL_START,
                component="PricePoller",
                message="Starting poll cycle",
                context={"coin_count": len(coin_ids), "check_streak": streak},
                cycle_id=cycle_id,
            )

            def on_retry(retry_number: int, delay: float, error: RateLimitedError) -> None:
                self.event_store.publish(
                    event_type=POLL_RETRY,
                    component="PricePoller",
                    message=f"Rate limited, retrying in {delay:g}s",
                    context={"retry_number": retry_number, "retry_delay_seconds": delay, "reason": error.reason},
                    cycle_id=cycle_id,
                )

            try:
                points = self.retry_policy.execute(
                    lambda: self.client.fetch_market_data(coin_ids), on_retry=on_retry
                )
            except FetchError as e:
                return self._apply_failure(generation, cycle_id, e.reason, e.kind, start_time)
            except Exception as e:
                self.logger.error("Unexpected error during poll cycle", exception=e)
                return self._apply_failure(
                    generation, cycle_id, f"Unexpected error: {e}", "unexpected", start_time
                )

            return self._apply_success(generation, cycle_id, points, start_time)

    def _apply_success(
        self, generation: int, cycle_id: str, points: list[PricePoint], start_time: float
    ) -> bool:
        with self._lock:
            if generation != self.context.generation:
                self._discard(cycle_id, "success")
                return False

            previous = self.context.price_map
            new_map: PriceMap = {point.coin_id: point for point in points}
            self.context.price_map = new_map
            self.context.last_success_at = datetime.now(timezone.utc)
            self.context.last_failure_reason = None
            threshold = self.context.alert_threshold_percent

            triggered = evaluate(new_map, threshold)
            duration_ms = (time.time() - start_time) * 1000

            self.logger.info(
                "Prices updated",
                context={"coin_count": len(new_map), "alerts": len(triggered), "duration_ms": duration_ms},
            )
            self.event_store.publish(
                event_type=PRICES_UPDATED,
                component="PricePoller",
                message=f"Prices updated for {len(new_map)} coins",
                context={
                    "coin_count": len(new_map),
                    "dropped_coins": sorted(set(previous) - set(new_map)),
                    "status": "success",
                },
                payload=new_map,
                cycle_id=cycle_id,
                duration_ms=duration_ms,
            )

            if triggered:
                names = alert_names(new_map, triggered)
                message = build_alert_message(threshold, names)
                self.logger.info(
                    message,
                    context={
                        "coin_ids": triggered,
                        "changes": {
                            coin_id: format_percent(new_map[coin_id].change_24h_percent)
                            for coin_id in triggered
                        },
                    },
                )
                self.event_store.publish(
                    event_type=ALERTS_TRIGGERED,
                    component="PricePoller",
                    message=message,
                    context={"coins": names, "coin_ids": triggered, "threshold_percent": threshold},
                    payload=names,
                    cycle_id=cycle_id,
                )
            return True

    def _apply_failure(
        self, generation: int, cycle_id: str, reason: str, error_type: str, start_time: float
    ) -> bool:
        with self._lock:
            if generation != self.context.generation:
                self._discard(cycle_id, "failure")
                return False

            self.context.last_failure_reason = reason
            duration_ms = (time.time() - start_time) * 1000
            self.logger.warning(
                "Poll cycle failed, keeping last known prices",
                context={"reason": reason, "error_type": error_type, "duration_ms": duration_ms},
            )
            self.event_store.publish(
                event_type=POLL_FAILED,
                component="PricePoller",
                message=reason,
                context={"reason": reason, "error_type": error_type, "status": "failed"},
                cycle_id=cycle_id,
                duration_ms=duration_ms,
            )
            return False

    def _discard(self, cycle_id: str, outcome: str) -> None:
        self.logger.info("Discarding poll result that completed after stop", context={"outcome": outcome})
        self.event_store.publish(
            event_type=POLL_DISCARDED,
            component="PricePoller",
            message="Poll result discarded after stop",
            context={"outcome": outcome},
            cycle_id=cycle_id,
        )
