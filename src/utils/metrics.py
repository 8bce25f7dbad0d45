"""Metrics calculator for aggregating pipeline events."""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from src.utils.event_store import (
    ALERTS_TRIGGERED,
    CHART_FETCH_FAILED,
    CHART_UPDATED,
    POLL_DISCARDED,
    POLL_FAILED,
    POLL_RETRY,
    PRICES_UPDATED,
    EventStore,
)


@dataclass
class Metrics:
    """Represents aggregated pipeline metrics."""

    total_polls: int
    successful_polls: int
    failed_polls: int
    success_rate: float
    average_poll_duration_ms: float
    alerts_triggered: int
    rate_limit_retries: int
    discarded_polls: int
    chart_fetches: int
    failed_chart_fetches: int
    uptime_seconds: int

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to dictionary."""
        return asdict(self)


class MetricsCalculator:
    """Calculates metrics from event store data."""

    def __init__(self, event_store: EventStore, start_time: Optional[datetime] = None):
        """
        Initialize the metrics calculator.

        Args:
            event_store: The event store to calculate metrics from
            start_time: Optional start time for uptime calculation (defaults to now)
        """
        self.event_store = event_store
        self.start_time = start_time or datetime.now(timezone.utc)

    def calculate(self) -> Metrics:
        """
        Calculate metrics from the event store.

        A poll counts once, as either ``prices_updated`` or ``poll_failed``.
        Discarded cycles are counted separately.
        """
        events = self.event_store.get_all_events()

        successes = [e for e in events if e.event_type == PRICES_UPDATED]
        failures = [e for e in events if e.event_type == POLL_FAILED]
        total_polls = len(successes) + len(failures)

        success_rate = (len(successes) / total_polls * 100) if total_polls > 0 else 0.0

        poll_durations = [e.duration_ms for e in successes + failures if e.duration_ms is not None]
        average_poll_duration_ms = (
            sum(poll_durations) / len(poll_durations) if poll_durations else 0.0
        )

        alerts_triggered = sum(
            len(e.context.get("coin_ids", [])) for e in events if e.event_type == ALERTS_TRIGGERED
        )

        chart_updates = len([e for e in events if e.event_type == CHART_UPDATED])
        failed_chart_fetches = len([e for e in events if e.event_type == CHART_FETCH_FAILED])

        current_time = datetime.now(timezone.utc)
        uptime_seconds = int((current_time - self.start_time).total_seconds())

        return Metrics(
            total_polls=total_polls,
            successful_polls=len(successes),
            failed_polls=len(failures),
            success_rate=success_rate,
            average_poll_duration_ms=average_poll_duration_ms,
            alerts_triggered=alerts_triggered,
            rate_limit_retries=len([e for e in events if e.event_type == POLL_RETRY]),
            discarded_polls=len([e for e in events if e.event_type == POLL_DISCARDED]),
            chart_fetches=chart_updates + failed_chart_fetches,
            failed_chart_fetches=failed_chart_fetches,
            uptime_seconds=uptime_seconds,
        )
