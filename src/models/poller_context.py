"""Explicit state owned by the price poller."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

from src.models.market_data import PriceMap


class PollerState(str, Enum):
    """Poller lifecycle states."""

    IDLE = "idle"
    POLLING = "polling"


@dataclass
class CheckStreak:
    """Number of consecutive calendar days on which prices were checked."""

    count: int = 0
    last_check_date: date | None = None

    def record(self, day: date) -> int:
        """
        Register a check on ``day`` and return the updated streak.

        Same day keeps the streak, the next day extends it, any longer gap
        (or the very first check) starts over at 1.
        """
        if self.last_check_date is None:
            self.count = 1
        elif day == self.last_check_date:
            pass
        elif day == self.last_check_date + timedelta(days=1):
            self.count += 1
        elif day > self.last_check_date:
            self.count = 1
        else:
            # Clock moved backwards; keep the streak as it is
            return self.count

        self.last_check_date = day
        return self.count


@dataclass
class PollerContext:
    """
    Everything the poller mutates between cycles.

    ``price_map`` is replaced as a whole on every applied cycle and never
    mutated in place. ``generation`` increases on every stop; a cycle that
    started under an older generation must not be applied.
    """

    coin_ids: tuple[str, ...]
    alert_threshold_percent: float
    state: PollerState = PollerState.IDLE
    interval_seconds: int | None = None
    price_map: PriceMap = field(default_factory=dict)
    generation: int = 0
    last_success_at: datetime | None = None
    last_failure_reason: str | None = None
    streak: CheckStreak = field(default_factory=CheckStreak)
