"""In-memory portfolio of user holdings, revalued on every price update."""

import threading
from datetime import datetime, timezone

from src.models.market_data import PriceMap
from src.models.portfolio import PortfolioEntry, PortfolioSummary
from src.services.portfolio_valuer import revalue, summarize
from src.utils.event_store import PRICES_UPDATED, Event, EventStore
from src.utils.formatting import format_large_number, format_percent
from src.utils.logger import StructuredLogger


class PortfolioService:
    """Holds portfolio entries and keeps their derived values current."""

    def __init__(self, tracked_coins: tuple[str, ...] | list[str], event_store: EventStore | None = None):
        """
        Initialize the portfolio.

        Args:
            tracked_coins: Coin ids an entry may refer to
            event_store: When given, entries are revalued on each prices_updated event
        """
        self.tracked_coins = tuple(tracked_coins)
        self.logger = StructuredLogger("PortfolioService")
        self._entries: list[PortfolioEntry] = []
        self._price_map: PriceMap = {}
        self._lock = threading.Lock()
        self._unsubscribe = None
        if event_store is not None:
            self._unsubscribe = event_store.subscribe(self._on_prices_updated, [PRICES_UPDATED])

    def add_entry(
        self,
        coin_id: str,
        amount: float,
        purchase_price: float,
        purchase_date: datetime | None = None,
    ) -> PortfolioEntry:
        """
        Add a holding and value it against the latest prices.

        Raises:
            ValueError: Unknown coin, or amount / purchase price not positive
        """
        if coin_id not in self.tracked_coins:
            raise ValueError(f"Unknown coin: {coin_id}")
        if amount <= 0:
            raise ValueError("Amount must be greater than zero")
        if purchase_price <= 0:
            raise ValueError("Purchase price must be greater than zero")

        entry = PortfolioEntry(
            coin_id=coin_id,
            amount=float(amount),
            purchase_price=float(purchase_price),
            purchase_date=purchase_date or datetime.now(timezone.utc),
        )
        with self._lock:
            [valued] = revalue([entry], self._price_map)
            self._entries.append(valued)

        self.logger.info(
            "Portfolio entry added",
            context={"coin_id": coin_id, "amount": amount, "purchase_price": purchase_price},
        )
        return valued

    def update_prices(self, price_map: PriceMap) -> list[PortfolioEntry]:
        """Revalue every entry against ``price_map`` and return the new entries."""
        with self._lock:
            self._price_map = price_map
            self._entries = revalue(self._entries, price_map)
            return list(self._entries)

    def entries(self) -> list[PortfolioEntry]:
        with self._lock:
            return list(self._entries)

    def summary(self) -> PortfolioSummary:
        with self._lock:
            return summarize(self._entries)

    def close(self) -> None:
        """Stop following price updates."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_prices_updated(self, event: Event) -> None:
        if isinstance(event.payload, dict):
            entries = self.update_prices(event.payload)
            if entries:
                summary = summarize(entries)
                self.logger.debug(
                    f"Portfolio revalued at {format_large_number(summary.total_value)} "
                    f"({format_percent(summary.profit_loss_percent)})",
                    context={"entry_count": len(entries)},
                )
