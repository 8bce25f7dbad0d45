"""Portfolio models for user holdings."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class PortfolioEntry:
    """
    A holding of one coin.

    ``current_value``, ``profit_loss`` and ``profit_loss_percent`` are derived
    from the amount, the purchase price and the latest price map. They are
    only ever written by the portfolio valuer.
    """

    coin_id: str
    amount: float
    purchase_price: float
    purchase_date: datetime
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    current_value: float = 0.0
    profit_loss: float = 0.0
    profit_loss_percent: float = 0.0

    @property
    def cost_basis(self) -> float:
        return self.amount * self.purchase_price


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals across all holdings."""

    total_value: float
    total_cost: float
    total_profit_loss: float
    profit_loss_percent: float
    entry_count: int
