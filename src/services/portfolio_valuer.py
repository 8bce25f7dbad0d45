"""Portfolio valuation against the latest price map."""

from collections.abc import Iterable, Mapping
from dataclasses import replace

from src.models.market_data import PricePoint
from src.models.portfolio import PortfolioEntry, PortfolioSummary


def revalue_entry(entry: PortfolioEntry, price: float) -> PortfolioEntry:
    """Return a copy of ``entry`` with its derived fields recomputed at ``price``."""
    current_value = entry.amount * price
    return replace(
        entry,
        current_value=current_value,
        profit_loss=current_value - entry.amount * entry.purchase_price,
        profit_loss_percent=(price / entry.purchase_price - 1) * 100,
    )


def revalue(
    entries: Iterable[PortfolioEntry], price_map: Mapping[str, PricePoint]
) -> list[PortfolioEntry]:
    """
    Recompute current value and profit/loss of every entry.

    A coin missing from the price map is valued at a price of 0; this is not
    an error. ``purchase_price`` must be positive (checked when the entry is
    created).

    Args:
        entries: Holdings to value
        price_map: Coin id to latest PricePoint

    Returns:
        New entries, in the same order, with derived fields filled in
    """
    revalued = []
    for entry in entries:
        point = price_map.get(entry.coin_id)
        revalued.append(revalue_entry(entry, point.price if point else 0.0))
    return revalued


def summarize(entries: Iterable[PortfolioEntry]) -> PortfolioSummary:
    """Totals over already-valued entries."""
    entries = list(entries)
    total_value = sum(entry.current_value for entry in entries)
    total_cost = sum(entry.cost_basis for entry in entries)
    total_profit_loss = total_value - total_cost
    profit_loss_percent = (total_profit_loss / total_cost * 100) if total_cost else 0.0

    return PortfolioSummary(
        total_value=total_value,
        total_cost=total_cost,
        total_profit_loss=total_profit_loss,
        profit_loss_percent=profit_loss_percent,
        entry_count=len(entries),
    )
