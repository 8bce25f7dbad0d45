"""Price-swing alert evaluation."""

from collections.abc import Mapping

from src.models.market_data import PricePoint


def evaluate(price_map: Mapping[str, PricePoint], threshold_percent: float) -> list[str]:
    """
    Return the coins whose absolute 24h change meets or exceeds the threshold.

    The result follows the iteration order of ``price_map``. The function is
    pure: the same inputs always give the same list.

    Args:
        price_map: Coin id to latest PricePoint
        threshold_percent: Alert threshold in percent

    Returns:
        Triggered coin ids
    """
    return [
        coin_id
        for coin_id, point in price_map.items()
        if abs(point.change_24h_percent) >= threshold_percent
    ]


def alert_names(price_map: Mapping[str, PricePoint], coin_ids: list[str]) -> list[str]:
    """Map triggered coin ids to the names shown to the user."""
    return [price_map[coin_id].display_name for coin_id in coin_ids if coin_id in price_map]


def build_alert_message(threshold_percent: float, names: list[str]) -> str:
    """Human-readable alert text for notification collaborators."""
    return f"Price change exceeded {threshold_percent:g}% for: {', '.join(names)}"
