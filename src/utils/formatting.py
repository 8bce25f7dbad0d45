"""Price and amount formatting helpers for log and event messages."""


def format_price(price: float) -> str:
    """Format a price with precision scaled to its magnitude."""
    if price < 0.01:
        return f"{price:.6f}"
    if price < 1:
        return f"{price:.4f}"
    return f"{price:.2f}"


def format_large_number(number: float) -> str:
    """Format a dollar amount using B/M/K suffixes."""
    billion = 1_000_000_000.0
    million = 1_000_000.0
    thousand = 1_000.0

    if number >= billion:
        return f"${number / billion:.2f}B"
    if number >= million:
        return f"${number / million:.2f}M"
    if number >= thousand:
        return f"${number / thousand:.2f}K"
    return f"${number:.2f}"


def format_percent(value: float) -> str:
    """Format a signed percentage, e.g. ``+5.25%``."""
    return f"{value:+.2f}%"
