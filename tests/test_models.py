"""Tests for market data models and formatting helpers."""

import pytest

from src.models.market_data import DEFAULT_COINS, TimeFrame, coin_display_name
from src.utils.config import DEFAULT_TRACKED_COINS
from src.utils.formatting import format_large_number, format_percent, format_price
from tests.factories import make_series


def test_default_coins_match_default_tracking_list():
    assert [coin.coin_id for coin in DEFAULT_COINS] == DEFAULT_TRACKED_COINS


def test_coin_display_name():
    assert coin_display_name("floki-inu") == "FLOKI"
    assert coin_display_name("unlisted") == "unlisted"


@pytest.mark.parametrize(
    ("timeframe", "days"),
    [
        (TimeFrame.HOUR, "0.042"),
        (TimeFrame.DAY, "1"),
        (TimeFrame.WEEK, "7"),
        (TimeFrame.MONTH, "30"),
        (TimeFrame.YEAR, "365"),
        (TimeFrame.ALL, "max"),
    ],
)
def test_timeframe_days(timeframe, days):
    assert timeframe.days == days


def test_timeframe_from_label():
    assert TimeFrame("7D") is TimeFrame.WEEK


def test_chart_series_accessors():
    series = make_series("bitcoin", prices=(1.0, 4.0))
    assert series.prices == [1.0, 4.0]
    assert series.timestamps == [1_700_000_000, 1_700_000_060]
    assert series.last_price == 4.0


@pytest.mark.parametrize(
    ("price", "expected"),
    [(0.00001234, "0.000012"), (0.5, "0.5000"), (64250.126, "64250.13")],
)
def test_format_price(price, expected):
    assert format_price(price) == expected


@pytest.mark.parametrize(
    ("number", "expected"),
    [(2_500_000_000, "$2.50B"), (1_250_000, "$1.25M"), (1_500, "$1.50K"), (12.5, "$12.50")],
)
def test_format_large_number(number, expected):
    assert format_large_number(number) == expected


def test_format_percent():
    assert format_percent(5.254) == "+5.25%"
    assert format_percent(-3) == "-3.00%"
