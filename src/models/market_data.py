"""Market data models for tracked coins, live prices and chart history."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class CoinInfo:
    """A tracked coin: display name and API id."""

    name: str
    coin_id: str


DEFAULT_COINS: tuple[CoinInfo, ...] = (
    CoinInfo("Bitcoin", "bitcoin"),
    CoinInfo("Ethereum", "ethereum"),
    CoinInfo("Dogecoin", "dogecoin"),
    CoinInfo("Shiba Inu", "shiba-inu"),
    CoinInfo("Pepe", "pepe"),
    CoinInfo("BONK", "bonk"),
    CoinInfo("FLOKI", "floki-inu"),
    CoinInfo("WIF", "dogwifhat"),
    CoinInfo("Solana", "solana"),
    CoinInfo("XRP", "xrp"),
    CoinInfo("Cardano", "cardano"),
    CoinInfo("Tether", "tether"),
)


def coin_display_name(coin_id: str) -> str:
    """Return the display name of a known coin, or the id itself."""
    for coin in DEFAULT_COINS:
        if coin.coin_id == coin_id:
            return coin.name
    return coin_id


@dataclass(frozen=True)
class PricePoint:
    """Latest market snapshot of one coin."""

    coin_id: str
    price: float
    change_24h_percent: float
    name: str = ""
    symbol: str = ""

    @property
    def display_name(self) -> str:
        """Name reported in alerts (falls back to the coin id)."""
        return self.name or self.coin_id


# Mapping of coin id to its latest PricePoint. Always replaced as a whole.
PriceMap = dict[str, PricePoint]


@dataclass(frozen=True)
class ChartPoint:
    """One sample of a historical price series."""

    timestamp: float  # seconds since epoch
    price: float


class TimeFrame(str, Enum):
    """Chart windows and the ``days`` value the market chart endpoint expects."""

    HOUR = "1H"
    DAY = "24H"
    WEEK = "7D"
    MONTH = "30D"
    YEAR = "1Y"
    ALL = "ALL"

    @property
    def days(self) -> str:
        return {
            TimeFrame.HOUR: "0.042",
            TimeFrame.DAY: "1",
            TimeFrame.WEEK: "7",
            TimeFrame.MONTH: "30",
            TimeFrame.YEAR: "365",
            TimeFrame.ALL: "max",
        }[self]


@dataclass
class ChartSeries:
    """Historical price series of one coin, ascending by timestamp."""

    coin_id: str
    points: list[ChartPoint] = field(default_factory=list)
    window_days: str = "1"
    fetched_at: float | None = None

    @property
    def last_price(self) -> float | None:
        return self.points[-1].price if self.points else None

    @property
    def prices(self) -> list[float]:
        return [point.price for point in self.points]

    @property
    def timestamps(self) -> list[float]:
        return [point.timestamp for point in self.points]
