"""Wiring of the price pipeline components around one event channel."""

from apscheduler.schedulers.background import BackgroundScheduler

from src.services.chart_cache import ChartCache
from src.services.market_data_client import MarketDataClient
from src.services.portfolio_service import PortfolioService
from src.services.price_poller import PricePoller
from src.services.retry_policy import RetryPolicy
from src.utils.config import config
from src.utils.event_store import EventStore
from src.utils.metrics import MetricsCalculator


class PricePipeline:
    """Owns the poller, chart cache, portfolio and event channel for the process."""

    def __init__(
        self,
        client: MarketDataClient | None = None,
        event_store: EventStore | None = None,
        retry_policy: RetryPolicy | None = None,
        scheduler: BackgroundScheduler | None = None,
    ):
        self.event_store = event_store or EventStore(
            max_size=config.logging.event_store_max_size,
            max_age_seconds=config.logging.event_store_max_age_seconds,
        )
        self.client = client or MarketDataClient()
        self.poller = PricePoller(
            client=self.client,
            retry_policy=retry_policy,
            event_store=self.event_store,
            scheduler=scheduler,
        )
        self.chart_cache = ChartCache(client=self.client, event_store=self.event_store)
        self.portfolio = PortfolioService(self.poller.coin_ids, event_store=self.event_store)
        self.metrics = MetricsCalculator(self.event_store)

    def shutdown(self) -> None:
        self.portfolio.close()
        self.poller.shutdown()
