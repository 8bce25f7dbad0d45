"""Pytest configuration and fixtures."""

from unittest.mock import Mock

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi.testclient import TestClient

from main import create_app
from src.services.market_data_client import MarketDataClient
from src.services.pipeline import PricePipeline
from src.services.price_poller import PricePoller
from src.services.retry_policy import RetryPolicy
from src.utils.event_store import EventStore
from tests.factories import TEST_COINS, make_series


@pytest.fixture
def event_store():
    """Fresh in-memory event channel."""
    return EventStore()


@pytest.fixture
def mock_client():
    """Market data client that never touches the network."""
    client = Mock(spec=MarketDataClient)
    client.fetch_market_data.return_value = []
    client.fetch_chart.side_effect = lambda coin_id, window_days="1": make_series(coin_id, window_days)
    return client


@pytest.fixture
def mock_scheduler():
    """Scheduler double; tests run cycles themselves."""
    return Mock(spec=BackgroundScheduler)


@pytest.fixture
def fast_retry_policy():
    """Retry policy that does not wait between retries."""
    return RetryPolicy(max_retries=3, delay_seconds=0)


@pytest.fixture
def poller(mock_client, fast_retry_policy, event_store, mock_scheduler):
    """Poller over three coins with a 5% alert threshold."""
    return PricePoller(
        client=mock_client,
        retry_policy=fast_retry_policy,
        event_store=event_store,
        coin_ids=TEST_COINS,
        alert_threshold_percent=5.0,
        scheduler=mock_scheduler,
    )


@pytest.fixture
def pipeline(mock_client, fast_retry_policy, mock_scheduler):
    """Pipeline wired to the mock client and scheduler."""
    return PricePipeline(
        client=mock_client,
        retry_policy=fast_retry_policy,
        scheduler=mock_scheduler,
    )


@pytest.fixture
def test_client(pipeline):
    """Create a test client serving the given pipeline."""
    with TestClient(create_app(lambda: pipeline)) as client:
        yield client
