"""Integration tests for the HTTP API."""

from fastapi import status
from fastapi.testclient import TestClient

from main import create_app
from src.services.errors import NetworkError, RateLimitedError
from src.utils.event_store import PRICES_UPDATED
from tests.factories import make_point


def test_health(test_client):
    response = test_client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "healthy"}


def test_routes_unavailable_outside_lifespan():
    """Without startup there is no pipeline to serve."""
    client = TestClient(create_app())
    response = client.get("/api/prices")
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


class TestPrices:
    """Tests for price and poller endpoints."""

    def test_prices_empty_before_first_cycle(self, test_client):
        data = test_client.get("/api/prices").json()

        assert data["coins"] == []
        assert data["state"] == "idle"
        assert data["alert_threshold_percent"] == 5.0

    def test_refresh_then_prices(self, test_client, mock_client):
        mock_client.fetch_market_data.return_value = [
            make_point("bitcoin", 60000, change=1.0, name="Bitcoin"),
            make_point("pepe", 0.00001, change=-12.0, name="Pepe"),
        ]

        refresh = test_client.post("/api/poller/refresh")
        assert refresh.status_code == status.HTTP_200_OK
        assert refresh.json()["updated"] is True

        data = test_client.get("/api/prices").json()
        assert [c["coin_id"] for c in data["coins"]] == ["bitcoin", "pepe"]
        assert [c["alert"] for c in data["coins"]] == [False, True]
        assert data["count"] == 2
        assert data["check_streak"] == 1

    def test_failed_refresh_reports_reason(self, test_client, mock_client):
        mock_client.fetch_market_data.side_effect = NetworkError("Network error: refused")

        data = test_client.post("/api/poller/refresh").json()

        assert data["updated"] is False
        assert data["last_failure_reason"] == "Network error: refused"

    def test_start_and_stop(self, test_client, mock_scheduler):
        started = test_client.post("/api/poller/start", json={"interval_seconds": 30})
        assert started.json()["started"] is True
        assert started.json()["state"] == "polling"
        assert started.json()["interval_seconds"] == 30

        again = test_client.post("/api/poller/start")
        assert again.json()["started"] is False
        assert mock_scheduler.add_job.call_count == 1

        stopped = test_client.post("/api/poller/stop")
        assert stopped.json()["stopped"] is True
        assert stopped.json()["state"] == "idle"

    def test_start_rejects_bad_interval(self, test_client):
        response = test_client.post("/api/poller/start", json={"interval_seconds": 0})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_update_alert_threshold(self, test_client, pipeline):
        response = test_client.put("/api/settings/alert-threshold", json={"threshold_percent": 10})

        assert response.status_code == status.HTTP_200_OK
        assert pipeline.poller.alert_threshold_percent == 10.0

    def test_alert_threshold_out_of_range(self, test_client, pipeline):
        response = test_client.put("/api/settings/alert-threshold", json={"threshold_percent": 25})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert pipeline.poller.alert_threshold_percent == 5.0


class TestCharts:
    """Tests for the chart endpoint."""

    def test_chart_is_cached(self, test_client, mock_client):
        first = test_client.get("/api/chart/bitcoin")
        second = test_client.get("/api/chart/bitcoin")

        assert first.status_code == status.HTTP_200_OK
        data = second.json()
        assert data["name"] == "Bitcoin"
        assert data["timeframe"] == "24H"
        assert data["stale"] is False
        assert len(data["points"]) == 3
        assert mock_client.fetch_chart.call_count == 1

    def test_chart_timeframe_and_force(self, test_client, mock_client):
        test_client.get("/api/chart/ethereum?timeframe=7D")
        test_client.get("/api/chart/ethereum?timeframe=7D&force=true")

        assert mock_client.fetch_chart.call_count == 2
        mock_client.fetch_chart.assert_called_with("ethereum", "7")

    def test_invalid_timeframe(self, test_client):
        response = test_client.get("/api/chart/bitcoin?timeframe=2W")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_coin(self, test_client, mock_client):
        response = test_client.get("/api/chart/notacoin")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"]["error"] == "UNKNOWN_COIN"
        mock_client.fetch_chart.assert_not_called()

    def test_rate_limited_without_cache(self, test_client, mock_client):
        mock_client.fetch_chart.side_effect = RateLimitedError()

        response = test_client.get("/api/chart/bitcoin")

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json()["detail"]["error"] == "UPSTREAM_RATE_LIMITED"

    def test_stale_chart_served_on_failure(self, test_client, mock_client):
        test_client.get("/api/chart/bitcoin")
        mock_client.fetch_chart.side_effect = NetworkError("Network error: timed out")

        data = test_client.get("/api/chart/bitcoin?force=true").json()

        assert data["stale"] is True
        assert data["error"] == "Network error: timed out"
        assert len(data["points"]) == 3

    def test_chart_points_are_timestamp_price_pairs(self, test_client):
        data = test_client.get("/api/chart/bitcoin").json()

        assert data["points"] == [
            [1_700_000_000, 1.0],
            [1_700_000_060, 2.0],
            [1_700_000_120, 3.0],
        ]

    def test_failed_timeframe_does_not_fall_back_to_other_timeframe(self, test_client, mock_client):
        test_client.get("/api/chart/bitcoin?timeframe=7D")
        mock_client.fetch_chart.side_effect = NetworkError("Network error: timed out")

        response = test_client.get("/api/chart/bitcoin?timeframe=24H")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


class TestPortfolio:
    """Tests for the portfolio endpoints."""

    def test_add_and_list_entries(self, test_client, pipeline):
        pipeline.event_store.publish(
            PRICES_UPDATED, "test", "prices", payload={"bitcoin": make_point("bitcoin", price=150.0)}
        )

        created = test_client.post(
            "/api/portfolio",
            json={"coin_id": "bitcoin", "amount": 2, "purchase_price": 100},
        )
        assert created.status_code == status.HTTP_201_CREATED
        assert created.json()["current_value"] == 300.0
        assert created.json()["name"] == "Bitcoin"

        data = test_client.get("/api/portfolio").json()
        assert len(data["entries"]) == 1
        assert data["summary"]["total_profit_loss"] == 100.0
        assert data["summary"]["profit_loss_percent"] == 50.0

    def test_unknown_coin_rejected(self, test_client):
        response = test_client.post(
            "/api/portfolio",
            json={"coin_id": "notacoin", "amount": 1, "purchase_price": 1},
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_non_positive_amount_rejected(self, test_client):
        response = test_client.post(
            "/api/portfolio",
            json={"coin_id": "bitcoin", "amount": 0, "purchase_price": 1},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "body.amount" in response.json()["details"]


class TestObservability:
    """Tests for the events and metrics endpoints."""

    def test_events_and_metrics_after_cycles(self, test_client, mock_client):
        mock_client.fetch_market_data.return_value = [make_point("bitcoin", change=8.0)]
        test_client.post("/api/poller/refresh")
        mock_client.fetch_market_data.side_effect = NetworkError("Network error: refused")
        test_client.post("/api/poller/refresh")

        events = test_client.get("/api/events").json()
        types = [e["event_type"] for e in events["events"]]
        assert types == [
            "poll_start",
            "prices_updated",
            "alerts_triggered",
            "poll_start",
            "poll_failed",
        ]

        failed = test_client.get("/api/events?event_type=poll_failed").json()
        assert failed["count"] == 1
        assert failed["events"][0]["message"] == "Network error: refused"

        metrics = test_client.get("/api/metrics").json()
        assert metrics["total_polls"] == 2
        assert metrics["success_rate"] == 50.0
        assert metrics["alerts_triggered"] == 1

    def test_events_filtered_by_cycle(self, test_client, mock_client):
        mock_client.fetch_market_data.return_value = [make_point("bitcoin", change=1.0)]
        test_client.post("/api/poller/refresh")
        test_client.post("/api/poller/refresh")

        events = test_client.get("/api/events").json()["events"]
        first_cycle = events[0]["cycle_id"]
        assert events[-1]["cycle_id"] != first_cycle

        cycle = test_client.get(f"/api/events?cycle_id={first_cycle}").json()

        assert [e["event_type"] for e in cycle["events"]] == ["poll_start", "prices_updated"]
        assert {e["cycle_id"] for e in cycle["events"]} == {first_cycle}
        assert cycle["count"] == 2
