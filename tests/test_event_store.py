"""Property-based tests for the in-memory event channel."""

from datetime import UTC, datetime, timedelta

from hypothesis import given
from hypothesis import strategies as st

from src.utils.event_store import CHART_UPDATED, POLL_FAILED, PRICES_UPDATED, EventStore


class TestEventStoreOrdering:
    """Tests for event ordering and cycle history."""

    @given(
        num_events=st.integers(min_value=1, max_value=50),
        num_cycles=st.integers(min_value=1, max_value=5),
    )
    def test_cycle_history_is_complete_and_ordered(self, num_events, num_cycles):
        """
        For any cycle id, get_events_by_cycle returns every event of that
        cycle in publish order.
        """
        store = EventStore()
        cycles = [f"poll-{i}" for i in range(num_cycles)]
        published = {cycle: [] for cycle in cycles}

        for i in range(num_events):
            cycle_id = cycles[i % num_cycles]
            event = store.publish(
                event_type="test_event",
                component="test_component",
                message=f"Event {i}",
                context={"index": i},
                cycle_id=cycle_id,
            )
            published[cycle_id].append(event.id)

        for cycle_id in cycles:
            retrieved = store.get_events_by_cycle(cycle_id)
            assert [e.id for e in retrieved] == published[cycle_id]
            assert all(e.cycle_id == cycle_id for e in retrieved)

    @given(num_events=st.integers(min_value=1, max_value=30), limit=st.integers(min_value=1, max_value=40))
    def test_recent_events_are_the_newest_oldest_first(self, num_events, limit):
        store = EventStore()
        for i in range(num_events):
            store.publish(event_type="test_event", component="test", message=f"Event {i}")

        recent = store.get_recent_events(limit=limit)

        expected = [f"Event {i}" for i in range(num_events)][-limit:]
        assert [e.message for e in recent] == expected

    def test_store_is_bounded(self):
        store = EventStore(max_size=5)
        for i in range(8):
            store.publish(event_type="test_event", component="test", message=f"Event {i}")

        assert store.size() == 5
        assert store.get_all_events()[0].message == "Event 3"

    def test_events_by_type(self):
        store = EventStore()
        store.publish(event_type=PRICES_UPDATED, component="PricePoller", message="a")
        store.publish(event_type=POLL_FAILED, component="PricePoller", message="b")
        store.publish(event_type=PRICES_UPDATED, component="PricePoller", message="c")

        assert [e.message for e in store.get_events_by_type(PRICES_UPDATED)] == ["a", "c"]
        assert [e.message for e in store.get_events_by_type(PRICES_UPDATED, limit=1)] == ["c"]


class TestSubscribers:
    """Tests for subscriber fan-out."""

    def test_subscribers_receive_events_in_publish_order(self):
        store = EventStore()
        received = []
        store.subscribe(lambda event: received.append(event.message))

        for i in range(5):
            store.publish(event_type="test_event", component="test", message=str(i))

        assert received == ["0", "1", "2", "3", "4"]

    def test_subscription_filters_by_type(self):
        store = EventStore()
        received = []
        store.subscribe(lambda event: received.append(event.event_type), [CHART_UPDATED])

        store.publish(event_type=PRICES_UPDATED, component="test", message="p")
        store.publish(event_type=CHART_UPDATED, component="test", message="c")

        assert received == [CHART_UPDATED]

    def test_failing_subscriber_does_not_block_others(self):
        store = EventStore()
        received = []

        def broken(event):
            raise RuntimeError("subscriber bug")

        store.subscribe(broken)
        store.subscribe(lambda event: received.append(event.message))

        event = store.publish(event_type="test_event", component="test", message="hello")

        assert received == ["hello"]
        assert store.get_all_events() == [event]

    def test_unsubscribe(self):
        store = EventStore()
        received = []
        unsubscribe = store.subscribe(lambda event: received.append(event))

        unsubscribe()
        unsubscribe()
        store.publish(event_type="test_event", component="test", message="ignored")

        assert received == []


class TestEventStoreRetention:
    """Tests for age-based purging and serialization."""

    def test_clear_old_events(self):
        store = EventStore(max_age_seconds=60)
        old = store.publish(event_type="test_event", component="test", message="old")
        store.publish(event_type="test_event", component="test", message="new")
        old.timestamp = (datetime.now(UTC) - timedelta(seconds=120)).isoformat().replace("+00:00", "Z")

        removed = store.clear_old_events()

        assert removed == 1
        assert [e.message for e in store.get_all_events()] == ["new"]

    def test_to_dict_drops_empty_fields(self):
        store = EventStore()
        event = store.publish(event_type="test_event", component="test", message="m")

        data = event.to_dict()

        assert "cycle_id" not in data
        assert "payload" not in data
        assert "duration_ms" not in data
        assert data["context"] == {}
        assert data["timestamp"].endswith("Z")

    def test_clear(self):
        store = EventStore()
        store.publish(event_type="test_event", component="test", message="m")
        store.clear()
        assert store.size() == 0
