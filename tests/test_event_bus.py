"""Tests for the store event bus."""

from unittest.mock import MagicMock

import pytest

from hotspot_sync.event_bus import EventBus, HotspotCreated, HotspotDeleted, StoreEvent
from hotspot_sync.models import Hotspot


@pytest.fixture
def bus():
    return EventBus()


def _created():
    return HotspotCreated(hotspot=Hotspot(id="h1", slide_id="s1"))


class TestEventBus:
    """Tests for subscribe / emit / cancel."""

    def test_listeners_called_in_subscription_order(self, bus):
        """Test delivery order."""
        calls = []
        bus.subscribe(StoreEvent.HOTSPOT_CREATED, lambda p: calls.append("first"))
        bus.subscribe(StoreEvent.HOTSPOT_CREATED, lambda p: calls.append("second"))

        bus.emit(StoreEvent.HOTSPOT_CREATED, _created())
        assert calls == ["first", "second"]

    def test_subscribe_by_event_name(self, bus):
        """Test the camelCase wire names are accepted."""
        listener = MagicMock()
        bus.subscribe("hotspotCreated", listener)

        payload = _created()
        bus.emit(StoreEvent.HOTSPOT_CREATED, payload)
        listener.assert_called_once_with(payload)

    def test_failing_listener_is_isolated(self, bus):
        """Test one listener raising does not stop the others."""
        after = MagicMock()
        bus.subscribe(StoreEvent.HOTSPOT_CREATED, MagicMock(side_effect=RuntimeError("boom")))
        bus.subscribe(StoreEvent.HOTSPOT_CREATED, after)

        assert bus.emit(StoreEvent.HOTSPOT_CREATED, _created()) == 1
        after.assert_called_once()

    def test_cancel_subscription(self, bus):
        """Test a cancelled listener is no longer called."""
        listener = MagicMock()
        sub = bus.subscribe(StoreEvent.HOTSPOT_CREATED, listener)
        sub.cancel()
        sub.cancel()

        bus.emit(StoreEvent.HOTSPOT_CREATED, _created())
        listener.assert_not_called()
        assert bus.listener_count(StoreEvent.HOTSPOT_CREATED) == 0

    def test_payload_type_is_checked(self, bus):
        """Test emitting the wrong payload type for an event."""
        with pytest.raises(TypeError):
            bus.emit(StoreEvent.HOTSPOT_CREATED, HotspotDeleted(hotspot=Hotspot(id="h1", slide_id="s1")))

    def test_unknown_event_name(self, bus):
        """Test subscribing to an event that does not exist."""
        with pytest.raises(ValueError):
            bus.subscribe("hotspotExploded", MagicMock())

    def test_clear(self, bus):
        """Test clear() drops every subscription."""
        sub = bus.subscribe(StoreEvent.HOTSPOT_CREATED, MagicMock())
        bus.subscribe(StoreEvent.HOTSPOT_DELETED, MagicMock())

        bus.clear()
        assert bus.listener_count() == 0
        assert sub.active is False
