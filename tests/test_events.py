"""Tests for the notification channel and the sync context."""

from unittest.mock import Mock

from contentsync import events
from contentsync.context import SyncContext
from contentsync.events import EventBus


class TestEventBus:
    """Tests for EventBus."""

    def test_publish_to_subscribers(self):
        bus = EventBus()
        first, second = Mock(), Mock()
        bus.subscribe(events.PULLED, first)
        bus.subscribe(events.PULLED, second)

        bus.publish(events.PULLED, "/css/main.css", {"id": "1"})

        first.assert_called_once_with("/css/main.css", {"id": "1"})
        second.assert_called_once_with("/css/main.css", {"id": "1"})

    def test_unsubscribe(self):
        bus = EventBus()
        handler = Mock()
        unsubscribe = bus.subscribe(events.DIFF, handler)

        unsubscribe()
        bus.publish(events.DIFF, "/a", "x", "y")

        handler.assert_not_called()
        assert not bus.has_subscribers(events.DIFF)

    def test_failing_handler_does_not_interrupt(self):
        """Test a raising handler is logged and later handlers still run."""
        bus = EventBus()
        later = Mock()
        bus.subscribe(events.ADDED, Mock(side_effect=RuntimeError("boom")))
        bus.subscribe(events.ADDED, later)

        bus.publish(events.ADDED, "/a")

        later.assert_called_once_with("/a")

    def test_events_only_reach_their_subscribers(self):
        bus = EventBus()
        handler = Mock()
        bus.subscribe(events.PUSHED, handler)

        bus.publish(events.PULLED, "/a", {})

        handler.assert_not_called()


class TestSyncContext:
    """Tests for SyncContext."""

    def test_publish_without_channel(self):
        SyncContext().publish(events.PULLED, "/a", {})

    def test_contexts_are_isolated(self):
        """Test each context notifies only its own subscribers."""
        first_bus, second_bus = EventBus(), EventBus()
        handler = Mock()
        first_bus.subscribe(events.REMOVED, handler)

        SyncContext(events=second_bus).publish(events.REMOVED, "/a")
        SyncContext(events=first_bus).publish(events.REMOVED, "/b")

        handler.assert_called_once_with("/b")
