"""Publish/subscribe channel for sync lifecycle notifications."""

import logging
import threading
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

PULLED = "pulled"
PULLED_ERROR = "pulled-error"
PUSHED = "pushed"
PUSHED_ERROR = "pushed-error"
RESOURCE_PULLED = "resource-pulled"
RESOURCE_PULLED_ERROR = "resource-pulled-error"
RESOURCE_PUSHED = "resource-pushed"
RESOURCE_PUSHED_ERROR = "resource-pushed-error"
RESOURCE_LOCAL_ONLY = "resource-local-only"
DIFF = "diff"
ADDED = "added"
REMOVED = "removed"

EVENTS = (
    PULLED,
    PULLED_ERROR,
    PUSHED,
    PUSHED_ERROR,
    RESOURCE_PULLED,
    RESOURCE_PULLED_ERROR,
    RESOURCE_PUSHED,
    RESOURCE_PUSHED_ERROR,
    RESOURCE_LOCAL_ONLY,
    DIFF,
    ADDED,
    REMOVED,
)

Handler = Callable[..., Any]


class EventBus:
    """Synchronous event channel.

    Handlers run on the publishing thread. A failing handler is logged and
    never interrupts the operation that published the event.

    Examples:
        >>> bus = EventBus()
        >>> pulled = []
        >>> unsubscribe = bus.subscribe("pulled", pulled.append)
        >>> bus.publish("pulled", "/css/main.css")
        >>> pulled
        ['/css/main.css']
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register a handler for an event.

        Args:
            event: Event name
            handler: Callable invoked with the published arguments

        Returns:
            Function that removes the handler again
        """
        with self._lock:
            self._handlers[event].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers[event]:
                    self._handlers[event].remove(handler)

        return unsubscribe

    def publish(self, event: str, *args: Any) -> None:
        """Invoke every handler registered for the event."""
        with self._lock:
            handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                handler(*args)
            except Exception as e:
                logger.warning(f"Handler for '{event}' failed: {e}")

    def has_subscribers(self, event: str) -> bool:
        """Check whether any handler is registered for the event."""
        with self._lock:
            return bool(self._handlers.get(event))
