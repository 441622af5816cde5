"""Per-call context passed to every engine operation."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .events import EventBus


@dataclass
class SyncContext:
    """Context shared by the operations of one sync session.

    One engine can serve many contexts; each context carries its own
    notification channel.
    """

    events: Optional[EventBus] = None
    """Notification channel; publishing is a no-op without one"""

    name: str = "default"
    """Label used in log messages"""

    attributes: dict[str, Any] = field(default_factory=dict)
    """Free-form values shared between collaborators for this session"""

    def publish(self, event: str, *args: Any) -> None:
        """Publish an event if a channel is attached."""
        if self.events is not None:
            self.events.publish(event, *args)
