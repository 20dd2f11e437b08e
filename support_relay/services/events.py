"""
In-process event bus for committed state changes.

Every published event is pushed to the real-time notifier and then to local
subscribers. Subscribers are also where policies spanning conversations and
tickets plug in, so neither state machine has to know about the other.
"""
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from support_relay.domains import ChangeEvent, EventName
from support_relay.interfaces.providers.realtime import RealtimeNotifier

# Setup logger for this module
logger = logging.getLogger(__name__)

EventHandler = Callable[[ChangeEvent], Awaitable[None]]


class EventBus:
    """Fan-out of change events to the notifier and subscribers."""

    def __init__(self, notifier: Optional[RealtimeNotifier] = None):
        self.notifier = notifier
        self._handlers: Dict[Optional[EventName], List[EventHandler]] = {}
        self.published = 0

    def subscribe(self, handler: EventHandler, name: Optional[EventName] = None) -> None:
        """Register ``handler`` for one event name, or for every event when None."""
        self._handlers.setdefault(name, []).append(handler)

    def unsubscribe(self, handler: EventHandler, name: Optional[EventName] = None) -> bool:
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    async def publish(self, event: ChangeEvent) -> None:
        """Deliver an event. Delivery failures are logged; the change stays committed."""
        self.published += 1
        if self.notifier:
            try:
                await self.notifier.broadcast(event)
            except Exception as e:
                logger.error(f"Realtime broadcast of {event.name.value} failed: {e}")

        handlers = self._handlers.get(event.name, []) + self._handlers.get(None, [])
        for handler in handlers:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    f"Event handler failed for {event.name.value} on "
                    f"{event.entity_type} {event.entity_id}"
                )
