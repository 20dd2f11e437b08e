"""
Burst aggregation of rapid inbound messages.

Messages from one sender are held until the sender has been silent for the
debounce period and then handed on as a single combined turn. The pending
list lives in an injected store; only the timer handles are kept here.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from support_relay.domains import InboundTurn, QueuedItem
from support_relay.interfaces.providers.ephemeral import BurstQueueStore

# Setup logger for this module
logger = logging.getLogger(__name__)

TurnHandler = Callable[[InboundTurn], Awaitable[Any]]


class BurstAggregator:
    """Per-sender debounce in front of the turn handler."""

    def __init__(
        self,
        store: BurstQueueStore,
        handler: TurnHandler,
        debounce_seconds: float = 2.0,
        separator: str = "\n\n",
    ):
        """Initialize the aggregator.

        Args:
            store: Holds each sender's pending items
            handler: Receives every combined turn (usually the router)
            debounce_seconds: Required silence before a burst is dispatched
            separator: Placed between item texts in the combined turn
        """
        self.store = store
        self.handler = handler
        self.debounce_seconds = debounce_seconds
        self.separator = separator
        self._timers: Dict[str, asyncio.Task] = {}
        self._dispatching: Set[asyncio.Task] = set()
        self._dispatched_turns = 0
        self._failed_turns = 0

    async def enqueue(self, sender_id: str, item: QueuedItem) -> int:
        """Add an item to the sender's burst and restart its debounce timer.

        Returns:
            Number of items now pending for the sender
        """
        pending = self.store.append(sender_id, item)
        self._schedule(sender_id)
        logger.debug(f"Queued message for {sender_id} ({pending} pending)")
        return pending

    def _schedule(self, sender_id: str) -> None:
        previous = self._timers.get(sender_id)
        if previous and not previous.done():
            previous.cancel()
        self._timers[sender_id] = asyncio.create_task(self._expire(sender_id))

    async def _expire(self, sender_id: str) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # From here the task no longer counts as a pending timer, so a new
        # enqueue schedules a fresh one instead of cancelling this dispatch.
        task = asyncio.current_task()
        if self._timers.get(sender_id) is task:
            del self._timers[sender_id]
        self._dispatching.add(task)
        try:
            await self._dispatch(sender_id)
        finally:
            self._dispatching.discard(task)

    async def flush(self, sender_id: str) -> Optional[InboundTurn]:
        """Dispatch the sender's burst now instead of waiting for the timer."""
        timer = self._timers.pop(sender_id, None)
        if timer and timer is not asyncio.current_task():
            timer.cancel()
        return await self._dispatch(sender_id)

    async def _dispatch(self, sender_id: str) -> Optional[InboundTurn]:
        # Swap the queue out before the first await; later arrivals start over
        items = self.store.take(sender_id)
        if not items:
            return None

        turn = InboundTurn.combine(sender_id, items, self.separator)
        self._dispatched_turns += 1
        logger.info(f"Dispatching turn of {len(items)} message(s) from {sender_id}")
        try:
            await self.handler(turn)
        except Exception:
            self._failed_turns += 1
            logger.exception(f"Handling turn from {sender_id} failed")
        return turn

    async def drain(self) -> None:
        """Dispatch every pending burst now and wait for in-flight turns."""
        for sender_id in list(self.store.sizes()):
            await self.flush(sender_id)
        for timer in list(self._timers.values()):
            timer.cancel()
        self._timers.clear()
        if self._dispatching:
            await asyncio.gather(*self._dispatching, return_exceptions=True)

    def clear(self) -> int:
        """Drop every pending burst without dispatching. Returns the items dropped."""
        dropped = sum(self.store.sizes().values())
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self.store.clear()
        if dropped:
            logger.warning(f"Dropped {dropped} pending message(s)")
        return dropped

    def stats(self) -> Dict[str, Any]:
        sizes = self.store.sizes()
        return {
            "pending_senders": len(sizes),
            "pending_items": sum(sizes.values()),
            "scheduled_timers": len(self._timers),
            "in_flight_turns": len(self._dispatching),
            "dispatched_turns": self._dispatched_turns,
            "failed_turns": self._failed_turns,
            "debounce_seconds": self.debounce_seconds,
        }
