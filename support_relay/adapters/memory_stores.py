"""
In-process implementations of the ephemeral per-sender stores.

Suitable for a single worker. Both stores guard their maps with a lock so
they stay correct if called from threads as well as from the event loop.
"""
import threading
import time
from collections import defaultdict
from typing import Callable, Dict, List

from support_relay.domains import QueuedItem
from support_relay.interfaces.providers.ephemeral import (
    BurstQueueStore,
    DeduplicationStore,
)


class InMemoryDeduplicationStore(DeduplicationStore):
    """Dictionary of message ID -> expiry on a monotonic clock.

    Keys are kept in insertion order, so expired entries collect at the front
    and each insert drops them before recording the new key.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expiries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def add_if_absent(self, key: str, ttl_seconds: float) -> bool:
        now = self._clock()
        with self._lock:
            expiry = self._expiries.get(key)
            if expiry is not None and expiry > now:
                return False
            self._drop_expired_head(now)
            self._expiries.pop(key, None)
            self._expiries[key] = now + ttl_seconds
            return True

    def _drop_expired_head(self, now: float) -> None:
        while self._expiries:
            key, expiry = next(iter(self._expiries.items()))
            if expiry > now:
                break
            del self._expiries[key]

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, expiry in self._expiries.items() if expiry <= now]
            for key in expired:
                del self._expiries[key]
        return len(expired)

    def size(self) -> int:
        with self._lock:
            return len(self._expiries)

    def clear(self) -> None:
        with self._lock:
            self._expiries.clear()


class InMemoryBurstQueueStore(BurstQueueStore):
    """Dictionary of sender ID -> pending items in arrival order."""

    def __init__(self):
        self._queues: Dict[str, List[QueuedItem]] = defaultdict(list)
        self._lock = threading.Lock()

    def append(self, sender_id: str, item: QueuedItem) -> int:
        with self._lock:
            queue = self._queues[sender_id]
            queue.append(item)
            return len(queue)

    def take(self, sender_id: str) -> List[QueuedItem]:
        # Swap the list out in one step so late arrivals start a fresh queue
        with self._lock:
            return self._queues.pop(sender_id, [])

    def sizes(self) -> Dict[str, int]:
        with self._lock:
            return {k: len(v) for k, v in self._queues.items() if v}

    def clear(self) -> None:
        with self._lock:
            self._queues.clear()
