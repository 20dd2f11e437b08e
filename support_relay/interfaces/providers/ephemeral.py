"""
Interfaces for the short-lived per-sender state.

A single process can keep this state in memory; a multi-worker deployment
must plug in a shared implementation.
"""
from abc import ABC, abstractmethod
from typing import Dict, List

from support_relay.domains import QueuedItem


class DeduplicationStore(ABC):
    """Set of recently seen external message IDs with expiry."""

    @abstractmethod
    def add_if_absent(self, key: str, ttl_seconds: float) -> bool:
        """Record ``key`` unless it is present and unexpired.

        Returns True when the key was recorded (first sighting), False when it
        was already present.
        """
        pass

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop expired keys and return how many were removed."""
        pass

    @abstractmethod
    def size(self) -> int:
        """Number of keys currently held."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Forget every key."""
        pass


class BurstQueueStore(ABC):
    """Per-sender ordered lists of pending items."""

    @abstractmethod
    def append(self, sender_id: str, item: QueuedItem) -> int:
        """Append an item and return the new queue length."""
        pass

    @abstractmethod
    def take(self, sender_id: str) -> List[QueuedItem]:
        """Atomically remove and return the sender's whole queue."""
        pass

    @abstractmethod
    def sizes(self) -> Dict[str, int]:
        """Queue length per sender with pending items."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Drop every pending item."""
        pass
