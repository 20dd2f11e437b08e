"""
Deduplication of at-least-once channel deliveries.
"""
import logging
from typing import Any, Dict

from support_relay.interfaces.providers.ephemeral import DeduplicationStore

# Setup logger for this module
logger = logging.getLogger(__name__)


class DeduplicationCache:
    """Short-TTL set of external message IDs."""

    def __init__(self, store: DeduplicationStore, ttl_seconds: float = 60):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._checked = 0
        self._duplicates = 0

    def seen(self, message_id: str) -> bool:
        """Return True if ``message_id`` was already seen within the TTL.

        A first sighting is recorded with a fresh expiry and returns False, so
        the caller proceeds; a repeat returns True and must be discarded.
        """
        if not message_id:
            raise ValueError("A message ID is required for deduplication")

        self._checked += 1
        if self.store.add_if_absent(message_id, self.ttl_seconds):
            return False

        self._duplicates += 1
        logger.debug(f"Discarding duplicate delivery of message {message_id}")
        return True

    def purge(self) -> int:
        removed = self.store.purge_expired()
        if removed:
            logger.debug(f"Purged {removed} expired message IDs")
        return removed

    def clear(self) -> None:
        self.store.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "size": self.store.size(),
            "ttl_seconds": self.ttl_seconds,
            "checked": self._checked,
            "duplicates": self._duplicates,
        }
