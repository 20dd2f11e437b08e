"""
MongoDB implementation of the per-period sequence counter.

One document per generation period holds the last issued value. The store's
atomic increment is the only coordination needed between concurrent callers.
"""
import logging

from pymongo.errors import PyMongoError

from support_relay.errors import CounterError
from support_relay.interfaces.providers.data_storage import DataStorageProvider
from support_relay.interfaces.repositories import CounterRepository

# Setup logger for this module
logger = logging.getLogger(__name__)


class MongoCounterRepository(CounterRepository):
    """Sequence counters backed by ``find_one_and_update`` with ``$inc``."""

    def __init__(self, db_adapter: DataStorageProvider, key_prefix: str = "ticket_counter"):
        self.db = db_adapter
        self.collection = "ticket_counters"
        self.key_prefix = key_prefix
        self.db.create_collection(self.collection)

    def _key(self, period: str) -> str:
        return f"{self.key_prefix}:{period}"

    def next_sequence(self, period: str) -> int:
        try:
            doc = self.db.find_one_and_update(
                self.collection,
                {"_id": self._key(period)},
                {"$inc": {"sequence": 1}, "$setOnInsert": {"period": period}},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"Counter increment failed for period {period}: {e}")
            raise CounterError(f"Could not issue a sequence for period {period}") from e

        if not doc or "sequence" not in doc:
            raise CounterError(f"Counter for period {period} returned no value")
        return int(doc["sequence"])

    def current(self, period: str) -> int:
        doc = self.db.find_one(self.collection, {"_id": self._key(period)})
        return int(doc["sequence"]) if doc else 0
