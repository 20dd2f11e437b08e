"""
MongoDB-backed deduplication store for deployments with several workers.

Each seen message ID is one document keyed by the ID itself; the unique
``_id`` index makes "insert if absent" atomic across processes.
"""
from datetime import timedelta

from pymongo.errors import DuplicateKeyError

from support_relay.domains import utcnow
from support_relay.interfaces.providers.data_storage import DataStorageProvider
from support_relay.interfaces.providers.ephemeral import DeduplicationStore
from support_relay.repositories.documents import to_document


class MongoDeduplicationStore(DeduplicationStore):
    """Shared DeduplicationStore using a TTL-indexed collection."""

    def __init__(self, db_adapter: DataStorageProvider):
        self.db = db_adapter
        self.collection = "processed_messages"
        self.db.create_collection(self.collection)
        # Mongo removes expired documents in the background (about once a minute)
        self.db.create_index(self.collection, [("expires_at", 1)], expireAfterSeconds=0)

    def add_if_absent(self, key: str, ttl_seconds: float) -> bool:
        now = utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds)
        try:
            # Matches only an expired leftover; otherwise the upsert inserts a
            # new document and collides with a live one on _id.
            self.db.update_one(
                self.collection,
                {"_id": key, "expires_at": {"$lte": to_document(now)}},
                {"$set": {"expires_at": to_document(expires_at)}},
                upsert=True,
            )
        except DuplicateKeyError:
            return False
        return True

    def purge_expired(self) -> int:
        query = {"expires_at": {"$lte": to_document(utcnow())}}
        count = self.db.count_documents(self.collection, query)
        self.db.delete_all(self.collection, query)
        return count

    def size(self) -> int:
        return self.db.count_documents(self.collection, {})

    def clear(self) -> None:
        self.db.delete_all(self.collection, {})
