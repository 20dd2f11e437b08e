"""
Tests for the shared deduplication store and the operator directory.
"""
from datetime import datetime, timedelta, timezone

from support_relay.domains import ActorRole, Operator
from support_relay.repositories import MongoDeduplicationStore, MongoOperatorRepository


def _naive_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TestMongoDeduplicationStore:
    def test_second_sighting_is_duplicate(self, mongodb_adapter):
        store = MongoDeduplicationStore(mongodb_adapter)

        assert store.add_if_absent("wamid.1", 60) is True
        assert store.add_if_absent("wamid.1", 60) is False
        assert store.add_if_absent("wamid.2", 60) is True
        assert store.size() == 2

    def test_expired_leftover_is_reused(self, mongodb_adapter):
        store = MongoDeduplicationStore(mongodb_adapter)
        mongodb_adapter.insert_one(
            "processed_messages",
            {"_id": "wamid.1", "expires_at": _naive_now() - timedelta(minutes=5)},
        )

        assert store.add_if_absent("wamid.1", 60) is True
        assert store.add_if_absent("wamid.1", 60) is False

    def test_purge_and_clear(self, mongodb_adapter):
        store = MongoDeduplicationStore(mongodb_adapter)
        mongodb_adapter.insert_one(
            "processed_messages",
            {"_id": "old", "expires_at": _naive_now() - timedelta(minutes=5)},
        )
        store.add_if_absent("fresh", 60)

        assert store.purge_expired() == 1
        assert store.size() == 1
        store.clear()
        assert store.size() == 0


class TestMongoOperatorRepository:
    def test_save_is_an_upsert(self, mongodb_adapter):
        repo = MongoOperatorRepository(mongodb_adapter)
        repo.save(Operator(id="op-1", name="Ana"))
        repo.save(Operator(id="op-1", name="Ana Lima", available=False))

        stored = repo.get("op-1")
        assert stored.name == "Ana Lima"
        assert stored.available is False
        assert repo.get("missing") is None

    def test_list_available_sorted_by_id(self, mongodb_adapter):
        repo = MongoOperatorRepository(mongodb_adapter)
        repo.save(Operator(id="op-z", name="Zoe"))
        repo.save(Operator(id="op-a", name="Abe", role=ActorRole.SUPERVISOR))
        repo.save(Operator(id="op-m", name="Mia", available=False))

        assert [o.id for o in repo.list_available()] == ["op-a", "op-z"]
        assert repo.get("op-a").role == ActorRole.SUPERVISOR
