from unittest.mock import MagicMock

import pytest

from support_relay.adapters.memory_stores import InMemoryDeduplicationStore
from support_relay.services import DeduplicationCache


class FakeMonotonic:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeMonotonic()


@pytest.fixture
def cache(clock):
    return DeduplicationCache(InMemoryDeduplicationStore(clock=clock), ttl_seconds=60)


def test_redelivery_is_dropped(cache):
    assert cache.seen("wamid.ABC") is False
    assert cache.seen("wamid.ABC") is True
    assert cache.seen("wamid.DEF") is False

    stats = cache.stats()
    assert stats["checked"] == 3
    assert stats["duplicates"] == 1
    assert stats["size"] == 2
    assert stats["ttl_seconds"] == 60


def test_redelivery_after_ttl_is_accepted(cache, clock):
    cache.seen("wamid.ABC")
    clock.now = 61
    assert cache.seen("wamid.ABC") is False


def test_purge_removes_expired_ids(cache, clock):
    cache.seen("a")
    clock.now = 30
    cache.seen("b")
    clock.now = 70

    assert cache.purge() == 1
    assert cache.stats()["size"] == 1
    cache.clear()
    assert cache.stats()["size"] == 0


def test_empty_id_rejected(cache):
    with pytest.raises(ValueError):
        cache.seen("")


def test_store_receives_ttl():
    store = MagicMock()
    store.add_if_absent.return_value = True
    DeduplicationCache(store, ttl_seconds=15).seen("m1")
    store.add_if_absent.assert_called_once_with("m1", 15)
