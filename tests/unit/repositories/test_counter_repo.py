from unittest.mock import MagicMock

import pytest
from pymongo.errors import PyMongoError

from support_relay.errors import CounterError
from support_relay.repositories import MongoCounterRepository


def test_sequences_are_per_period(mongodb_adapter):
    repo = MongoCounterRepository(mongodb_adapter)

    assert [repo.next_sequence("2026") for _ in range(3)] == [1, 2, 3]
    assert repo.next_sequence("2027") == 1
    assert repo.current("2026") == 3
    assert repo.current("2030") == 0


def test_counter_document_layout(mongodb_adapter):
    repo = MongoCounterRepository(mongodb_adapter)
    repo.next_sequence("2026")

    doc = mongodb_adapter.find_one("ticket_counters", {"_id": "ticket_counter:2026"})
    assert doc["sequence"] == 1
    assert doc["period"] == "2026"


def test_store_failure_raises_counter_error():
    adapter = MagicMock()
    adapter.find_one_and_update.side_effect = PyMongoError("connection reset")
    repo = MongoCounterRepository(adapter)

    with pytest.raises(CounterError):
        repo.next_sequence("2026")


def test_missing_value_raises_counter_error():
    adapter = MagicMock()
    adapter.find_one_and_update.return_value = None
    repo = MongoCounterRepository(adapter)

    with pytest.raises(CounterError):
        repo.next_sequence("2026")
