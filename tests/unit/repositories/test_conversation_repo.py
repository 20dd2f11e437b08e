"""
Tests for the MongoDB conversation repository.
"""
from datetime import datetime, timedelta, timezone

import pytest

from support_relay.domains import (
    Conversation,
    ConversationStatus,
    ConversationTransitionRecord,
)
from support_relay.repositories import MongoConversationRepository

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _record(from_status, to_status, edge="assign"):
    return ConversationTransitionRecord(
        from_status=from_status, to_status=to_status, edge=edge,
        changed_by="op-ana", changed_at=T0)


@pytest.fixture
def repo(mongodb_adapter):
    return MongoConversationRepository(mongodb_adapter)


def test_create_and_read_back(repo):
    conv = Conversation(id="c1", customer_id="cust-1", created_at=T0, updated_at=T0)
    assert repo.create(conv) == "c1"

    stored = repo.get_by_id("c1")
    assert stored.status == ConversationStatus.OPEN
    assert stored.created_at == T0
    assert stored.created_at.tzinfo == timezone.utc
    assert repo.get_by_id("missing") is None


def test_latest_for_customer(repo):
    repo.create(Conversation(id="old", customer_id="cust-1", created_at=T0))
    repo.create(Conversation(
        id="new", customer_id="cust-1", created_at=T0 + timedelta(hours=1)))
    repo.create(Conversation(id="other", customer_id="cust-2", created_at=T0))

    assert repo.get_latest_for_customer("cust-1").id == "new"
    assert repo.get_latest_for_customer("nobody") is None


def test_compare_and_set_applies_once(repo):
    repo.create(Conversation(id="c1", customer_id="cust-1"))
    record = _record(ConversationStatus.OPEN, ConversationStatus.ASSIGNED)
    updates = {
        "status": ConversationStatus.ASSIGNED,
        "assigned_operator": "op-ana",
        "assistant_enabled": False,
    }

    assert repo.compare_and_set("c1", ConversationStatus.OPEN, updates, record) is True
    assert repo.compare_and_set("c1", ConversationStatus.OPEN, updates, record) is False

    stored = repo.get_by_id("c1")
    assert stored.status == ConversationStatus.ASSIGNED
    assert stored.assigned_operator == "op-ana"
    assert len(stored.history) == 1
    assert stored.history[0].edge == "assign"


def test_record_message_updates_timestamps_and_count(repo):
    repo.create(Conversation(id="c1", customer_id="cust-1"))

    repo.record_message("c1", from_customer=True, at=T0)
    repo.record_message("c1", from_customer=False, at=T0 + timedelta(minutes=1), count=2)

    stored = repo.get_by_id("c1")
    assert stored.message_count == 3
    assert stored.last_customer_message_at == T0
    assert stored.last_operator_or_assistant_message_at == T0 + timedelta(minutes=1)
    assert stored.last_message_at == T0 + timedelta(minutes=1)


def test_update_refuses_status_changes(repo):
    repo.create(Conversation(id="c1", customer_id="cust-1"))
    with pytest.raises(ValueError):
        repo.update("c1", {"status": ConversationStatus.CLOSED})

    assert repo.update("c1", {"metadata": {"channel": "whatsapp"}}) is True
    assert repo.get_by_id("c1").metadata == {"channel": "whatsapp"}


def test_status_queries(repo):
    repo.create(Conversation(id="a", customer_id="1", status=ConversationStatus.ASSIGNED,
                             assigned_operator="op-ana", assistant_enabled=False))
    repo.create(Conversation(id="w", customer_id="2", status=ConversationStatus.WAITING,
                             assigned_operator="op-ana", assistant_enabled=False))
    repo.create(Conversation(id="r1", customer_id="3", status=ConversationStatus.RESOLVED,
                             resolved_at=T0))
    repo.create(Conversation(id="r2", customer_id="4", status=ConversationStatus.RESOLVED,
                             resolved_at=T0 + timedelta(hours=5)))

    held = repo.find_by_status([ConversationStatus.ASSIGNED, ConversationStatus.WAITING])
    assert {c.id for c in held} == {"a", "w"}
    assert repo.count_held_by_operator("op-ana") == 2
    assert repo.count_held_by_operator("op-ben") == 0

    old = repo.find_resolved_before(T0 + timedelta(hours=1))
    assert [c.id for c in old] == ["r1"]
