"""
Shared fixtures for the unit tests.

Storage-backed tests run against mongomock through the real MongoDBAdapter.
"""
from datetime import datetime, timedelta, timezone
from typing import List

import mongomock
import pytest

from support_relay.adapters.mongodb_adapter import MongoDBAdapter
from support_relay.adapters.notification_adapter import LoggingChannelProvider
from support_relay.domains import (
    ActorRole,
    ChangeEvent,
    ConversationSettings,
    Operator,
    TicketIdFormat,
    TicketSettings,
)
from support_relay.repositories import (
    MongoConversationRepository,
    MongoCounterRepository,
    MongoOperatorRepository,
    MongoTicketRepository,
)
from support_relay.services import (
    ConversationService,
    EventBus,
    SequenceGenerator,
    TicketService,
)


class FakeClock:
    """Settable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_mongodb_adapter() -> MongoDBAdapter:
    """MongoDB adapter whose client is replaced by mongomock."""
    client = mongomock.MongoClient()
    adapter = MongoDBAdapter(
        connection_string="mongodb://localhost:27017", database_name="test_db")
    # Replace the real client with the in-memory one
    adapter.client = client
    adapter.db = client["test_db"]
    return adapter


@pytest.fixture
def mongodb_adapter():
    """Fixture for a MongoDB adapter backed by mongomock."""
    return make_mongodb_adapter()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def channel():
    return LoggingChannelProvider()


@pytest.fixture
def make_adapter():
    """Factory for fresh adapters, for tests that need one per example."""
    return make_mongodb_adapter


@pytest.fixture
def recorded_events() -> List[ChangeEvent]:
    return []


@pytest.fixture
def event_bus(recorded_events):
    bus = EventBus()

    async def record(event: ChangeEvent) -> None:
        recorded_events.append(event)

    bus.subscribe(record)
    return bus


@pytest.fixture
def conversation_repository(mongodb_adapter):
    return MongoConversationRepository(mongodb_adapter)


@pytest.fixture
def ticket_repository(mongodb_adapter):
    return MongoTicketRepository(mongodb_adapter)


@pytest.fixture
def operator_repository(mongodb_adapter):
    repo = MongoOperatorRepository(mongodb_adapter)
    repo.save(Operator(id="op-ana", name="Ana"))
    repo.save(Operator(id="op-ben", name="Ben"))
    repo.save(Operator(id="sup-eva", name="Eva", role=ActorRole.SUPERVISOR))
    return repo


@pytest.fixture
def conversation_service(
    conversation_repository, operator_repository, channel, event_bus, clock
):
    return ConversationService(
        conversation_repository=conversation_repository,
        operator_repository=operator_repository,
        channel_provider=channel,
        event_bus=event_bus,
        settings=ConversationSettings(),
        clock=clock,
    )


@pytest.fixture
def sequence_generator(mongodb_adapter, clock):
    return SequenceGenerator(
        MongoCounterRepository(mongodb_adapter), TicketIdFormat(), clock=clock)


@pytest.fixture
def ticket_service(ticket_repository, sequence_generator, event_bus, channel, clock):
    return TicketService(
        ticket_repository=ticket_repository,
        sequence_generator=sequence_generator,
        event_bus=event_bus,
        settings=TicketSettings(),
        channel_provider=channel,
        clock=clock,
    )
