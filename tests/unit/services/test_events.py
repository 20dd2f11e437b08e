from unittest.mock import AsyncMock

import pytest

from support_relay.domains import ChangeEvent, EventName
from support_relay.services import EventBus


def _event(name=EventName.TICKET_CREATED):
    return ChangeEvent(name=name, entity_type="ticket", entity_id="t1")


@pytest.mark.asyncio
async def test_handlers_filtered_by_name():
    bus = EventBus()
    created = AsyncMock()
    everything = AsyncMock()
    bus.subscribe(created, EventName.TICKET_CREATED)
    bus.subscribe(everything)

    await bus.publish(_event())
    await bus.publish(_event(EventName.TICKET_REOPENED))

    assert created.await_count == 1
    assert everything.await_count == 2
    assert bus.published == 2


@pytest.mark.asyncio
async def test_notifier_receives_every_event():
    notifier = AsyncMock()
    bus = EventBus(notifier=notifier)
    event = _event()

    await bus.publish(event)
    notifier.broadcast.assert_awaited_once_with(event)


@pytest.mark.asyncio
async def test_failures_do_not_stop_delivery():
    notifier = AsyncMock()
    notifier.broadcast.side_effect = RuntimeError("socket closed")
    bus = EventBus(notifier=notifier)
    failing = AsyncMock(side_effect=ValueError("boom"))
    healthy = AsyncMock()
    bus.subscribe(failing)
    bus.subscribe(healthy)

    await bus.publish(_event())
    healthy.assert_awaited_once()


@pytest.mark.asyncio
async def test_unsubscribe():
    bus = EventBus()
    handler = AsyncMock()
    bus.subscribe(handler)

    assert bus.unsubscribe(handler) is True
    assert bus.unsubscribe(handler) is False
    await bus.publish(_event())
    handler.assert_not_awaited()
