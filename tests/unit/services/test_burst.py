"""
Tests for the burst aggregator.

Timings are scaled down; the debounce is always several times longer than the
gap between messages of one burst.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from support_relay.adapters.memory_stores import InMemoryBurstQueueStore
from support_relay.domains import InboundTurn, QueuedItem
from support_relay.services import BurstAggregator

DEBOUNCE = 0.2


def _item(n: int, text: str, conversation_id: str = "conv-1") -> QueuedItem:
    return QueuedItem(conversation_id=conversation_id, external_message_id=f"m{n}", text=text)


class Recorder:
    def __init__(self):
        self.turns = []

    async def __call__(self, turn: InboundTurn):
        self.turns.append(turn)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def aggregator(recorder):
    return BurstAggregator(InMemoryBurstQueueStore(), recorder, debounce_seconds=DEBOUNCE)


@pytest.mark.asyncio
async def test_rapid_messages_become_one_turn(aggregator, recorder):
    await aggregator.enqueue("cust-1", _item(1, "hello"))
    await asyncio.sleep(DEBOUNCE / 4)
    await aggregator.enqueue("cust-1", _item(2, "are you there"))

    await asyncio.sleep(DEBOUNCE / 2)
    assert recorder.turns == []

    await asyncio.sleep(DEBOUNCE * 1.5)
    assert len(recorder.turns) == 1
    assert recorder.turns[0].text == "hello\n\nare you there"
    assert [i.external_message_id for i in recorder.turns[0].items] == ["m1", "m2"]


@pytest.mark.asyncio
async def test_quiet_period_splits_turns(aggregator, recorder):
    await aggregator.enqueue("cust-1", _item(1, "first"))
    await asyncio.sleep(DEBOUNCE * 2)
    await aggregator.enqueue("cust-1", _item(2, "second"))
    await asyncio.sleep(DEBOUNCE * 2)

    assert [t.text for t in recorder.turns] == ["first", "second"]


@pytest.mark.asyncio
async def test_senders_are_independent(aggregator, recorder):
    await aggregator.enqueue("cust-1", _item(1, "a"))
    await aggregator.enqueue("cust-2", _item(2, "b", "conv-2"))
    await aggregator.enqueue("cust-1", _item(3, "c"))
    await asyncio.sleep(DEBOUNCE * 2)

    by_sender = {t.sender_id: t.text for t in recorder.turns}
    assert by_sender == {"cust-1": "a\n\nc", "cust-2": "b"}


@pytest.mark.asyncio
async def test_enqueue_returns_pending_count(aggregator):
    assert await aggregator.enqueue("cust-1", _item(1, "a")) == 1
    assert await aggregator.enqueue("cust-1", _item(2, "b")) == 2
    stats = aggregator.stats()
    assert stats["pending_senders"] == 1
    assert stats["pending_items"] == 2
    assert stats["scheduled_timers"] == 1
    aggregator.clear()


@pytest.mark.asyncio
async def test_flush_dispatches_immediately(aggregator, recorder):
    await aggregator.enqueue("cust-1", _item(1, "now please"))

    turn = await aggregator.flush("cust-1")
    assert turn.text == "now please"
    assert len(recorder.turns) == 1

    # The cancelled timer must not dispatch a second time
    await asyncio.sleep(DEBOUNCE * 1.5)
    assert len(recorder.turns) == 1
    assert await aggregator.flush("cust-1") is None


@pytest.mark.asyncio
async def test_message_during_dispatch_starts_new_burst(recorder):
    release = asyncio.Event()
    seen = []

    async def slow_handler(turn):
        seen.append(turn.text)
        await release.wait()

    aggregator = BurstAggregator(
        InMemoryBurstQueueStore(), slow_handler, debounce_seconds=DEBOUNCE)
    await aggregator.enqueue("cust-1", _item(1, "one"))
    await asyncio.sleep(DEBOUNCE * 1.5)
    assert seen == ["one"]
    assert aggregator.stats()["in_flight_turns"] == 1

    await aggregator.enqueue("cust-1", _item(2, "two"))
    release.set()
    await asyncio.sleep(DEBOUNCE * 1.5)
    assert seen == ["one", "two"]


@pytest.mark.asyncio
async def test_handler_failure_is_counted(recorder):
    handler = AsyncMock(side_effect=RuntimeError("router down"))
    aggregator = BurstAggregator(InMemoryBurstQueueStore(), handler, debounce_seconds=DEBOUNCE)

    await aggregator.enqueue("cust-1", _item(1, "hi"))
    await aggregator.flush("cust-1")

    assert aggregator.stats()["failed_turns"] == 1
    assert aggregator.stats()["dispatched_turns"] == 1


@pytest.mark.asyncio
async def test_drain_flushes_everything(aggregator, recorder):
    await aggregator.enqueue("cust-1", _item(1, "a"))
    await aggregator.enqueue("cust-2", _item(2, "b", "conv-2"))

    await aggregator.drain()
    assert {t.sender_id for t in recorder.turns} == {"cust-1", "cust-2"}
    assert aggregator.stats()["scheduled_timers"] == 0


@pytest.mark.asyncio
async def test_clear_drops_pending(aggregator, recorder):
    await aggregator.enqueue("cust-1", _item(1, "a"))
    await aggregator.enqueue("cust-1", _item(2, "b"))

    assert aggregator.clear() == 2
    await asyncio.sleep(DEBOUNCE * 1.5)
    assert recorder.turns == []
