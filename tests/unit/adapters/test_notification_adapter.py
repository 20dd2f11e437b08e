import pytest

from support_relay.adapters.notification_adapter import (
    LoggingChannelProvider,
    NullRealtimeNotifier,
)
from support_relay.domains import ChangeEvent, EventName, InboundTurn, QueuedItem


@pytest.mark.asyncio
async def test_logging_channel_records_sends():
    channel = LoggingChannelProvider()

    assert await channel.send("cust-1", "hello", {"conversation_id": "c1"}) is True
    assert channel.sent == [
        {"recipient_id": "cust-1", "text": "hello", "metadata": {"conversation_id": "c1"}}
    ]


@pytest.mark.asyncio
async def test_logging_channel_records_forwards():
    channel = LoggingChannelProvider()
    turn = InboundTurn.combine(
        "cust-1",
        [QueuedItem(conversation_id="c1", external_message_id="m1", text="hi")],
    )

    assert await channel.forward_to_operator("op-1", turn) is True
    assert channel.forwarded[0]["operator_id"] == "op-1"
    assert channel.forwarded[0]["turn"].text == "hi"


@pytest.mark.asyncio
async def test_null_notifier_accepts_events():
    notifier = NullRealtimeNotifier()
    event = ChangeEvent(
        name=EventName.CONVERSATION_UPDATED, entity_type="conversation", entity_id="c1")
    assert await notifier.broadcast(event) is None
