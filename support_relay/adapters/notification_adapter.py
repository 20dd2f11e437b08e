"""
Notification adapters for the Support Relay system.

These adapters implement the outbound channel and real-time notifier
interfaces for setups without a real messaging provider.
"""
import logging
from typing import Any, Dict, List, Optional

from support_relay.domains import ChangeEvent, InboundTurn
from support_relay.interfaces.providers.channel import ChannelProvider
from support_relay.interfaces.providers.realtime import RealtimeNotifier

# Setup logger for this module
logger = logging.getLogger(__name__)


class LoggingChannelProvider(ChannelProvider):
    """Channel that only logs what would have been delivered.

    Every delivery is also kept in ``sent`` and ``forwarded`` so local runs
    and tests can inspect the traffic.
    """

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.forwarded: List[Dict[str, Any]] = []

    async def send(
        self, recipient_id: str, text: str, metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        logger.info(f"Outbound to {recipient_id}: {text[:100]}")
        self.sent.append(
            {"recipient_id": recipient_id, "text": text, "metadata": metadata or {}})
        return True

    async def forward_to_operator(self, operator_id: str, turn: InboundTurn) -> bool:
        logger.info(
            f"Forwarded turn from {turn.sender_id} to operator {operator_id} "
            f"({len(turn.items)} message(s))"
        )
        self.forwarded.append({"operator_id": operator_id, "turn": turn})
        return True


class NullRealtimeNotifier(RealtimeNotifier):
    """Null implementation of the RealtimeNotifier interface.

    This notifier satisfies the interface but doesn't push anything.
    It's useful when no observer UI is connected or when running tests.
    """

    async def broadcast(self, event: ChangeEvent) -> None:
        logger.debug(f"Event {event.name.value} for {event.entity_type} {event.entity_id}")
