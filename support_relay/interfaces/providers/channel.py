from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from support_relay.domains import InboundTurn


class ChannelProvider(ABC):
    """Interface for outbound delivery to customers and operators."""

    @abstractmethod
    async def send(
        self, recipient_id: str, text: str, metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Send a text to a customer. Returns False when delivery failed."""
        pass

    @abstractmethod
    async def forward_to_operator(self, operator_id: str, turn: InboundTurn) -> bool:
        """Relay a customer turn to the operator holding the conversation."""
        pass
