from abc import ABC, abstractmethod

from support_relay.domains import InboundTurn, RoutingDecision


class AssignmentRouter(ABC):
    """Interface for routing combined turns to an operator or the assistant."""

    @abstractmethod
    async def route(self, turn: InboundTurn) -> RoutingDecision:
        """Route one turn.

        Args:
            turn: Combined burst of customer messages

        Returns:
            What was done with the turn
        """
        pass

    @abstractmethod
    async def send_operator_reply(
        self, conversation_id: str, operator_id: str, text: str
    ) -> bool:
        """Send an operator's reply to the customer of a held conversation."""
        pass
