from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional, Union

from support_relay.domains import (
    Actor,
    Conversation,
    ConversationStatus,
    SweepReport,
    Ticket,
    TicketPriority,
    TicketStatus,
)


class SupportRelay(ABC):
    """Interface for the Support Relay client."""

    @abstractmethod
    async def receive(
        self,
        sender_id: str,
        external_message_id: str,
        text: Optional[str] = None,
        media_reference: Optional[str] = None,
        message_type: str = "text",
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """Accept one inbound delivery from the channel."""
        pass

    @abstractmethod
    async def create_ticket(
        self,
        customer_id: str,
        subject: str,
        description: str,
        category: str,
        priority: Union[TicketPriority, str] = TicketPriority.MEDIUM,
        conversation_id: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Ticket:
        """Create a ticket."""
        pass

    @abstractmethod
    async def transition_conversation(
        self,
        conversation_id: str,
        new_status: Union[ConversationStatus, str],
        actor: Actor,
        reason: Optional[str] = None,
        operator_id: Optional[str] = None,
    ) -> Conversation:
        """Apply a guarded conversation status change."""
        pass

    @abstractmethod
    async def transition_ticket(
        self,
        ticket_id: str,
        new_status: Union[TicketStatus, str],
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Ticket:
        """Apply a guarded ticket status change."""
        pass

    @abstractmethod
    async def reopen_ticket(
        self, ticket_id: str, reason: str, actor: Optional[Actor] = None
    ) -> Ticket:
        """Reopen a resolved or closed ticket."""
        pass

    @abstractmethod
    async def send_operator_reply(
        self, conversation_id: str, operator_id: str, text: str
    ) -> bool:
        """Deliver an operator reply to the customer of a held conversation."""
        pass

    @abstractmethod
    async def run_sweep(self) -> SweepReport:
        """Run one reconciliation pass."""
        pass

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        """Runtime statistics of the ephemeral stores."""
        pass
