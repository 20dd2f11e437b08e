from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from support_relay.domains import (
    Actor,
    Ticket,
    TicketNote,
    TicketPriority,
    TicketStatus,
)


class TicketService(ABC):
    """Interface for the ticket workflow."""

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
        """Create a ticket with a freshly issued human-readable ID."""
        pass

    @abstractmethod
    def get_ticket(self, ticket_id: str) -> Ticket:
        """Get a ticket by internal or human-readable ID."""
        pass

    @abstractmethod
    async def transition(
        self,
        ticket_id: str,
        new_status: TicketStatus,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Ticket:
        """Apply a guarded status change."""
        pass

    @abstractmethod
    async def resolve_ticket(
        self,
        ticket_id: str,
        summary: str,
        actor: Actor,
        steps: Optional[List[str]] = None,
    ) -> Ticket:
        """Resolve a ticket and record its resolution."""
        pass

    @abstractmethod
    async def reopen(
        self,
        ticket_id: str,
        reason: str,
        actor: Optional[Actor] = None,
        automatic: bool = False,
        activity_at: Optional[datetime] = None,
    ) -> Ticket:
        """Reopen a resolved or closed ticket within the configured bounds."""
        pass

    @abstractmethod
    async def add_note(
        self, ticket_id: str, content: str, actor: Actor, internal: bool = True
    ) -> TicketNote:
        """Attach a note to a ticket."""
        pass

    @abstractmethod
    async def assign_ticket(self, ticket_id: str, operator_id: str, actor: Actor) -> Ticket:
        """Assign a ticket to an operator."""
        pass

    @abstractmethod
    def list_tickets(
        self,
        customer_id: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        limit: int = 50,
    ) -> List[Ticket]:
        """List tickets, newest first."""
        pass

    @abstractmethod
    def get_statistics(self) -> Dict[str, Any]:
        """Ticket counts by status."""
        pass
