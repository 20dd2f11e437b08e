"""
Repository interfaces for data access.

These interfaces define the contracts for data access components,
allowing for different storage implementations (MongoDB, memory, etc.)
without changing the business logic.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from support_relay.domains import (
    Conversation,
    ConversationStatus,
    ConversationTransitionRecord,
    Operator,
    StatusHistoryEntry,
    Ticket,
    TicketNote,
    TicketStatus,
)


class ConversationRepository(ABC):
    """Interface for conversation data access."""

    @abstractmethod
    def create(self, conversation: Conversation) -> str:
        """Persist a new conversation and return its ID."""
        pass

    @abstractmethod
    def get_by_id(self, conversation_id: str) -> Optional[Conversation]:
        """Read a conversation fresh from storage."""
        pass

    @abstractmethod
    def get_latest_for_customer(self, customer_id: str) -> Optional[Conversation]:
        """Most recently created conversation of a customer."""
        pass

    @abstractmethod
    def compare_and_set(
        self,
        conversation_id: str,
        expected_status: ConversationStatus,
        updates: Dict[str, Any],
        record: ConversationTransitionRecord,
    ) -> bool:
        """Apply ``updates`` and append ``record`` only if the stored status still
        equals ``expected_status``. Returns False when nothing was written."""
        pass

    @abstractmethod
    def record_message(
        self, conversation_id: str, from_customer: bool, at: datetime, count: int = 1
    ) -> bool:
        """Stamp message activity timestamps and bump the message counter."""
        pass

    @abstractmethod
    def update(self, conversation_id: str, updates: Dict[str, Any]) -> bool:
        """Update non-status fields."""
        pass

    @abstractmethod
    def find_by_status(
        self, statuses: List[ConversationStatus], limit: int = 0
    ) -> List[Conversation]:
        """All conversations in any of the given statuses."""
        pass

    @abstractmethod
    def find_resolved_before(self, cutoff: datetime) -> List[Conversation]:
        """Resolved conversations whose resolution is older than ``cutoff``."""
        pass

    @abstractmethod
    def count_held_by_operator(self, operator_id: str) -> int:
        """Number of assigned or waiting conversations held by an operator."""
        pass


class TicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    def create(self, ticket: Ticket) -> str:
        """Persist a new ticket and return its internal ID."""
        pass

    @abstractmethod
    def get_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get a ticket by internal ID or human-readable ID."""
        pass

    @abstractmethod
    def compare_and_set(
        self,
        ticket_id: str,
        expected_status: TicketStatus,
        updates: Dict[str, Any],
        entry: StatusHistoryEntry,
        unset: Optional[List[str]] = None,
        increments: Optional[Dict[str, int]] = None,
    ) -> bool:
        """Apply a status change only if the stored status is still ``expected_status``."""
        pass

    @abstractmethod
    def update(self, ticket_id: str, updates: Dict[str, Any]) -> bool:
        """Update non-status fields."""
        pass

    @abstractmethod
    def add_note(self, ticket_id: str, note: TicketNote) -> bool:
        """Append a note."""
        pass

    @abstractmethod
    def find(self, query: Dict, sort_by: Optional[str] = None, limit: int = 0) -> List[Ticket]:
        """Find tickets matching query."""
        pass

    @abstractmethod
    def find_resolved_since(
        self, cutoff: datetime, statuses: List[TicketStatus], linked_only: bool = True
    ) -> List[Ticket]:
        """Tickets in ``statuses`` whose resolution happened at or after ``cutoff``."""
        pass

    @abstractmethod
    def count(self, query: Dict) -> int:
        """Count tickets matching query."""
        pass


class CounterRepository(ABC):
    """Interface for per-period sequence counters."""

    @abstractmethod
    def next_sequence(self, period: str) -> int:
        """Atomically increment the period's counter and return the new value."""
        pass

    @abstractmethod
    def current(self, period: str) -> int:
        """Last issued value for the period (0 when nothing was issued)."""
        pass


class OperatorRepository(ABC):
    """Interface for the operator directory."""

    @abstractmethod
    def get(self, operator_id: str) -> Optional[Operator]:
        """Get an operator by ID."""
        pass

    @abstractmethod
    def save(self, operator: Operator) -> bool:
        """Insert or replace an operator."""
        pass

    @abstractmethod
    def list_available(self) -> List[Operator]:
        """Operators currently accepting new conversations."""
        pass
