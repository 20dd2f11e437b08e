from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from support_relay.domains import Actor, Conversation, ConversationStatus, Operator


class ConversationService(ABC):
    """Interface for the guarded conversation lifecycle."""

    @abstractmethod
    def get_conversation(self, conversation_id: str) -> Conversation:
        """Read a conversation fresh from storage."""
        pass

    @abstractmethod
    async def get_or_create_for_customer(self, customer_id: str) -> Tuple[Conversation, bool]:
        """Conversation for an inbound message and whether it was just created."""
        pass

    @abstractmethod
    async def transition(
        self,
        conversation_id: str,
        new_status: ConversationStatus,
        actor: Actor,
        reason: Optional[str] = None,
        operator_id: Optional[str] = None,
    ) -> Conversation:
        """Apply a guarded status change."""
        pass

    @abstractmethod
    async def assign(
        self, conversation_id: str, operator_id: str, actor: Optional[Actor] = None,
        reason: Optional[str] = None,
    ) -> Conversation:
        """Hand a conversation to an operator."""
        pass

    @abstractmethod
    async def release(
        self, conversation_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Conversation:
        """Return a conversation to the assistant."""
        pass

    @abstractmethod
    async def resolve(
        self, conversation_id: str, actor: Actor, notes: Optional[str] = None
    ) -> Conversation:
        """Mark a conversation resolved."""
        pass

    @abstractmethod
    async def close(
        self, conversation_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Conversation:
        """Close a conversation."""
        pass

    @abstractmethod
    async def handle_resolution_confirmation(
        self, conversation_id: str, confirmed: bool
    ) -> Conversation:
        """Apply the customer's answer to the resolution prompt."""
        pass

    @abstractmethod
    async def record_customer_message(self, conversation_id: str, at: datetime) -> None:
        """Stamp inbound activity."""
        pass

    @abstractmethod
    async def record_outbound_message(self, conversation_id: str, at: datetime) -> None:
        """Stamp operator or assistant activity."""
        pass

    @abstractmethod
    def list_by_status(self, statuses: List[ConversationStatus]) -> List[Conversation]:
        """Conversations in any of the given statuses."""
        pass

    @abstractmethod
    def pick_available_operator(self) -> Optional[Operator]:
        """Least-loaded operator with spare capacity."""
        pass
