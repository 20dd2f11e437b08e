"""
Conversation domain models.

A conversation is one live chat session with one customer. Its status decides
whether inbound turns go to the assistant or to a human operator.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from support_relay.domains.actors import ActorRole
from support_relay.domains.common import UTCDateTime, utcnow


class ConversationStatus(str, Enum):
    """Status of a chat session."""
    OPEN = "open"
    ASSIGNED = "assigned"
    WAITING = "waiting"
    RESOLVED = "resolved"
    CLOSED = "closed"


OPERATOR_HELD_STATUSES = frozenset(
    {ConversationStatus.ASSIGNED, ConversationStatus.WAITING})


class ConversationTransitionRecord(BaseModel):
    """One entry in the conversation's append-only transition log."""
    from_status: ConversationStatus = Field(..., description="Previous status")
    to_status: ConversationStatus = Field(..., description="New status")
    edge: str = Field(..., description="Name of the adjacency edge used")
    changed_by: Optional[str] = Field(None, description="Actor ID")
    actor_role: ActorRole = Field(ActorRole.SYSTEM, description="Actor role")
    changed_at: UTCDateTime = Field(default_factory=utcnow)
    reason: Optional[str] = Field(None, description="Why the change happened")


class Conversation(BaseModel):
    """Live chat session with one customer."""
    id: str = Field(..., description="Unique identifier")
    customer_id: str = Field(..., description="Sender ID on the channel")
    status: ConversationStatus = Field(
        ConversationStatus.OPEN, description="Conversation status")
    assigned_operator: Optional[str] = Field(
        None, description="Operator holding the conversation")
    assigned_at: Optional[UTCDateTime] = None
    assistant_enabled: bool = Field(
        True, description="Whether the assistant answers inbound turns")

    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)
    last_message_at: Optional[UTCDateTime] = None
    last_customer_message_at: Optional[UTCDateTime] = None
    last_operator_or_assistant_message_at: Optional[UTCDateTime] = None

    resolved_at: Optional[UTCDateTime] = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolution_confirmation_sent: bool = False
    closed_at: Optional[UTCDateTime] = None

    message_count: int = Field(0, ge=0)
    reassignment_count: int = Field(0, ge=0)
    history: List[ConversationTransitionRecord] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def operator_active(self) -> bool:
        """True when a human holds the conversation and the assistant is muted."""
        return (
            self.assigned_operator is not None
            and self.status in OPERATOR_HELD_STATUSES
            and not self.assistant_enabled
        )

    def last_activity_at(self) -> datetime:
        """Latest operator or assistant message, or the moment of assignment.

        Customer messages do not count: a customer writing to a silent
        operator must not keep the conversation held.
        """
        candidates = [
            ts
            for ts in (self.last_operator_or_assistant_message_at, self.assigned_at)
            if ts is not None
        ]
        return max(candidates) if candidates else self.updated_at
