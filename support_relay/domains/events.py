"""
Real-time change notifications broadcast on committed state changes.
"""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from support_relay.domains.common import UTCDateTime, utcnow


class EventName(str, Enum):
    """Names of the events observers can subscribe to."""
    CONVERSATION_CREATED = "conversation_created"
    CONVERSATION_UPDATED = "conversation_updated"
    TICKET_CREATED = "ticket_created"
    TICKET_STATUS_CHANGED = "ticket_status_changed"
    TICKET_REOPENED = "ticket_reopened"
    TICKET_NOTE_ADDED = "ticket_note_added"
    TICKET_ASSIGNED = "ticket_assigned"
    CUSTOMER_MESSAGE = "customer_message"
    ASSISTANT_REPLY = "assistant_reply"


class ChangeEvent(BaseModel):
    """Payload of a real-time notification."""
    name: EventName
    entity_type: str = Field(..., description="conversation or ticket")
    entity_id: str
    entity: Dict[str, Any] = Field(
        default_factory=dict, description="Updated entity as JSON")
    previous_status: Optional[str] = None
    reason: Optional[str] = None
    occurred_at: UTCDateTime = Field(default_factory=utcnow)
