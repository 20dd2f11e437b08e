"""
Ticket domain models.

These models define tickets, their audit trail and the human-readable
identifier format.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from support_relay.domains.common import UTCDateTime, utcnow


class TicketStatus(str, Enum):
    """Status of a ticket."""
    NEW = "new"
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_CUSTOMER = "pending_customer"
    WAITING_INTERNAL = "waiting_internal"
    RESOLVED = "resolved"
    CLOSED = "closed"
    CANCELLED = "cancelled"


REOPENABLE_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})
MAX_SUBJECT_LENGTH = 200


class TicketPriority(str, Enum):
    """Priority of a ticket."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class StatusHistoryEntry(BaseModel):
    """Append-only audit record of one ticket status change."""
    from_status: Optional[TicketStatus] = Field(
        None, description="Previous status (None on creation)")
    to_status: TicketStatus = Field(..., description="New status")
    edge: str = Field(..., description="Name of the adjacency edge used")
    changed_by: Optional[str] = Field(None, description="Actor ID")
    changed_at: UTCDateTime = Field(default_factory=utcnow)
    reason: Optional[str] = None


class TicketResolution(BaseModel):
    """Resolution recorded by a resolve transition."""
    summary: str = Field("", description="What was done")
    steps: List[str] = Field(default_factory=list)
    resolved_by: Optional[str] = None
    resolved_at: UTCDateTime = Field(default_factory=utcnow)


class TicketNote(BaseModel):
    """Note attached to a ticket."""
    id: str = Field("", description="Unique identifier")
    content: str = Field(..., description="Note content")
    internal: bool = Field(True, description="Hidden from the customer")
    created_by: Optional[str] = Field(None, description="ID of the creator")
    timestamp: UTCDateTime = Field(default_factory=utcnow)

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Note content cannot be empty")
        return v


class Ticket(BaseModel):
    """Trackable unit of work, optionally linked to a conversation."""
    id: str = Field(..., description="Internal unique identifier")
    ticket_id: str = Field(..., description="Human-readable identifier")
    customer_id: str = Field(..., description="Customer who raised it")
    conversation_id: Optional[str] = Field(
        None, description="Conversation linked at creation time")
    subject: str = Field(..., max_length=MAX_SUBJECT_LENGTH)
    description: str = Field(...)
    category: str = Field(..., description="Category from the allow-list")
    priority: TicketPriority = Field(TicketPriority.MEDIUM)
    status: TicketStatus = Field(TicketStatus.NEW)
    assigned_operator: Optional[str] = None

    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    resolution: Optional[TicketResolution] = None
    reopen_count: int = Field(0, ge=0)
    last_reopened_at: Optional[UTCDateTime] = None
    notes: List[TicketNote] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)
    closed_at: Optional[UTCDateTime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("subject", "description")
    @classmethod
    def not_empty(cls, v: str) -> str:
        """Validate that string fields are not empty."""
        if not v.strip():
            raise ValueError("Field cannot be empty")
        return v


class TicketIdFormat(BaseModel):
    """Layout of human-readable ticket identifiers, e.g. TKT-2026-000042."""
    prefix: str = Field("TKT", min_length=1)
    separator: str = Field("-")
    include_year: bool = Field(True)
    pad_length: int = Field(6, ge=1, le=12)

    def compose(self, period: str, sequence: int) -> str:
        padded = str(sequence).zfill(self.pad_length)
        if self.include_year:
            return f"{self.prefix}{self.separator}{period}{self.separator}{padded}"
        return f"{self.prefix}{self.separator}{padded}"
