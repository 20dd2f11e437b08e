"""
Inbound message and turn models.

An inbound message is what the channel delivers (possibly more than once).
A turn is one or more messages from the same sender merged by the burst
aggregator into a single logical unit of customer input.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from support_relay.domains.common import UTCDateTime, utcnow


class InboundMessage(BaseModel):
    """A message delivered by the channel adapter."""
    sender_id: str = Field(..., description="Customer ID on the channel")
    external_message_id: str = Field(
        ..., description="Channel-assigned message ID used for deduplication")
    text: Optional[str] = Field(None, description="Text body")
    media_reference: Optional[str] = Field(
        None, description="Reference to re-hosted media")
    message_type: str = Field("text", description="text, image, location, ...")
    timestamp: UTCDateTime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def has_content(self) -> "InboundMessage":
        if not self.text and not self.media_reference:
            raise ValueError("Inbound message needs text or a media reference")
        return self


class QueuedItem(BaseModel):
    """A pending message in a sender's burst queue."""
    conversation_id: str
    external_message_id: str
    text: Optional[str] = None
    media_reference: Optional[str] = None
    message_type: str = "text"
    received_at: UTCDateTime = Field(default_factory=utcnow)

    @classmethod
    def from_message(cls, message: InboundMessage, conversation_id: str) -> "QueuedItem":
        return cls(
            conversation_id=conversation_id,
            external_message_id=message.external_message_id,
            text=message.text,
            media_reference=message.media_reference,
            message_type=message.message_type,
            received_at=message.timestamp,
        )


class InboundTurn(BaseModel):
    """One logical unit of customer input handed to the router."""
    sender_id: str
    conversation_id: str
    text: str = Field("", description="Item texts joined in arrival order")
    items: List[QueuedItem] = Field(default_factory=list)

    @property
    def media_references(self) -> List[str]:
        return [i.media_reference for i in self.items if i.media_reference]

    @property
    def last_external_message_id(self) -> Optional[str]:
        return self.items[-1].external_message_id if self.items else None

    @classmethod
    def combine(
        cls, sender_id: str, items: List[QueuedItem], separator: str = "\n\n"
    ) -> "InboundTurn":
        """Merge a burst into one turn, joining texts in arrival order."""
        if not items:
            raise ValueError("Cannot build a turn from an empty burst")
        text = separator.join(i.text for i in items if i.text)
        # The most recent conversation wins if the sender's session changed mid-burst
        return cls(
            sender_id=sender_id,
            conversation_id=items[-1].conversation_id,
            text=text,
            items=list(items),
        )


class RoutingOutcome(str, Enum):
    """What the assignment router did with a turn."""
    FORWARDED_TO_OPERATOR = "forwarded_to_operator"
    ASSISTANT_REPLIED = "assistant_replied"
    ASSISTANT_FAILED = "assistant_failed"
    REPLY_SUPPRESSED = "reply_suppressed"
    CONFIRMATION_HANDLED = "confirmation_handled"
    IGNORED = "ignored"


class RoutingDecision(BaseModel):
    """Result of routing one turn."""
    outcome: RoutingOutcome
    conversation_id: str
    operator_id: Optional[str] = None
    reply: Optional[str] = None
    handoff_triggered: bool = False
