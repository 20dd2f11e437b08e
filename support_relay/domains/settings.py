"""
Runtime settings for the relay, parsed from the ``relay`` config section.

Every field has a default so an empty section yields a working setup.
"""
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator

from support_relay.domains.tickets import TicketIdFormat


class TicketCategory(BaseModel):
    """One entry of the ticket category allow-list."""
    id: str = Field(..., min_length=1)
    label: str = Field("")


class BurstSettings(BaseModel):
    debounce_seconds: float = Field(2.0, gt=0)
    separator: str = Field("\n\n")


class TicketSettings(BaseModel):
    max_reopen_count: int = Field(3, ge=0)
    auto_reopen_window_hours: float = Field(48, gt=0)
    allow_reopen_closed: bool = Field(
        True, description="Customer follow-ups may reopen closed tickets too")
    notify_customer_on_resolve: bool = Field(True)
    categories: List[TicketCategory] = Field(
        default_factory=lambda: [
            TicketCategory(id="general", label="General"),
            TicketCategory(id="billing", label="Billing"),
            TicketCategory(id="technical", label="Technical"),
            TicketCategory(id="complaint", label="Complaint"),
        ]
    )

    @field_validator("categories")
    @classmethod
    def unique_categories(cls, v: List[TicketCategory]) -> List[TicketCategory]:
        ids = [c.id for c in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Ticket category ids must be unique")
        return v

    @property
    def category_ids(self) -> List[str]:
        return [c.id for c in self.categories]


class ResolutionConfirmationSettings(BaseModel):
    enabled: bool = True
    message_template: str = "Has your issue been resolved? Reply YES or NO."
    auto_close_on_confirm: bool = True
    auto_close_timeout_minutes: float = Field(240, gt=0)
    confirm_keywords: List[str] = Field(
        default_factory=lambda: ["yes", "y", "si", "sí", "resolved", "solved"])
    reject_keywords: List[str] = Field(
        default_factory=lambda: ["no", "n", "not resolved", "not yet"])

    @field_validator("confirm_keywords", "reject_keywords")
    @classmethod
    def lowercase_keywords(cls, v: List[str]) -> List[str]:
        return [k.strip().lower() for k in v if k.strip()]


class ConversationSettings(BaseModel):
    auto_reopen_closed_on_customer_message: bool = True
    resolution_confirmation: ResolutionConfirmationSettings = Field(
        default_factory=ResolutionConfirmationSettings)


class SweepSettings(BaseModel):
    interval_seconds: float = Field(120, gt=0)
    inactivity_timeout_minutes: float = Field(15, gt=0)
    waiting_timeout_minutes: float = Field(720, gt=0)


class AssistantSettings(BaseModel):
    max_attempts: int = Field(3, ge=1)
    base_delay_seconds: float = Field(1.0, ge=0)
    max_delay_seconds: float = Field(8.0, ge=0)
    fallback_message: str = (
        "Sorry, I had a problem processing your message. Could you try again?"
    )


class HandoffSettings(BaseModel):
    keywords: List[str] = Field(
        default_factory=lambda: [
            "human",
            "operator",
            "real person",
            "talk to agent",
            "speak to an agent",
            "hablar con agente",
        ]
    )
    handoff_message: str = "I'm connecting you with a member of our team."
    no_operator_message: str = (
        "All of our team members are busy right now. I'll keep helping you "
        "in the meantime."
    )

    @field_validator("keywords")
    @classmethod
    def lowercase_keywords(cls, v: List[str]) -> List[str]:
        return [k.strip().lower() for k in v if k.strip()]


class RelaySettings(BaseModel):
    """All tunables of the relay core."""
    dedup_ttl_seconds: float = Field(60, gt=0)
    dedup_backend: Literal["memory", "mongo"] = Field(
        "memory", description="mongo shares seen IDs between workers")
    burst: BurstSettings = Field(default_factory=BurstSettings)
    ticket_id: TicketIdFormat = Field(default_factory=TicketIdFormat)
    tickets: TicketSettings = Field(default_factory=TicketSettings)
    conversations: ConversationSettings = Field(
        default_factory=ConversationSettings)
    sweep: SweepSettings = Field(default_factory=SweepSettings)
    assistant: AssistantSettings = Field(default_factory=AssistantSettings)
    handoff: HandoffSettings = Field(default_factory=HandoffSettings)
