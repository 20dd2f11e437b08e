"""
Domain models for the parties that act on conversations and tickets.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ActorRole(str, Enum):
    """Role of whoever requests a state change."""
    CUSTOMER = "customer"
    ASSISTANT = "assistant"
    OPERATOR = "operator"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"
    SYSTEM = "system"


ELEVATED_ROLES = frozenset({ActorRole.SUPERVISOR, ActorRole.ADMIN})


class Actor(BaseModel):
    """Identity and role of the requester of a transition."""
    id: Optional[str] = Field(None, description="Actor identifier")
    role: ActorRole = Field(ActorRole.SYSTEM, description="Actor role")

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES

    @property
    def is_operator(self) -> bool:
        """True for any human support role."""
        return self.role in (ActorRole.OPERATOR, ActorRole.SUPERVISOR, ActorRole.ADMIN)

    @classmethod
    def system(cls) -> "Actor":
        return cls(id="system", role=ActorRole.SYSTEM)

    @classmethod
    def assistant(cls) -> "Actor":
        return cls(id="assistant", role=ActorRole.ASSISTANT)

    @classmethod
    def customer(cls, customer_id: str) -> "Actor":
        return cls(id=customer_id, role=ActorRole.CUSTOMER)

    @classmethod
    def operator(cls, operator_id: str, role: ActorRole = ActorRole.OPERATOR) -> "Actor":
        return cls(id=operator_id, role=role)


class Operator(BaseModel):
    """Human operator who can claim conversations."""
    id: str = Field(..., description="Unique operator identifier")
    name: str = Field(..., description="Display name")
    role: ActorRole = Field(ActorRole.OPERATOR, description="Operator role")
    available: bool = Field(True, description="Whether the operator takes new chats")
    max_concurrent_conversations: int = Field(
        10, description="Maximum conversations held at once", ge=1)

    @field_validator("id", "name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        """Validate that string fields are not empty."""
        if not v.strip():
            raise ValueError("Field cannot be empty")
        return v

    @field_validator("role")
    @classmethod
    def human_role(cls, v: ActorRole) -> ActorRole:
        """Operators are humans with an operator-level role."""
        if v not in (ActorRole.OPERATOR, ActorRole.SUPERVISOR, ActorRole.ADMIN):
            raise ValueError(f"Invalid operator role: {v}")
        return v

    def as_actor(self) -> Actor:
        return Actor(id=self.id, role=self.role)
