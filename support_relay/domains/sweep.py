from typing import List

from pydantic import BaseModel, Field

from support_relay.domains.common import UTCDateTime, utcnow


class SweepReport(BaseModel):
    """Summary of one reconciliation pass."""
    started_at: UTCDateTime = Field(default_factory=utcnow)
    released_inactive: List[str] = Field(
        default_factory=list, description="Assigned conversations returned to the assistant")
    released_waiting: List[str] = Field(
        default_factory=list, description="Idle waiting conversations returned to the assistant")
    auto_closed: List[str] = Field(
        default_factory=list, description="Resolved conversations closed after the confirmation timeout")
    reopened_tickets: List[str] = Field(
        default_factory=list, description="Tickets reopened by a customer follow-up")
    errors: List[str] = Field(default_factory=list)

    @property
    def total_actions(self) -> int:
        return (
            len(self.released_inactive)
            + len(self.released_waiting)
            + len(self.auto_closed)
            + len(self.reopened_tickets)
        )
