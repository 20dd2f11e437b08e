"""
Exception taxonomy for the Support Relay system.

Rejected transitions and business-rule violations are reported to the caller
and never fatal. Transient downstream failures are retried locally. Counter
failures abort the single operation in flight.
"""
from typing import Iterable, List, Optional


class RelayError(Exception):
    """Base class for all Support Relay errors."""


class NotFoundError(RelayError):
    """Raised when a conversation or ticket does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class InvalidTransitionError(RelayError):
    """Raised when a requested status change is not in the adjacency table."""

    def __init__(
        self,
        entity: str,
        current: str,
        requested: str,
        allowed: Iterable[str],
        detail: Optional[str] = None,
    ):
        self.entity = entity
        self.current = current
        self.requested = requested
        self.allowed: List[str] = sorted(allowed)
        message = (
            f"Cannot move {entity} from '{current}' to '{requested}'. "
            f"Allowed: {', '.join(self.allowed) or 'none'}"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class StaleStateError(InvalidTransitionError):
    """Raised when the stored status changed between read and write."""


class BusinessRuleError(RelayError):
    """Reported, non-fatal violation of a business rule."""


class ReopenNotAllowedError(BusinessRuleError):
    """Raised when a ticket cannot be reopened (status, count or window)."""


class InvalidCategoryError(BusinessRuleError):
    """Raised when a ticket category is not in the configured allow-list."""


class InvalidPriorityError(BusinessRuleError):
    """Raised when a ticket priority is unknown."""


class InvalidSubjectError(BusinessRuleError):
    """Raised when a ticket subject is empty or too long."""


class OperatorUnavailableError(BusinessRuleError):
    """Raised when an operator cannot take another conversation."""


class NotAssignedError(BusinessRuleError):
    """Raised when an operator acts on a conversation they do not hold."""


class TransientDownstreamError(RelayError):
    """Retryable failure of the assistant or the outbound channel."""


class RunConflictError(TransientDownstreamError):
    """The assistant is still busy with a previous run for this conversation."""


class CounterError(RelayError):
    """The sequence counter could not issue an identifier."""
