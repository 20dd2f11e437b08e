"""
Ticket service implementation.

This service manages support tickets and their lifecycle: creation with a
human-readable ID, guarded status changes with an append-only history,
resolution, bounded reopening, notes and assignment.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from support_relay.domains import (
    Actor,
    ChangeEvent,
    EventName,
    MAX_SUBJECT_LENGTH,
    REOPENABLE_STATUSES,
    StatusHistoryEntry,
    Ticket,
    TicketNote,
    TicketPriority,
    TicketResolution,
    TicketSettings,
    TicketStatus,
    as_utc,
    utcnow,
)
from support_relay.errors import (
    InvalidCategoryError,
    InvalidPriorityError,
    InvalidSubjectError,
    NotFoundError,
    ReopenNotAllowedError,
    StaleStateError,
)
from support_relay.interfaces.providers.channel import ChannelProvider
from support_relay.interfaces.repositories import TicketRepository
from support_relay.interfaces.services.ticket import (
    TicketService as TicketServiceInterface,
)
from support_relay.services.events import EventBus
from support_relay.services.sequence import SequenceGenerator
from support_relay.services.state_machine import TICKET_MACHINE, Edge, StateMachine

# Setup logger for this module
logger = logging.getLogger(__name__)


class TicketService(TicketServiceInterface):
    """Service for managing tickets and their lifecycle."""

    def __init__(
        self,
        ticket_repository: TicketRepository,
        sequence_generator: SequenceGenerator,
        event_bus: EventBus,
        settings: Optional[TicketSettings] = None,
        channel_provider: Optional[ChannelProvider] = None,
        clock: Callable[[], datetime] = utcnow,
        machine: StateMachine = TICKET_MACHINE,
    ):
        """Initialize the ticket service.

        Args:
            ticket_repository: Repository for ticket operations
            sequence_generator: Issues human-readable ticket IDs
            event_bus: Receives a change event for every committed change
            settings: Ticket settings (categories, reopen bounds)
            channel_provider: Used to tell the customer about a resolution
            clock: Source of the current time
            machine: Adjacency table of allowed transitions
        """
        self.ticket_repository = ticket_repository
        self.sequence_generator = sequence_generator
        self.event_bus = event_bus
        self.settings = settings or TicketSettings()
        self.channel_provider = channel_provider
        self.clock = clock
        self.machine = machine

    async def create_ticket(
        self,
        customer_id: str,
        subject: str,
        description: str,
        category: str,
        priority: Union[TicketPriority, str] = TicketPriority.MEDIUM,
        conversation_id: Optional[str] = None,
        actor: Optional[Actor] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Ticket:
        """Create a new ticket.

        The identifier is issued before anything is written, so a counter
        failure leaves no ticket behind.

        Raises:
            InvalidCategoryError: Category is not in the allow-list
            InvalidPriorityError: Unknown priority
            InvalidSubjectError: Subject empty or longer than the limit
            CounterError: No identifier could be issued
        """
        if category not in self.settings.category_ids:
            raise InvalidCategoryError(
                f"Invalid category '{category}'. "
                f"Valid categories: {', '.join(self.settings.category_ids)}"
            )
        try:
            priority = TicketPriority(priority)
        except ValueError:
            raise InvalidPriorityError(
                f"Invalid priority '{priority}'. "
                f"Valid priorities: {', '.join(p.value for p in TicketPriority)}"
            ) from None

        subject = subject.strip()
        if not subject or len(subject) > MAX_SUBJECT_LENGTH:
            raise InvalidSubjectError(
                f"Ticket subject must be 1 to {MAX_SUBJECT_LENGTH} characters, "
                f"got {len(subject)}"
            )

        actor = actor or Actor.assistant()
        ticket_id = self.sequence_generator.next_id()
        now = self.clock()

        ticket = Ticket(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            customer_id=customer_id,
            conversation_id=conversation_id,
            subject=subject,
            description=description,
            category=category,
            priority=priority,
            status=TicketStatus.NEW,
            status_history=[
                StatusHistoryEntry(
                    from_status=None,
                    to_status=TicketStatus.NEW,
                    edge="create",
                    changed_by=actor.id,
                    changed_at=now,
                    reason="created",
                )
            ],
            tags=tags or [],
            created_at=now,
            updated_at=now,
            metadata=metadata or {},
        )
        self.ticket_repository.create(ticket)
        logger.info(
            f"Created ticket {ticket_id} for customer {customer_id}"
            + (f" (conversation {conversation_id})" if conversation_id else "")
        )
        await self._publish(EventName.TICKET_CREATED, ticket)
        return ticket

    def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = self.ticket_repository.get_by_id(ticket_id)
        if not ticket:
            raise NotFoundError("ticket", ticket_id)
        return ticket

    async def transition(
        self,
        ticket_id: str,
        new_status: TicketStatus,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Ticket:
        """Apply a guarded status change.

        Moving a resolved or closed ticket back to open is a manual reopen and
        follows the reopen rules.

        Raises:
            NotFoundError: Unknown ticket
            InvalidTransitionError: The change is not in the table for this actor
            StaleStateError: The status changed between read and write
            ReopenNotAllowedError: Reopen limit reached
        """
        ticket = self.get_ticket(ticket_id)
        if ticket.status in REOPENABLE_STATUSES and new_status == TicketStatus.OPEN:
            return await self.reopen(ticket.id, reason or "reopened", actor=actor)

        edge = self.machine.resolve(ticket.status, new_status, actor)
        resolution = None
        if new_status == TicketStatus.RESOLVED:
            resolution = TicketResolution(
                summary=reason or "", resolved_by=actor.id, resolved_at=self.clock())
        return await self._apply(ticket, edge, new_status, actor, reason, resolution)

    async def resolve_ticket(
        self,
        ticket_id: str,
        summary: str,
        actor: Actor,
        steps: Optional[List[str]] = None,
    ) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        edge = self.machine.resolve(ticket.status, TicketStatus.RESOLVED, actor)
        resolution = TicketResolution(
            summary=summary,
            steps=steps or [],
            resolved_by=actor.id,
            resolved_at=self.clock(),
        )
        return await self._apply(
            ticket, edge, TicketStatus.RESOLVED, actor, summary, resolution)

    async def _apply(
        self,
        ticket: Ticket,
        edge: Edge,
        new_status: TicketStatus,
        actor: Actor,
        reason: Optional[str],
        resolution: Optional[TicketResolution] = None,
    ) -> Ticket:
        now = self.clock()
        updates: Dict[str, Any] = {"status": new_status}
        if resolution is not None:
            updates["resolution"] = resolution
        if new_status == TicketStatus.CLOSED:
            updates["closed_at"] = now
        if (
            new_status in (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED)
            and not ticket.assigned_operator
            and actor.is_operator
        ):
            updates["assigned_operator"] = actor.id

        entry = StatusHistoryEntry(
            from_status=ticket.status,
            to_status=new_status,
            edge=edge.name,
            changed_by=actor.id,
            changed_at=now,
            reason=reason,
        )
        if not self.ticket_repository.compare_and_set(ticket.id, ticket.status, updates, entry):
            self._raise_stale(ticket, new_status, actor)

        updated = self.get_ticket(ticket.id)
        logger.info(
            f"Ticket {ticket.ticket_id}: {ticket.status.value} -> {new_status.value} "
            f"via {edge.name} by {actor.role.value} {actor.id}"
        )
        await self._publish(
            EventName.TICKET_STATUS_CHANGED, updated, ticket.status.value, reason)

        if new_status == TicketStatus.RESOLVED:
            await self._notify_resolution(updated)
        return updated

    async def reopen(
        self,
        ticket_id: str,
        reason: str,
        actor: Optional[Actor] = None,
        automatic: bool = False,
        activity_at: Optional[datetime] = None,
    ) -> Ticket:
        """Reopen a resolved or closed ticket.

        Args:
            ticket_id: Internal or human-readable ID
            reason: Stored in the status history
            actor: Who reopens; defaults to the system
            automatic: True for customer follow-up reopens, which must fall
                inside the auto-reopen window
            activity_at: Time of the customer activity that triggered an
                automatic reopen; defaults to now

        Raises:
            ReopenNotAllowedError: Wrong status, limit reached or window expired
        """
        actor = actor or Actor.system()
        ticket = self.get_ticket(ticket_id)
        self._check_reopen(ticket, automatic, activity_at)
        edge = self.machine.resolve(ticket.status, TicketStatus.OPEN, actor)

        now = self.clock()
        entry = StatusHistoryEntry(
            from_status=ticket.status,
            to_status=TicketStatus.OPEN,
            edge=edge.name,
            changed_by=actor.id,
            changed_at=now,
            reason=reason,
        )
        if not self.ticket_repository.compare_and_set(
            ticket.id,
            ticket.status,
            {"status": TicketStatus.OPEN, "last_reopened_at": now},
            entry,
            unset=["resolution", "closed_at"],
            increments={"reopen_count": 1},
        ):
            self._raise_stale(ticket, TicketStatus.OPEN, actor)

        updated = self.get_ticket(ticket.id)
        logger.info(
            f"Ticket {ticket.ticket_id} reopened ({reason}), "
            f"reopen {updated.reopen_count}/{self.settings.max_reopen_count}"
        )
        await self._publish(EventName.TICKET_REOPENED, updated, ticket.status.value, reason)
        return updated

    def can_reopen(
        self, ticket: Ticket, automatic: bool = False, activity_at: Optional[datetime] = None
    ) -> bool:
        try:
            self._check_reopen(ticket, automatic, activity_at)
        except ReopenNotAllowedError:
            return False
        return True

    def _check_reopen(
        self, ticket: Ticket, automatic: bool, activity_at: Optional[datetime]
    ) -> None:
        if ticket.status not in REOPENABLE_STATUSES:
            raise ReopenNotAllowedError(
                f"Ticket {ticket.ticket_id} is {ticket.status.value}; "
                f"only resolved or closed tickets can be reopened"
            )
        if ticket.reopen_count >= self.settings.max_reopen_count:
            raise ReopenNotAllowedError(
                f"Ticket {ticket.ticket_id} reached the maximum of "
                f"{self.settings.max_reopen_count} reopens"
            )
        if not automatic:
            return

        if ticket.status == TicketStatus.CLOSED and not self.settings.allow_reopen_closed:
            raise ReopenNotAllowedError(
                f"Ticket {ticket.ticket_id} is closed and cannot be reopened automatically")
        resolved_at = (
            ticket.resolution.resolved_at if ticket.resolution
            else ticket.closed_at or ticket.updated_at
        )
        at = as_utc(activity_at) if activity_at else self.clock()
        window = timedelta(hours=self.settings.auto_reopen_window_hours)
        if at - resolved_at > window:
            raise ReopenNotAllowedError(
                f"Ticket {ticket.ticket_id} was resolved more than "
                f"{self.settings.auto_reopen_window_hours:g}h before the follow-up"
            )

    def _raise_stale(self, ticket: Ticket, requested: TicketStatus, actor: Actor) -> None:
        fresh = self.get_ticket(ticket.id)
        raise StaleStateError(
            "ticket",
            fresh.status.value,
            requested.value,
            [t.value for t in self.machine.allowed_targets(fresh.status, actor)],
            detail=f"status changed from '{ticket.status.value}' concurrently",
        )

    async def _notify_resolution(self, ticket: Ticket) -> None:
        if not self.settings.notify_customer_on_resolve or not self.channel_provider:
            return
        summary = ticket.resolution.summary if ticket.resolution else ""
        text = f"Your ticket {ticket.ticket_id} has been resolved."
        if summary:
            text = f"{text}\n\n{summary}"
        try:
            await self.channel_provider.send(
                ticket.customer_id, text, {"ticket_id": ticket.ticket_id})
        except Exception as e:
            logger.error(f"Resolution notice for ticket {ticket.ticket_id} failed: {e}")

    async def add_note(
        self, ticket_id: str, content: str, actor: Actor, internal: bool = True
    ) -> TicketNote:
        ticket = self.get_ticket(ticket_id)
        note = TicketNote(
            id=str(uuid.uuid4()),
            content=content,
            internal=internal,
            created_by=actor.id,
            timestamp=self.clock(),
        )
        self.ticket_repository.add_note(ticket.id, note)
        await self._publish(EventName.TICKET_NOTE_ADDED, self.get_ticket(ticket.id))
        return note

    async def assign_ticket(self, ticket_id: str, operator_id: str, actor: Actor) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        self.ticket_repository.update(ticket.id, {"assigned_operator": operator_id})
        logger.info(f"Ticket {ticket.ticket_id} assigned to {operator_id} by {actor.id}")
        updated = self.get_ticket(ticket.id)
        await self._publish(EventName.TICKET_ASSIGNED, updated)
        return updated

    def list_tickets(
        self,
        customer_id: Optional[str] = None,
        status: Optional[TicketStatus] = None,
        limit: int = 50,
    ) -> List[Ticket]:
        query: Dict[str, Any] = {}
        if customer_id:
            query["customer_id"] = customer_id
        if status:
            query["status"] = status
        return self.ticket_repository.find(query, sort_by="-created_at", limit=limit)

    def find_recent_resolved_ticket(
        self, customer_id: str, within_hours: Optional[float] = None
    ) -> Optional[Ticket]:
        """Most recently resolved ticket of a customer inside the reopen window."""
        hours = within_hours or self.settings.auto_reopen_window_hours
        cutoff = self.clock() - timedelta(hours=hours)
        tickets = self.ticket_repository.find(
            {
                "customer_id": customer_id,
                "status": {"$in": sorted(s.value for s in REOPENABLE_STATUSES)},
                "resolution.resolved_at": {"$gte": cutoff},
            },
            sort_by="-resolution.resolved_at",
            limit=1,
        )
        return tickets[0] if tickets else None

    def find_followup_candidates(self, cutoff: datetime) -> List[Ticket]:
        """Linked tickets resolved since ``cutoff`` that a follow-up could reopen."""
        statuses = [TicketStatus.RESOLVED]
        if self.settings.allow_reopen_closed:
            statuses.append(TicketStatus.CLOSED)
        return self.ticket_repository.find_resolved_since(cutoff, statuses)

    def get_statistics(self) -> Dict[str, Any]:
        by_status = {
            status.value: self.ticket_repository.count({"status": status})
            for status in TicketStatus
        }
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "open": sum(
                by_status[s.value] for s in TicketStatus
                if s not in (TicketStatus.RESOLVED, TicketStatus.CLOSED, TicketStatus.CANCELLED)
            ),
        }

    async def _publish(
        self,
        name: EventName,
        ticket: Ticket,
        previous_status: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        await self.event_bus.publish(
            ChangeEvent(
                name=name,
                entity_type="ticket",
                entity_id=ticket.id,
                entity=ticket.model_dump(mode="json"),
                previous_status=previous_status,
                reason=reason,
            )
        )
