"""
Conversation service implementation.

Every status change goes through one guarded entry point: the requested
edge is checked against the adjacency table, its side effects are computed,
and the result is written with a single-document compare-and-set on the
status that was read. Nothing else in the system writes a status.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from support_relay.domains import (
    Actor,
    ChangeEvent,
    Conversation,
    ConversationSettings,
    ConversationStatus,
    ConversationTransitionRecord,
    EventName,
    Operator,
    utcnow,
)
from support_relay.errors import (
    BusinessRuleError,
    InvalidTransitionError,
    NotFoundError,
    OperatorUnavailableError,
    StaleStateError,
)
from support_relay.interfaces.providers.channel import ChannelProvider
from support_relay.interfaces.repositories import (
    ConversationRepository,
    OperatorRepository,
)
from support_relay.interfaces.services.conversation import (
    ConversationService as ConversationServiceInterface,
)
from support_relay.services.events import EventBus
from support_relay.services.state_machine import CONVERSATION_MACHINE, StateMachine

# Setup logger for this module
logger = logging.getLogger(__name__)

_RESOLUTION_RESET = {
    "resolved_at": None,
    "resolved_by": None,
    "resolution_notes": None,
    "resolution_confirmation_sent": False,
    "closed_at": None,
}


class ConversationService(ConversationServiceInterface):
    """Service for the conversation lifecycle and operator actions."""

    def __init__(
        self,
        conversation_repository: ConversationRepository,
        operator_repository: OperatorRepository,
        channel_provider: ChannelProvider,
        event_bus: EventBus,
        settings: Optional[ConversationSettings] = None,
        clock: Callable[[], datetime] = utcnow,
        machine: StateMachine = CONVERSATION_MACHINE,
    ):
        """Initialize the conversation service.

        Args:
            conversation_repository: Storage for conversations
            operator_repository: Operator directory used for capacity checks
            channel_provider: Outbound channel for the resolution prompt
            event_bus: Receives a change event for every committed transition
            settings: Conversation settings
            clock: Source of the current time
            machine: Adjacency table of allowed transitions
        """
        self.conversation_repository = conversation_repository
        self.operator_repository = operator_repository
        self.channel_provider = channel_provider
        self.event_bus = event_bus
        self.settings = settings or ConversationSettings()
        self.clock = clock
        self.machine = machine

    def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.conversation_repository.get_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("conversation", conversation_id)
        return conversation

    async def get_or_create_for_customer(self, customer_id: str) -> Tuple[Conversation, bool]:
        """Find the conversation an inbound message belongs to.

        A closed latest conversation is reopened by the customer when that is
        enabled; otherwise a fresh conversation is started.
        """
        latest = self.conversation_repository.get_latest_for_customer(customer_id)
        if latest and latest.status != ConversationStatus.CLOSED:
            return latest, False

        if latest and self.settings.auto_reopen_closed_on_customer_message:
            try:
                reopened = await self.transition(
                    latest.id,
                    ConversationStatus.OPEN,
                    Actor.customer(customer_id),
                    reason="customer_message",
                )
                return reopened, False
            except StaleStateError:
                # Someone else reopened it first
                return self.get_conversation(latest.id), False

        now = self.clock()
        conversation = Conversation(
            id=str(uuid.uuid4()),
            customer_id=customer_id,
            created_at=now,
            updated_at=now,
        )
        self.conversation_repository.create(conversation)
        logger.info(f"Created conversation {conversation.id} for customer {customer_id}")
        await self._publish(EventName.CONVERSATION_CREATED, conversation)
        return conversation, True

    async def transition(
        self,
        conversation_id: str,
        new_status: ConversationStatus,
        actor: Actor,
        reason: Optional[str] = None,
        operator_id: Optional[str] = None,
    ) -> Conversation:
        """Apply a guarded status change.

        Args:
            conversation_id: Conversation to change
            new_status: Requested status
            actor: Who asks for the change
            reason: Free-text reason stored in the history
            operator_id: Operator to hand the conversation to (entering assigned)

        Returns:
            The conversation as stored after the change

        Raises:
            NotFoundError: Unknown conversation
            InvalidTransitionError: The change is not allowed for this actor
            StaleStateError: The status changed between read and write
            OperatorUnavailableError: The target operator cannot take it
        """
        current = self.get_conversation(conversation_id)
        edge = self.machine.resolve(current.status, new_status, actor)

        if edge.name == "customer_reopen" and not self.settings.auto_reopen_closed_on_customer_message:
            raise InvalidTransitionError(
                "conversation",
                current.status.value,
                new_status.value,
                [t.value for t in self.machine.allowed_targets(current.status, actor)],
                detail="customer reopen is disabled",
            )

        now = self.clock()
        updates = self._side_effects(current, new_status, actor, now, reason, operator_id)
        updates["status"] = new_status

        record = ConversationTransitionRecord(
            from_status=current.status,
            to_status=new_status,
            edge=edge.name,
            changed_by=actor.id,
            actor_role=actor.role,
            changed_at=now,
            reason=reason,
        )

        if not self.conversation_repository.compare_and_set(
            conversation_id, current.status, updates, record
        ):
            fresh = self.get_conversation(conversation_id)
            raise StaleStateError(
                "conversation",
                fresh.status.value,
                new_status.value,
                [t.value for t in self.machine.allowed_targets(fresh.status, actor)],
                detail=f"status changed from '{current.status.value}' concurrently",
            )

        updated = self.get_conversation(conversation_id)
        logger.info(
            f"Conversation {conversation_id}: {current.status.value} -> "
            f"{new_status.value} via {edge.name} by {actor.role.value} {actor.id}"
            + (f" ({reason})" if reason else "")
        )
        await self._publish(
            EventName.CONVERSATION_UPDATED, updated, current.status.value, reason)

        if new_status == ConversationStatus.RESOLVED:
            updated = await self._send_resolution_prompt(updated)

        return updated

    def _side_effects(
        self,
        current: Conversation,
        new_status: ConversationStatus,
        actor: Actor,
        now: datetime,
        reason: Optional[str],
        operator_id: Optional[str],
    ) -> Dict[str, Any]:
        if new_status == ConversationStatus.ASSIGNED:
            if not operator_id:
                if current.status == ConversationStatus.WAITING and current.assigned_operator:
                    operator_id = current.assigned_operator
                else:
                    raise BusinessRuleError("An operator is required to assign a conversation")
            if operator_id != current.assigned_operator:
                self._check_capacity(operator_id)
            updates: Dict[str, Any] = {
                "assigned_operator": operator_id,
                "assistant_enabled": False,
            }
            if operator_id != current.assigned_operator:
                updates["assigned_at"] = now
                if current.assigned_operator:
                    updates["reassignment_count"] = current.reassignment_count + 1
            return updates

        if new_status == ConversationStatus.WAITING:
            return {}

        if new_status == ConversationStatus.OPEN:
            updates = {
                "assigned_operator": None,
                "assigned_at": None,
                "assistant_enabled": True,
            }
            if current.status in (ConversationStatus.RESOLVED, ConversationStatus.CLOSED):
                updates.update(_RESOLUTION_RESET)
            return updates

        if new_status == ConversationStatus.RESOLVED:
            return {
                "resolved_at": now,
                "resolved_by": actor.id,
                "resolution_notes": reason,
                "resolution_confirmation_sent": False,
                "assigned_operator": None,
                "assigned_at": None,
                "assistant_enabled": True,
            }

        # closed
        return {
            "closed_at": now,
            "assigned_operator": None,
            "assigned_at": None,
            "assistant_enabled": False,
        }

    def _check_capacity(self, operator_id: str) -> Operator:
        operator = self.operator_repository.get(operator_id)
        if not operator:
            raise NotFoundError("operator", operator_id)
        if not operator.available:
            raise OperatorUnavailableError(f"Operator {operator_id} is not available")
        held = self.conversation_repository.count_held_by_operator(operator_id)
        if held >= operator.max_concurrent_conversations:
            raise OperatorUnavailableError(
                f"Operator {operator_id} already holds {held} conversations")
        return operator

    async def _send_resolution_prompt(self, conversation: Conversation) -> Conversation:
        confirmation = self.settings.resolution_confirmation
        if not confirmation.enabled:
            return conversation
        try:
            delivered = await self.channel_provider.send(
                conversation.customer_id,
                confirmation.message_template,
                {"conversation_id": conversation.id, "kind": "resolution_confirmation"},
            )
        except Exception as e:
            logger.error(
                f"Resolution prompt for conversation {conversation.id} failed: {e}")
            return conversation
        if not delivered:
            logger.warning(f"Resolution prompt for conversation {conversation.id} not delivered")
            return conversation
        self.conversation_repository.update(
            conversation.id, {"resolution_confirmation_sent": True})
        return conversation.model_copy(update={"resolution_confirmation_sent": True})

    async def assign(
        self,
        conversation_id: str,
        operator_id: str,
        actor: Optional[Actor] = None,
        reason: Optional[str] = None,
    ) -> Conversation:
        """Claim a conversation for an operator (or move it to another one)."""
        return await self.transition(
            conversation_id,
            ConversationStatus.ASSIGNED,
            actor or Actor.operator(operator_id),
            reason=reason or "assigned",
            operator_id=operator_id,
        )

    async def transfer(
        self, conversation_id: str, operator_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Conversation:
        current = self.get_conversation(conversation_id)
        if current.status != ConversationStatus.ASSIGNED:
            raise InvalidTransitionError(
                "conversation",
                current.status.value,
                ConversationStatus.ASSIGNED.value,
                [t.value for t in self.machine.allowed_targets(current.status, actor)],
                detail="only assigned conversations can be transferred",
            )
        return await self.transition(
            conversation_id,
            ConversationStatus.ASSIGNED,
            actor,
            reason=reason or f"transferred to {operator_id}",
            operator_id=operator_id,
        )

    async def set_waiting(
        self, conversation_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Conversation:
        return await self.transition(
            conversation_id, ConversationStatus.WAITING, actor, reason=reason)

    async def release(
        self, conversation_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Conversation:
        return await self.transition(
            conversation_id, ConversationStatus.OPEN, actor, reason=reason or "released")

    async def resolve(
        self, conversation_id: str, actor: Actor, notes: Optional[str] = None
    ) -> Conversation:
        return await self.transition(
            conversation_id, ConversationStatus.RESOLVED, actor, reason=notes)

    async def close(
        self, conversation_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Conversation:
        """Close a conversation; from a non-resolved status this needs an elevated role."""
        return await self.transition(
            conversation_id, ConversationStatus.CLOSED, actor, reason=reason)

    async def reopen(
        self, conversation_id: str, actor: Actor, reason: Optional[str] = None
    ) -> Conversation:
        return await self.transition(
            conversation_id, ConversationStatus.OPEN, actor, reason=reason or "reopened")

    async def handle_resolution_confirmation(
        self, conversation_id: str, confirmed: bool
    ) -> Conversation:
        """Apply the customer's yes/no answer to the resolution prompt.

        A confirmation closes the conversation when auto-close is configured;
        a rejection hands it back to the assistant.
        """
        conversation = self.get_conversation(conversation_id)
        if conversation.status != ConversationStatus.RESOLVED:
            logger.warning(
                f"Ignoring resolution answer for conversation {conversation_id} "
                f"in status {conversation.status.value}"
            )
            return conversation

        customer = Actor.customer(conversation.customer_id)
        if not confirmed:
            return await self.transition(
                conversation_id, ConversationStatus.OPEN, customer,
                reason="customer_rejected_resolution",
            )
        if self.settings.resolution_confirmation.auto_close_on_confirm:
            return await self.transition(
                conversation_id, ConversationStatus.CLOSED, customer,
                reason="customer_confirmed_resolution",
            )
        self.conversation_repository.update(
            conversation_id, {"metadata": {**conversation.metadata, "resolution_confirmed": True}})
        return self.get_conversation(conversation_id)

    async def record_customer_message(self, conversation_id: str, at: datetime) -> None:
        self.conversation_repository.record_message(conversation_id, True, at)

    async def record_outbound_message(self, conversation_id: str, at: datetime) -> None:
        self.conversation_repository.record_message(conversation_id, False, at)

    def list_by_status(self, statuses: List[ConversationStatus]) -> List[Conversation]:
        return self.conversation_repository.find_by_status(statuses)

    def find_resolved_before(self, cutoff: datetime) -> List[Conversation]:
        return self.conversation_repository.find_resolved_before(cutoff)

    def pick_available_operator(self) -> Optional[Operator]:
        """Least-loaded available operator with spare capacity (ties by ID)."""
        best: Optional[Tuple[int, str, Operator]] = None
        for operator in self.operator_repository.list_available():
            held = self.conversation_repository.count_held_by_operator(operator.id)
            if held >= operator.max_concurrent_conversations:
                continue
            key = (held, operator.id, operator)
            if best is None or key[:2] < best[:2]:
                best = key
        return best[2] if best else None

    def register_operator(self, operator: Operator) -> Operator:
        self.operator_repository.save(operator)
        logger.info(f"Registered operator {operator.id} ({operator.role.value})")
        return operator

    def set_operator_availability(self, operator_id: str, available: bool) -> Operator:
        operator = self.operator_repository.get(operator_id)
        if not operator:
            raise NotFoundError("operator", operator_id)
        operator = operator.model_copy(update={"available": available})
        self.operator_repository.save(operator)
        return operator

    async def _publish(
        self,
        name: EventName,
        conversation: Conversation,
        previous_status: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        await self.event_bus.publish(
            ChangeEvent(
                name=name,
                entity_type="conversation",
                entity_id=conversation.id,
                entity=conversation.model_dump(mode="json"),
                previous_status=previous_status,
                reason=reason,
            )
        )
