"""
Assignment router: decides who answers a combined customer turn.

The conversation is always re-read from storage before a decision, and read
once more before an assistant reply goes out, so an operator who claims the
conversation while the assistant is thinking is never talked over.
"""
import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional

from support_relay.domains import (
    Actor,
    AssistantSettings,
    ChangeEvent,
    Conversation,
    ConversationStatus,
    EventName,
    HandoffSettings,
    InboundTurn,
    RoutingDecision,
    RoutingOutcome,
)
from support_relay.errors import (
    InvalidTransitionError,
    NotAssignedError,
    NotFoundError,
    OperatorUnavailableError,
    TransientDownstreamError,
)
from support_relay.interfaces.providers.assistant import AssistantProvider
from support_relay.interfaces.providers.channel import ChannelProvider
from support_relay.interfaces.services.routing import (
    AssignmentRouter as AssignmentRouterInterface,
)
from support_relay.services.conversation import ConversationService
from support_relay.services.events import EventBus
from support_relay.services.retry import retry_async

# Setup logger for this module
logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s]+", re.UNICODE)


def _normalize(text: str) -> str:
    return " ".join(_NON_WORD.sub(" ", text.lower()).split())


class AssignmentRouter(AssignmentRouterInterface):
    """Routes turns to the assigned operator or to the assistant."""

    def __init__(
        self,
        conversation_service: ConversationService,
        assistant_provider: AssistantProvider,
        channel_provider: ChannelProvider,
        event_bus: EventBus,
        handoff_settings: Optional[HandoffSettings] = None,
        assistant_settings: Optional[AssistantSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.conversation_service = conversation_service
        self.assistant_provider = assistant_provider
        self.channel_provider = channel_provider
        self.event_bus = event_bus
        self.handoff_settings = handoff_settings or HandoffSettings()
        self.assistant_settings = assistant_settings or AssistantSettings()
        self.sleep = sleep

    def wants_human(self, text: str) -> bool:
        """True when the turn explicitly asks for a person."""
        normalized = f" {_normalize(text)} "
        return any(
            f" {_normalize(keyword)} " in normalized
            for keyword in self.handoff_settings.keywords
        )

    def confirmation_answer(self, text: str) -> Optional[bool]:
        """Interpret a reply to the resolution prompt (None when it is not one)."""
        normalized = _normalize(text)
        confirmation = self.conversation_service.settings.resolution_confirmation
        if normalized in confirmation.confirm_keywords:
            return True
        if normalized in confirmation.reject_keywords:
            return False
        return None

    async def route(self, turn: InboundTurn) -> RoutingDecision:
        """Route one combined turn.

        Args:
            turn: Burst of customer messages for one conversation

        Returns:
            The routing decision that was carried out
        """
        try:
            conversation = self.conversation_service.get_conversation(turn.conversation_id)
        except NotFoundError:
            logger.warning(f"Dropping turn for unknown conversation {turn.conversation_id}")
            return RoutingDecision(
                outcome=RoutingOutcome.IGNORED, conversation_id=turn.conversation_id)

        if (
            conversation.status == ConversationStatus.RESOLVED
            and conversation.resolution_confirmation_sent
        ):
            answer = self.confirmation_answer(turn.text)
            if answer is not None:
                await self.conversation_service.handle_resolution_confirmation(
                    conversation.id, answer)
                return RoutingDecision(
                    outcome=RoutingOutcome.CONFIRMATION_HANDLED,
                    conversation_id=conversation.id,
                )

        if conversation.operator_active:
            return await self._forward(conversation, conversation.assigned_operator, turn)

        if turn.text and self.wants_human(turn.text):
            decision = await self._handoff(conversation, turn)
            if decision:
                return decision
            conversation = self.conversation_service.get_conversation(conversation.id)
            if conversation.operator_active:
                return await self._forward(conversation, conversation.assigned_operator, turn)

        if not conversation.assistant_enabled:
            logger.info(
                f"Conversation {conversation.id} is {conversation.status.value} "
                f"with the assistant disabled; turn not answered"
            )
            return RoutingDecision(
                outcome=RoutingOutcome.IGNORED, conversation_id=conversation.id)

        return await self._answer_with_assistant(conversation, turn)

    async def send_operator_reply(
        self, conversation_id: str, operator_id: str, text: str
    ) -> bool:
        """Deliver an operator's reply to the customer.

        A delivered reply counts as operator activity, which keeps the
        conversation from being released as inactive.

        Raises:
            NotFoundError: Unknown conversation
            NotAssignedError: The operator does not hold the conversation
        """
        conversation = self.conversation_service.get_conversation(conversation_id)
        if not conversation.operator_active or conversation.assigned_operator != operator_id:
            raise NotAssignedError(
                f"Operator {operator_id} does not hold conversation {conversation_id}")

        delivered = await self._send(conversation, text)
        if not delivered:
            logger.error(
                f"Reply of operator {operator_id} to conversation {conversation_id} "
                f"was not delivered"
            )
        return delivered


    async def _forward(
        self,
        conversation: Conversation,
        operator_id: str,
        turn: InboundTurn,
        handoff_triggered: bool = False,
    ) -> RoutingDecision:
        delivered = await self.channel_provider.forward_to_operator(operator_id, turn)
        if not delivered:
            logger.error(
                f"Forwarding turn of conversation {conversation.id} to operator "
                f"{operator_id} failed"
            )
        else:
            logger.info(f"Forwarded turn of conversation {conversation.id} to {operator_id}")
        return RoutingDecision(
            outcome=RoutingOutcome.FORWARDED_TO_OPERATOR,
            conversation_id=conversation.id,
            operator_id=operator_id,
            handoff_triggered=handoff_triggered,
        )

    async def _handoff(
        self, conversation: Conversation, turn: InboundTurn
    ) -> Optional[RoutingDecision]:
        """Try to hand the conversation to a free operator.

        Returns None when nobody could take it; the customer has then been
        told and the assistant keeps the conversation.
        """
        operator = self.conversation_service.pick_available_operator()
        if not operator:
            logger.info(f"Handoff requested on {conversation.id} but no operator is free")
            await self._send(conversation, self.handoff_settings.no_operator_message)
            return None

        system = Actor.system()
        try:
            if conversation.status == ConversationStatus.RESOLVED:
                await self.conversation_service.transition(
                    conversation.id, ConversationStatus.OPEN, system,
                    reason="handoff_requested",
                )
            await self.conversation_service.assign(
                conversation.id, operator.id, actor=system, reason="handoff_requested")
        except (InvalidTransitionError, OperatorUnavailableError) as e:
            logger.warning(f"Handoff of conversation {conversation.id} failed: {e}")
            return None

        await self._send(conversation, self.handoff_settings.handoff_message)
        return await self._forward(conversation, operator.id, turn, handoff_triggered=True)

    async def _answer_with_assistant(
        self, conversation: Conversation, turn: InboundTurn
    ) -> RoutingDecision:
        settings = self.assistant_settings
        try:
            reply = await retry_async(
                lambda: self.assistant_provider.reply(
                    turn.text, turn.sender_id, conversation.id),
                max_attempts=settings.max_attempts,
                base_delay=settings.base_delay_seconds,
                max_delay=settings.max_delay_seconds,
                description=f"Assistant reply for conversation {conversation.id}",
                sleep=self.sleep,
            )
        except TransientDownstreamError:
            await self._send(conversation, settings.fallback_message)
            return RoutingDecision(
                outcome=RoutingOutcome.ASSISTANT_FAILED,
                conversation_id=conversation.id,
                reply=settings.fallback_message,
            )

        fresh = self.conversation_service.get_conversation(conversation.id)
        if fresh.operator_active or not fresh.assistant_enabled:
            logger.info(
                f"Operator took conversation {conversation.id} during the assistant "
                f"call; reply suppressed"
            )
            if fresh.operator_active:
                await self.channel_provider.forward_to_operator(
                    fresh.assigned_operator, turn)
            return RoutingDecision(
                outcome=RoutingOutcome.REPLY_SUPPRESSED,
                conversation_id=conversation.id,
                operator_id=fresh.assigned_operator,
                reply=reply,
            )

        if not reply:
            logger.warning(f"Assistant returned an empty reply for {conversation.id}")
            return RoutingDecision(
                outcome=RoutingOutcome.ASSISTANT_FAILED, conversation_id=conversation.id)

        await self._send(conversation, reply)
        await self.event_bus.publish(
            ChangeEvent(
                name=EventName.ASSISTANT_REPLY,
                entity_type="conversation",
                entity_id=conversation.id,
                entity={"customer_id": conversation.customer_id, "reply": reply},
            )
        )
        return RoutingDecision(
            outcome=RoutingOutcome.ASSISTANT_REPLIED,
            conversation_id=conversation.id,
            reply=reply,
        )

    async def _send(self, conversation: Conversation, text: str) -> bool:
        """Send to the customer with bounded retries; failures are logged only."""
        settings = self.assistant_settings

        async def attempt() -> bool:
            if not await self.channel_provider.send(
                conversation.customer_id, text, {"conversation_id": conversation.id}
            ):
                raise TransientDownstreamError(
                    f"Channel refused message for {conversation.customer_id}")
            return True

        try:
            await retry_async(
                attempt,
                max_attempts=settings.max_attempts,
                base_delay=settings.base_delay_seconds,
                max_delay=settings.max_delay_seconds,
                description=f"Send to {conversation.customer_id}",
                sleep=self.sleep,
            )
        except TransientDownstreamError:
            return False

        await self.conversation_service.record_outbound_message(
            conversation.id, self.conversation_service.clock())
        return True
