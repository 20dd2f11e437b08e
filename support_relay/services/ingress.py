"""
Inbound pipeline: deduplicate, attach to a conversation, queue for the burst.
"""
import logging

from support_relay.domains import ChangeEvent, EventName, InboundMessage, QueuedItem
from support_relay.services.burst import BurstAggregator
from support_relay.services.conversation import ConversationService
from support_relay.services.deduplication import DeduplicationCache
from support_relay.services.events import EventBus

# Setup logger for this module
logger = logging.getLogger(__name__)


class InboundPipeline:
    """Entry point for messages delivered by the channel adapter."""

    def __init__(
        self,
        deduplication_cache: DeduplicationCache,
        conversation_service: ConversationService,
        burst_aggregator: BurstAggregator,
        event_bus: EventBus,
    ):
        self.deduplication_cache = deduplication_cache
        self.conversation_service = conversation_service
        self.burst_aggregator = burst_aggregator
        self.event_bus = event_bus

    async def receive(self, message: InboundMessage) -> bool:
        """Accept one delivery.

        Returns:
            False for a duplicate delivery (silently discarded), True otherwise
        """
        if self.deduplication_cache.seen(message.external_message_id):
            return False

        conversation, created = await self.conversation_service.get_or_create_for_customer(
            message.sender_id)
        await self.conversation_service.record_customer_message(
            conversation.id, message.timestamp)

        await self.event_bus.publish(
            ChangeEvent(
                name=EventName.CUSTOMER_MESSAGE,
                entity_type="conversation",
                entity_id=conversation.id,
                entity={
                    "customer_id": message.sender_id,
                    "external_message_id": message.external_message_id,
                    "message_type": message.message_type,
                    "text": message.text,
                    "media_reference": message.media_reference,
                },
            )
        )

        await self.burst_aggregator.enqueue(
            message.sender_id, QueuedItem.from_message(message, conversation.id))
        if created:
            logger.info(f"First message from {message.sender_id} in {conversation.id}")
        return True
