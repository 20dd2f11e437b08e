"""
Simplified client interface for the Support Relay system.

This module provides a clean API for channel webhooks, operator tools and
scripts without dealing with internal wiring.
"""

import importlib.util
import json
from datetime import datetime
from typing import Any, Dict, Optional, Union

from support_relay.domains import (
    Actor,
    Conversation,
    ConversationStatus,
    EventName,
    InboundMessage,
    SweepReport,
    Ticket,
    TicketPriority,
    TicketStatus,
    utcnow,
)
from support_relay.factories.relay_factory import SupportRelayFactory
from support_relay.interfaces.client.client import SupportRelay as SupportRelayInterface
from support_relay.interfaces.providers.channel import ChannelProvider
from support_relay.services.events import EventHandler


class SupportRelay(SupportRelayInterface):
    """Simplified client interface for the relay system."""

    def __init__(
        self,
        config_path: str = None,
        config: Dict[str, Any] = None,
        channel_provider: Optional[ChannelProvider] = None,
    ):
        """Initialize the relay from config file or dictionary.

        Args:
            config_path: Path to configuration file (JSON or Python)
            config: Configuration dictionary
            channel_provider: Optional outbound channel overriding the config
        """
        if not config and not config_path:
            raise ValueError("Either config or config_path must be provided")

        if config_path:
            with open(config_path, "r") as f:
                if config_path.endswith(".json"):
                    config = json.load(f)
                else:
                    # Assume it's a Python file
                    spec = importlib.util.spec_from_file_location("config", config_path)
                    config_module = importlib.util.module_from_spec(spec)
                    spec.loader.exec_module(config_module)
                    config = config_module.config

        self.services = SupportRelayFactory.create_from_config(
            config, channel_provider=channel_provider)

    async def receive(
        self,
        sender_id: str,
        external_message_id: str,
        text: Optional[str] = None,
        media_reference: Optional[str] = None,
        message_type: str = "text",
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """Accept one inbound delivery.

        Returns:
            False when the delivery was a duplicate and was discarded
        """
        message = InboundMessage(
            sender_id=sender_id,
            external_message_id=external_message_id,
            text=text,
            media_reference=media_reference,
            message_type=message_type,
            timestamp=timestamp or utcnow(),
        )
        return await self.services.pipeline.receive(message)

    async def create_ticket(
        self,
        customer_id: str,
        subject: str,
        description: str,
        category: str,
        priority: Union[TicketPriority, str] = TicketPriority.MEDIUM,
        conversation_id: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Ticket:
        return await self.services.ticket_service.create_ticket(
            customer_id=customer_id,
            subject=subject,
            description=description,
            category=category,
            priority=priority,
            conversation_id=conversation_id,
            actor=actor,
        )

    async def transition_conversation(
        self,
        conversation_id: str,
        new_status: Union[ConversationStatus, str],
        actor: Actor,
        reason: Optional[str] = None,
        operator_id: Optional[str] = None,
    ) -> Conversation:
        return await self.services.conversation_service.transition(
            conversation_id,
            ConversationStatus(new_status),
            actor,
            reason=reason,
            operator_id=operator_id,
        )

    async def transition_ticket(
        self,
        ticket_id: str,
        new_status: Union[TicketStatus, str],
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Ticket:
        return await self.services.ticket_service.transition(
            ticket_id, TicketStatus(new_status), actor, reason=reason)

    async def reopen_ticket(
        self, ticket_id: str, reason: str, actor: Optional[Actor] = None
    ) -> Ticket:
        return await self.services.ticket_service.reopen(ticket_id, reason, actor=actor)

    async def send_operator_reply(
        self, conversation_id: str, operator_id: str, text: str
    ) -> bool:
        """Send an operator reply to the customer; it counts as operator activity."""
        return await self.services.router.send_operator_reply(
            conversation_id, operator_id, text)

    def get_ticket(self, ticket_id: str) -> Ticket:
        return self.services.ticket_service.get_ticket(ticket_id)

    def get_conversation(self, conversation_id: str) -> Conversation:
        return self.services.conversation_service.get_conversation(conversation_id)

    def next_ticket_id(self) -> str:
        return self.services.sequence_generator.next_id()

    async def run_sweep(self) -> SweepReport:
        return await self.services.sweep.run_once()

    def subscribe(self, handler: EventHandler, name: Optional[EventName] = None) -> None:
        """Register a coroutine for change events (all events when ``name`` is None)."""
        self.services.event_bus.subscribe(handler, name)

    def start(self) -> None:
        """Start the periodic reconciliation sweep (needs a running event loop)."""
        self.services.sweep.start()

    async def stop(self) -> None:
        """Stop the sweep and dispatch whatever is still queued."""
        await self.services.sweep.stop()
        await self.services.burst_aggregator.drain()

    def stats(self) -> Dict[str, Any]:
        return {
            "deduplication": self.services.deduplication_cache.stats(),
            "burst": self.services.burst_aggregator.stats(),
            "tickets": self.services.ticket_service.get_statistics(),
            "sweep_running": self.services.sweep.running,
        }
