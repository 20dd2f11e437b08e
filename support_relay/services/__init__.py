"""
Service implementations for the Support Relay system.

These services implement the business logic interfaces defined in
support_relay.interfaces.services.
"""

from support_relay.services.burst import BurstAggregator
from support_relay.services.conversation import ConversationService
from support_relay.services.deduplication import DeduplicationCache
from support_relay.services.events import EventBus
from support_relay.services.ingress import InboundPipeline
from support_relay.services.reconciliation import ReconciliationSweep
from support_relay.services.retry import backoff_delay, retry_async
from support_relay.services.routing import AssignmentRouter
from support_relay.services.sequence import SequenceGenerator
from support_relay.services.state_machine import (
    CONVERSATION_MACHINE,
    TICKET_MACHINE,
    Edge,
    StateMachine,
)
from support_relay.services.ticket import TicketService
