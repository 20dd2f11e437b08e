"""
Factory for creating and wiring components of the Support Relay system.

This module handles the creation and dependency injection for all
services and components used in the system.
"""

import importlib
import logging
from typing import Any, Dict, List, Optional

# Service imports
from support_relay.services.burst import BurstAggregator
from support_relay.services.conversation import ConversationService
from support_relay.services.deduplication import DeduplicationCache
from support_relay.services.events import EventBus
from support_relay.services.ingress import InboundPipeline
from support_relay.services.reconciliation import ReconciliationSweep
from support_relay.services.routing import AssignmentRouter
from support_relay.services.sequence import SequenceGenerator
from support_relay.services.ticket import TicketService

# Repository imports
from support_relay.repositories.conversation import MongoConversationRepository
from support_relay.repositories.counter import MongoCounterRepository
from support_relay.repositories.deduplication import MongoDeduplicationStore
from support_relay.repositories.operator import MongoOperatorRepository
from support_relay.repositories.ticket import MongoTicketRepository

# Adapter imports
from support_relay.adapters.memory_stores import (
    InMemoryBurstQueueStore,
    InMemoryDeduplicationStore,
)
from support_relay.adapters.mongodb_adapter import MongoDBAdapter
from support_relay.adapters.notification_adapter import (
    LoggingChannelProvider,
    NullRealtimeNotifier,
)
from support_relay.adapters.openai_adapter import OpenAIAssistantAdapter

# Domain imports
from support_relay.domains import Operator, RelaySettings
from support_relay.interfaces.providers.channel import ChannelProvider
from support_relay.interfaces.providers.realtime import RealtimeNotifier

# Setup logger for this module
logger = logging.getLogger(__name__)


class RelayServices:
    """Everything the factory wired together."""

    def __init__(
        self,
        settings: RelaySettings,
        db_adapter: MongoDBAdapter,
        channel_provider: ChannelProvider,
        event_bus: EventBus,
        deduplication_cache: DeduplicationCache,
        sequence_generator: SequenceGenerator,
        conversation_service: ConversationService,
        ticket_service: TicketService,
        router: AssignmentRouter,
        burst_aggregator: BurstAggregator,
        pipeline: InboundPipeline,
        sweep: ReconciliationSweep,
    ):
        self.settings = settings
        self.db_adapter = db_adapter
        self.channel_provider = channel_provider
        self.event_bus = event_bus
        self.deduplication_cache = deduplication_cache
        self.sequence_generator = sequence_generator
        self.conversation_service = conversation_service
        self.ticket_service = ticket_service
        self.router = router
        self.burst_aggregator = burst_aggregator
        self.pipeline = pipeline
        self.sweep = sweep


class SupportRelayFactory:
    """Factory for creating and wiring components of the Support Relay system."""

    @staticmethod
    def _load_component(component_config: Optional[Dict[str, Any]], default: Any) -> Any:
        """Instantiate ``{"class": "pkg.module.Class", "config": {...}}`` or return the default."""
        if not component_config:
            return default

        class_path = component_config.get("class")
        if not class_path:
            raise ValueError(f"Component config missing 'class': {component_config}")
        try:
            module_path, class_name = class_path.rsplit(".", 1)
            module = importlib.import_module(module_path)
            component_class = getattr(module, class_name)
        except (ImportError, AttributeError, ValueError) as e:
            logger.error(f"Error loading component class '{class_path}': {e}")
            raise ValueError(f"Cannot load component '{class_path}'") from e

        component = component_class(**component_config.get("config", {}))
        logger.info(f"Successfully loaded component: {class_path}")
        return component

    @staticmethod
    def _create_operators(operator_configs: List[Dict[str, Any]]) -> List[Operator]:
        return [Operator.model_validate(o) for o in operator_configs or []]

    @staticmethod
    def create_from_config(
        config: Dict[str, Any], channel_provider: Optional[ChannelProvider] = None
    ) -> RelayServices:
        """Create the relay system from configuration.

        Args:
            config: Configuration dictionary
            channel_provider: Overrides the configured outbound channel

        Returns:
            Wired services
        """
        # Create adapters
        if "mongo" not in config:
            raise ValueError("MongoDB configuration is required.")
        if "connection_string" not in config["mongo"]:
            raise ValueError("MongoDB connection string is required.")
        if "database" not in config["mongo"]:
            raise ValueError("MongoDB database name is required.")
        db_adapter = MongoDBAdapter(
            connection_string=config["mongo"]["connection_string"],
            database_name=config["mongo"]["database"],
        )

        # OpenAI is the only supported assistant provider
        if "openai" not in config or "api_key" not in config["openai"]:
            raise ValueError("OpenAI API key is required in config.")

        assistant_model = config["openai"].get("model")
        if assistant_model:
            logger.info(f"Using OpenAI as assistant provider with model: {assistant_model}")
        else:
            logger.info("Using OpenAI as assistant provider")

        logfire_api_key = None
        if "logfire" in config:
            if "api_key" not in config["logfire"]:
                raise ValueError("Pydantic Logfire API key is required.")
            logfire_api_key = config["logfire"]["api_key"]

        assistant = OpenAIAssistantAdapter(
            api_key=config["openai"]["api_key"],
            model=assistant_model,
            instructions=config["openai"].get("instructions"),
            logfire_api_key=logfire_api_key,
        )

        settings = RelaySettings.model_validate(config.get("relay", {}))

        if channel_provider is None:
            channel_provider = SupportRelayFactory._load_component(
                config.get("channel"), LoggingChannelProvider())
        notifier: RealtimeNotifier = SupportRelayFactory._load_component(
            config.get("notifier"), NullRealtimeNotifier())
        event_bus = EventBus(notifier=notifier)

        # Create repositories
        conversation_repository = MongoConversationRepository(db_adapter)
        ticket_repository = MongoTicketRepository(db_adapter)
        counter_repository = MongoCounterRepository(db_adapter)
        operator_repository = MongoOperatorRepository(db_adapter)

        if settings.dedup_backend == "mongo":
            dedup_store = MongoDeduplicationStore(db_adapter)
        else:
            dedup_store = InMemoryDeduplicationStore()

        # Create services
        deduplication_cache = DeduplicationCache(dedup_store, settings.dedup_ttl_seconds)
        sequence_generator = SequenceGenerator(counter_repository, settings.ticket_id)
        conversation_service = ConversationService(
            conversation_repository=conversation_repository,
            operator_repository=operator_repository,
            channel_provider=channel_provider,
            event_bus=event_bus,
            settings=settings.conversations,
        )
        ticket_service = TicketService(
            ticket_repository=ticket_repository,
            sequence_generator=sequence_generator,
            event_bus=event_bus,
            settings=settings.tickets,
            channel_provider=channel_provider,
        )

        for operator in SupportRelayFactory._create_operators(config.get("operators", [])):
            conversation_service.register_operator(operator)

        router = AssignmentRouter(
            conversation_service=conversation_service,
            assistant_provider=assistant,
            channel_provider=channel_provider,
            event_bus=event_bus,
            handoff_settings=settings.handoff,
            assistant_settings=settings.assistant,
        )
        burst_aggregator = BurstAggregator(
            store=InMemoryBurstQueueStore(),
            handler=router.route,
            debounce_seconds=settings.burst.debounce_seconds,
            separator=settings.burst.separator,
        )
        pipeline = InboundPipeline(
            deduplication_cache=deduplication_cache,
            conversation_service=conversation_service,
            burst_aggregator=burst_aggregator,
            event_bus=event_bus,
        )
        sweep = ReconciliationSweep(
            conversation_service=conversation_service,
            ticket_service=ticket_service,
            settings=settings.sweep,
            deduplication_cache=deduplication_cache,
        )

        logger.info(
            f"Support relay ready (dedup={settings.dedup_backend}, "
            f"debounce={settings.burst.debounce_seconds:g}s)"
        )
        return RelayServices(
            settings=settings,
            db_adapter=db_adapter,
            channel_provider=channel_provider,
            event_bus=event_bus,
            deduplication_cache=deduplication_cache,
            sequence_generator=sequence_generator,
            conversation_service=conversation_service,
            ticket_service=ticket_service,
            router=router,
            burst_aggregator=burst_aggregator,
            pipeline=pipeline,
            sweep=sweep,
        )
