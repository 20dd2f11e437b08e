"""
Support Relay - routing core for customer chat with assistant and operator handoff.

This package deduplicates and merges inbound chat messages, routes each turn
to an automated assistant or a human operator, and runs the guarded
conversation and ticket lifecycles with a periodic reconciliation sweep.
"""

# Client interface (main entry point)
from support_relay.client.support_relay import SupportRelay

# Factory for creating relay systems
from support_relay.factories.relay_factory import RelayServices, SupportRelayFactory

# Useful types
from support_relay.domains import Actor, ActorRole, RelaySettings
from support_relay.errors import (
    BusinessRuleError,
    InvalidTransitionError,
    RelayError,
    ReopenNotAllowedError,
)

# Package metadata
__all__ = [
    # Main client interfaces
    "SupportRelay",
    # Factories
    "SupportRelayFactory",
    "RelayServices",
    # Types
    "Actor",
    "ActorRole",
    "RelaySettings",
    # Errors
    "RelayError",
    "InvalidTransitionError",
    "BusinessRuleError",
    "ReopenNotAllowedError",
]
