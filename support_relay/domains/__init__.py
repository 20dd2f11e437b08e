"""
Domain models for the Support Relay system.

This package contains all the core domain models that represent the
business objects and value types in the system.
"""

from support_relay.domains.actors import *
from support_relay.domains.common import *
from support_relay.domains.conversations import *
from support_relay.domains.events import *
from support_relay.domains.messages import *
from support_relay.domains.settings import *
from support_relay.domains.sweep import *
from support_relay.domains.tickets import *
