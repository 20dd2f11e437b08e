"""
Repository implementations for data access.

This package contains repository implementations that provide
data access capabilities for the domain models.
"""

from support_relay.repositories.conversation import *
from support_relay.repositories.counter import *
from support_relay.repositories.deduplication import *
from support_relay.repositories.operator import *
from support_relay.repositories.ticket import *
