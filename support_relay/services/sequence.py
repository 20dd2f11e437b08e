"""
Human-readable ticket identifiers from a per-period atomic counter.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from support_relay.domains import TicketIdFormat, utcnow
from support_relay.interfaces.repositories import CounterRepository

# Setup logger for this module
logger = logging.getLogger(__name__)

# Period key used when identifiers do not carry a year
GLOBAL_PERIOD = "global"


class SequenceGenerator:
    """Issues identifiers such as ``TKT-2026-000042``.

    The counter repository's increment-and-fetch is the only coordination
    between concurrent callers; this class keeps no state of its own.
    """

    def __init__(
        self,
        counter_repository: CounterRepository,
        id_format: Optional[TicketIdFormat] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.counter_repository = counter_repository
        self.id_format = id_format or TicketIdFormat()
        self.clock = clock

    def current_period(self) -> str:
        if not self.id_format.include_year:
            return GLOBAL_PERIOD
        return str(self.clock().year)

    def next_id(self, period: Optional[str] = None) -> str:
        """Issue the next identifier for ``period`` (defaults to the current one).

        Raises:
            CounterError: The counter could not be incremented.
        """
        period = period or self.current_period()
        sequence = self.counter_repository.next_sequence(period)
        ticket_id = self.id_format.compose(period, sequence)
        logger.debug(f"Issued ticket id {ticket_id}")
        return ticket_id

    def last_issued(self, period: Optional[str] = None) -> int:
        return self.counter_repository.current(period or self.current_period())
