"""
Reconciliation sweep: periodic, time-based transitions.

The sweep never writes a status itself. Every change it makes goes through
the same guarded transition entry points that operators use, acting as the
system actor.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from support_relay.domains import (
    Actor,
    Conversation,
    ConversationSettings,
    ConversationStatus,
    SweepReport,
    SweepSettings,
    TicketSettings,
    utcnow,
)
from support_relay.errors import (
    InvalidTransitionError,
    NotFoundError,
    RelayError,
    ReopenNotAllowedError,
)
from support_relay.services.conversation import ConversationService
from support_relay.services.deduplication import DeduplicationCache
from support_relay.services.ticket import TicketService

# Setup logger for this module
logger = logging.getLogger(__name__)

REASON_INACTIVITY = "auto_timeout_inactivity"
REASON_WAITING = "auto_timeout_waiting"
REASON_CONFIRMATION_TIMEOUT = "auto_close_confirmation_timeout"
REASON_CUSTOMER_FOLLOWUP = "customer_followup"


class ReconciliationSweep:
    """Applies inactivity timeouts, confirmation timeouts and follow-up reopens."""

    def __init__(
        self,
        conversation_service: ConversationService,
        ticket_service: TicketService,
        settings: Optional[SweepSettings] = None,
        clock: Callable[[], datetime] = utcnow,
        deduplication_cache: Optional[DeduplicationCache] = None,
    ):
        self.conversation_service = conversation_service
        self.ticket_service = ticket_service
        self.settings = settings or SweepSettings()
        self.clock = clock
        self.deduplication_cache = deduplication_cache
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def conversation_settings(self) -> ConversationSettings:
        return self.conversation_service.settings

    @property
    def ticket_settings(self) -> TicketSettings:
        return self.ticket_service.settings

    async def run_once(self) -> SweepReport:
        """Run one reconciliation pass and report what it did."""
        now = self.clock()
        report = SweepReport(started_at=now)

        await self._release_idle(
            ConversationStatus.ASSIGNED,
            timedelta(minutes=self.settings.inactivity_timeout_minutes),
            REASON_INACTIVITY,
            now,
            report,
            report.released_inactive,
        )
        await self._release_idle(
            ConversationStatus.WAITING,
            timedelta(minutes=self.settings.waiting_timeout_minutes),
            REASON_WAITING,
            now,
            report,
            report.released_waiting,
        )
        await self._close_unconfirmed(now, report)
        await self._reopen_followed_up_tickets(now, report)
        if self.deduplication_cache is not None:
            self.deduplication_cache.purge()

        self.runs += 1
        if report.total_actions or report.errors:
            logger.info(
                f"Sweep: {len(report.released_inactive)} released, "
                f"{len(report.released_waiting)} waiting released, "
                f"{len(report.auto_closed)} closed, "
                f"{len(report.reopened_tickets)} tickets reopened, "
                f"{len(report.errors)} errors"
            )
        return report

    async def _release_idle(
        self,
        status: ConversationStatus,
        threshold: timedelta,
        reason: str,
        now: datetime,
        report: SweepReport,
        released: List[str],
    ) -> None:
        for conversation in self.conversation_service.list_by_status([status]):
            if now - conversation.last_activity_at() <= threshold:
                continue
            if await self._transition(
                conversation, ConversationStatus.OPEN, reason, report
            ):
                released.append(conversation.id)

    async def _close_unconfirmed(self, now: datetime, report: SweepReport) -> None:
        confirmation = self.conversation_settings.resolution_confirmation
        if not confirmation.enabled:
            return
        cutoff = now - timedelta(minutes=confirmation.auto_close_timeout_minutes)
        for conversation in self.conversation_service.find_resolved_before(cutoff):
            if await self._transition(
                conversation, ConversationStatus.CLOSED, REASON_CONFIRMATION_TIMEOUT, report
            ):
                report.auto_closed.append(conversation.id)

    async def _transition(
        self,
        conversation: Conversation,
        status: ConversationStatus,
        reason: str,
        report: SweepReport,
    ) -> bool:
        try:
            await self.conversation_service.transition(
                conversation.id, status, Actor.system(), reason=reason)
        except InvalidTransitionError as e:
            # Somebody acted on the conversation since it was listed
            logger.info(f"Sweep skipped conversation {conversation.id}: {e}")
            return False
        except RelayError as e:
            logger.error(f"Sweep failed on conversation {conversation.id}: {e}")
            report.errors.append(f"conversation {conversation.id}: {e}")
            return False
        return True

    async def _reopen_followed_up_tickets(self, now: datetime, report: SweepReport) -> None:
        """Reopen resolved tickets whose conversation got a later customer message.

        The window is measured at the time of the customer's message, and the
        query looks back one extra sweep interval so a message sent just
        before the window ends is still seen on the next pass.
        """
        window = timedelta(hours=self.ticket_settings.auto_reopen_window_hours)
        lookback = timedelta(seconds=self.settings.interval_seconds)
        for ticket in self.ticket_service.find_followup_candidates(now - window - lookback):
            if not ticket.resolution or not ticket.conversation_id:
                continue
            try:
                conversation = self.conversation_service.get_conversation(
                    ticket.conversation_id)
            except NotFoundError:
                continue
            message_at = conversation.last_customer_message_at
            if not message_at or message_at <= ticket.resolution.resolved_at:
                continue
            try:
                await self.ticket_service.reopen(
                    ticket.id,
                    REASON_CUSTOMER_FOLLOWUP,
                    actor=Actor.system(),
                    automatic=True,
                    activity_at=message_at,
                )
            except (ReopenNotAllowedError, InvalidTransitionError) as e:
                logger.info(f"Ticket {ticket.ticket_id} not reopened: {e}")
                continue
            except RelayError as e:
                logger.error(f"Sweep failed on ticket {ticket.ticket_id}: {e}")
                report.errors.append(f"ticket {ticket.ticket_id}: {e}")
                continue
            report.reopened_tickets.append(ticket.ticket_id)

    def start(self) -> asyncio.Task:
        """Run the sweep every ``interval_seconds`` in a background task."""
        if self._task and not self._task.done():
            return self._task
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Reconciliation sweep started (every {self.settings.interval_seconds:g}s)")
        return self._task

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reconciliation sweep stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Reconciliation sweep pass failed")
            await asyncio.sleep(self.settings.interval_seconds)
