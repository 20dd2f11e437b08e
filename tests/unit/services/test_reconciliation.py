"""
Tests for the reconciliation sweep.
"""
import asyncio
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from support_relay.domains import (
    Actor,
    ConversationStatus,
    SweepSettings,
    TicketStatus,
)
from support_relay.services import ReconciliationSweep
from support_relay.services.deduplication import DeduplicationCache
from support_relay.services.reconciliation import (
    REASON_CONFIRMATION_TIMEOUT,
    REASON_CUSTOMER_FOLLOWUP,
    REASON_INACTIVITY,
    REASON_WAITING,
)

AGENT = Actor.operator("op-ana")


@pytest.fixture
def sweep(conversation_service, ticket_service, clock):
    return ReconciliationSweep(conversation_service, ticket_service, SweepSettings(), clock=clock)


async def _conversation(service, customer_id="cust-1"):
    conversation, _ = await service.get_or_create_for_customer(customer_id)
    return conversation


async def _resolved_ticket(ticket_service, conversation_id, customer_id="cust-1"):
    ticket = await ticket_service.create_ticket(
        customer_id=customer_id,
        subject="Refund",
        description="Charged twice",
        category="billing",
        conversation_id=conversation_id,
    )
    await ticket_service.transition(ticket.id, TicketStatus.OPEN, AGENT)
    await ticket_service.transition(ticket.id, TicketStatus.IN_PROGRESS, AGENT)
    return await ticket_service.resolve_ticket(ticket.id, "Refunded", AGENT)


class TestInactivity:
    @pytest.mark.asyncio
    async def test_idle_assigned_conversation_is_released(
        self, sweep, conversation_service, clock
    ):
        conv = await _conversation(conversation_service)
        await conversation_service.assign(conv.id, "op-ana")

        clock.advance(minutes=16)
        report = await sweep.run_once()

        assert report.released_inactive == [conv.id]
        stored = conversation_service.get_conversation(conv.id)
        assert stored.status == ConversationStatus.OPEN
        assert stored.assigned_operator is None
        assert stored.assistant_enabled is True
        assert stored.history[-1].reason == REASON_INACTIVITY
        assert stored.history[-1].changed_by == "system"

    @pytest.mark.asyncio
    async def test_customer_messages_do_not_keep_assignment(
        self, sweep, conversation_service, clock
    ):
        conv = await _conversation(conversation_service)
        await conversation_service.assign(conv.id, "op-ana")
        for _ in range(6):
            clock.advance(minutes=10)
            await conversation_service.record_customer_message(conv.id, clock.now)

        # The operator has been silent for 65 minutes
        clock.advance(minutes=5)
        report = await sweep.run_once()

        assert report.released_inactive == [conv.id]
        stored = conversation_service.get_conversation(conv.id)
        assert stored.status == ConversationStatus.OPEN
        assert stored.assistant_enabled is True

    @pytest.mark.asyncio
    async def test_operator_reply_keeps_assignment(self, sweep, conversation_service, clock):
        conv = await _conversation(conversation_service)
        await conversation_service.assign(conv.id, "op-ana")
        clock.advance(minutes=10)
        await conversation_service.record_outbound_message(conv.id, clock.now)

        clock.advance(minutes=10)
        assert (await sweep.run_once()).released_inactive == []
        assert conversation_service.get_conversation(
            conv.id).status == ConversationStatus.ASSIGNED

        clock.advance(minutes=6)
        assert (await sweep.run_once()).released_inactive == [conv.id]


    @pytest.mark.asyncio
    async def test_exactly_at_threshold_is_not_released(self, sweep, conversation_service, clock):
        conv = await _conversation(conversation_service)
        await conversation_service.assign(conv.id, "op-ana")

        clock.advance(minutes=15)
        assert (await sweep.run_once()).released_inactive == []

    @pytest.mark.asyncio
    async def test_waiting_uses_its_own_timeout(self, sweep, conversation_service, clock):
        conv = await _conversation(conversation_service)
        await conversation_service.assign(conv.id, "op-ana")
        await conversation_service.set_waiting(conv.id, AGENT)

        clock.advance(hours=2)
        assert (await sweep.run_once()).released_waiting == []

        clock.advance(hours=11)
        report = await sweep.run_once()
        assert report.released_waiting == [conv.id]
        assert conversation_service.get_conversation(
            conv.id).history[-1].reason == REASON_WAITING


class TestConfirmationTimeout:
    @pytest.mark.asyncio
    async def test_unanswered_resolution_is_closed(self, sweep, conversation_service, clock):
        conv = await _conversation(conversation_service)
        await conversation_service.resolve(conv.id, AGENT, "done")

        clock.advance(hours=3)
        assert (await sweep.run_once()).auto_closed == []

        clock.advance(hours=2)
        report = await sweep.run_once()
        assert report.auto_closed == [conv.id]
        stored = conversation_service.get_conversation(conv.id)
        assert stored.status == ConversationStatus.CLOSED
        assert stored.history[-1].reason == REASON_CONFIRMATION_TIMEOUT


class TestTicketFollowUp:
    @pytest.mark.asyncio
    async def test_follow_up_inside_window_reopens(
        self, sweep, conversation_service, ticket_service, clock
    ):
        conv = await _conversation(conversation_service)
        ticket = await _resolved_ticket(ticket_service, conv.id)

        clock.advance(hours=20)
        await conversation_service.record_customer_message(conv.id, clock.now)
        report = await sweep.run_once()

        assert report.reopened_tickets == [ticket.ticket_id]
        stored = ticket_service.get_ticket(ticket.id)
        assert stored.status == TicketStatus.OPEN
        assert stored.reopen_count == 1
        assert stored.status_history[-1].reason == REASON_CUSTOMER_FOLLOWUP

        # A second pass finds nothing left to do
        assert (await sweep.run_once()).reopened_tickets == []

    @pytest.mark.asyncio
    async def test_follow_up_after_window_keeps_ticket_resolved(
        self, sweep, conversation_service, ticket_service, clock
    ):
        conv = await _conversation(conversation_service)
        ticket = await _resolved_ticket(ticket_service, conv.id)

        clock.advance(hours=72)
        await conversation_service.record_customer_message(conv.id, clock.now)
        report = await sweep.run_once()

        assert report.reopened_tickets == []
        stored = ticket_service.get_ticket(ticket.id)
        assert stored.status == TicketStatus.RESOLVED
        assert stored.reopen_count == 0

    @pytest.mark.asyncio
    async def test_message_just_before_window_end_is_honoured(
        self, sweep, conversation_service, ticket_service, clock
    ):
        conv = await _conversation(conversation_service)
        ticket = await _resolved_ticket(ticket_service, conv.id)

        clock.advance(hours=48)
        await conversation_service.record_customer_message(
            conv.id, clock.now - timedelta(seconds=30))
        # The pass that sees the message runs after the window has ended
        clock.advance(seconds=60)
        report = await sweep.run_once()

        assert report.reopened_tickets == [ticket.ticket_id]

    @pytest.mark.asyncio
    async def test_no_message_since_resolution(
        self, sweep, conversation_service, ticket_service, clock
    ):
        conv = await _conversation(conversation_service)
        await conversation_service.record_customer_message(conv.id, clock.now)
        clock.advance(minutes=5)
        await _resolved_ticket(ticket_service, conv.id)

        clock.advance(hours=1)
        assert (await sweep.run_once()).reopened_tickets == []

    @pytest.mark.asyncio
    async def test_unlinked_ticket_is_skipped(
        self, sweep, conversation_service, ticket_service, clock
    ):
        await _resolved_ticket(ticket_service, conversation_id=None)
        clock.advance(hours=1)
        assert (await sweep.run_once()).reopened_tickets == []


class TestBackgroundLoop:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, conversation_service, ticket_service, clock):
        sweep = ReconciliationSweep(
            conversation_service, ticket_service,
            SweepSettings(interval_seconds=0.01), clock=clock)

        task = sweep.start()
        assert sweep.start() is task
        await asyncio.sleep(0.05)
        assert sweep.running is True
        assert sweep.runs >= 1

        await sweep.stop()
        assert sweep.running is False

    @pytest.mark.asyncio
    async def test_failed_pass_does_not_stop_loop(
        self, conversation_service, ticket_service, clock
    ):
        sweep = ReconciliationSweep(
            conversation_service, ticket_service,
            SweepSettings(interval_seconds=0.01), clock=clock)
        calls = []

        async def flaky_pass():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("db down")

        sweep.run_once = flaky_pass

        sweep.start()
        await asyncio.sleep(0.05)
        await sweep.stop()
        assert len(calls) >= 2


class TestDeduplicationUpkeep:
    @pytest.mark.asyncio
    async def test_each_pass_purges_expired_message_ids(
        self, conversation_service, ticket_service, clock
    ):
        cache = MagicMock(spec=DeduplicationCache)
        sweep = ReconciliationSweep(
            conversation_service, ticket_service, SweepSettings(),
            clock=clock, deduplication_cache=cache)

        await sweep.run_once()
        await sweep.run_once()

        assert cache.purge.call_count == 2

    @pytest.mark.asyncio
    async def test_runs_without_a_cache(self, sweep):
        assert sweep.deduplication_cache is None
        assert (await sweep.run_once()).total_actions == 0
