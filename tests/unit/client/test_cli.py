from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from support_relay.cli import app
from support_relay.domains import (
    StatusHistoryEntry,
    SweepReport,
    Ticket,
    TicketStatus,
)
from support_relay.errors import InvalidTransitionError

runner = CliRunner()


@pytest.fixture
def ticket():
    return Ticket(
        id="t1",
        ticket_id="TKT-2026-000007",
        customer_id="cust-1",
        subject="Refund",
        description="Charged twice",
        category="billing",
        status=TicketStatus.OPEN,
        status_history=[
            StatusHistoryEntry(
                to_status=TicketStatus.NEW, edge="create", changed_by="assistant",
                changed_at=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)),
        ],
    )


@pytest.fixture
def relay(ticket):
    relay = MagicMock()
    relay.next_ticket_id.return_value = "TKT-2026-000008"
    relay.get_ticket.return_value = ticket
    relay.transition_ticket = AsyncMock(return_value=ticket)
    relay.run_sweep = AsyncMock(return_value=SweepReport(released_inactive=["conv-1"]))
    with patch("support_relay.cli.SupportRelay", return_value=relay):
        yield relay


def test_missing_config_file(tmp_path):
    result = runner.invoke(app, ["next-id", "--config", str(tmp_path / "nope.json")])
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_next_id(relay):
    result = runner.invoke(app, ["next-id"])
    assert result.exit_code == 0
    assert "TKT-2026-000008" in result.stdout


def test_ticket_show(relay):
    result = runner.invoke(app, ["ticket", "show", "TKT-2026-000007"])
    assert result.exit_code == 0
    assert "TKT-2026-000007" in result.stdout
    relay.get_ticket.assert_called_once_with("TKT-2026-000007")


def test_ticket_transition_rejected(relay):
    relay.transition_ticket.side_effect = InvalidTransitionError(
        "ticket", "open", "resolved", ["in_progress", "cancelled"])

    result = runner.invoke(app, ["ticket", "transition", "t1", "resolved"])
    assert result.exit_code == 1
    assert "Rejected" in result.stdout


def test_ticket_transition_with_supervisor(relay):
    result = runner.invoke(
        app, ["ticket", "transition", "t1", "in_progress",
              "--operator", "eva", "--role", "supervisor", "--reason", "picked up"])
    assert result.exit_code == 0
    actor = relay.transition_ticket.await_args.args[2]
    assert actor.id == "eva"
    assert actor.role.value == "supervisor"


def test_unknown_role(relay):
    result = runner.invoke(app, ["ticket", "reopen", "t1", "--role", "wizard"])
    assert result.exit_code == 1
    assert "Unknown role" in result.stdout


def test_sweep_prints_report(relay):
    result = runner.invoke(app, ["sweep"])
    assert result.exit_code == 0
    assert "conv-1" in result.stdout
