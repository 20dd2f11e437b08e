from typing import Any, Dict, Optional
import typer
import asyncio
import logging
import uuid
from typing_extensions import Annotated
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from support_relay.client.support_relay import SupportRelay
from support_relay.domains import Actor, ActorRole, InboundTurn, Ticket
from support_relay.errors import RelayError
from support_relay.interfaces.providers.channel import ChannelProvider

# --- Basic Logging Configuration ---
logging.basicConfig(level=logging.WARNING, format="%(levelname)s:%(name)s:%(message)s")
# --- End Logging Configuration ---

app = typer.Typer(help="Support relay maintenance commands.")
ticket_app = typer.Typer(help="Inspect and change tickets.")
app.add_typer(ticket_app, name="ticket")
console = Console()

ConfigOption = Annotated[
    str, typer.Option(help="Path to the configuration JSON or Python file.")
]


class ConsoleChannelProvider(ChannelProvider):
    """Prints outbound traffic to the terminal."""

    async def send(
        self, recipient_id: str, text: str, metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        console.print(f"[bright_blue]Relay → {recipient_id}:[/bright_blue] {text}")
        return True

    async def forward_to_operator(self, operator_id: str, turn: InboundTurn) -> bool:
        console.print(
            f"[magenta]Forwarded to operator {operator_id}:[/magenta] {turn.text}")
        return True


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log at INFO level.")
    ] = False,
):
    if verbose:
        logging.getLogger().setLevel(logging.INFO)


def _load(config: str, channel_provider: Optional[ChannelProvider] = None) -> SupportRelay:
    try:
        return SupportRelay(config_path=config, channel_provider=channel_provider)
    except FileNotFoundError:
        console.print(
            f"[bold red]Error:[/bold red] Configuration file not found at '{config}'"
        )
        raise typer.Exit(code=1)
    except ValueError as e:
        console.print(f"[bold red]Error loading configuration:[/bold red] {e}")
        raise typer.Exit(code=1)


def _actor(operator: str, role: str) -> Actor:
    try:
        return Actor(id=operator, role=ActorRole(role))
    except ValueError:
        console.print(f"[bold red]Unknown role:[/bold red] {role}")
        raise typer.Exit(code=1)


def _print_ticket(ticket: Ticket) -> None:
    console.print(
        f"[bold]{ticket.ticket_id}[/bold] [{ticket.status.value}] {ticket.subject}")
    console.print(
        f"customer={ticket.customer_id} category={ticket.category} "
        f"priority={ticket.priority.value} assigned={ticket.assigned_operator or '-'} "
        f"reopened={ticket.reopen_count}"
    )
    if ticket.resolution:
        console.print(f"resolution: {ticket.resolution.summary}")
    table = Table(title="Status history")
    table.add_column("When")
    table.add_column("From")
    table.add_column("To")
    table.add_column("By")
    table.add_column("Reason")
    for entry in ticket.status_history:
        table.add_row(
            entry.changed_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.from_status.value if entry.from_status else "-",
            entry.to_status.value,
            entry.changed_by or "-",
            entry.reason or "",
        )
    console.print(table)


@app.command("next-id")
def next_id(config: ConfigOption = "config.json"):
    """Issue one ticket identifier and print it."""
    relay = _load(config)
    console.print(relay.next_ticket_id())


@app.command()
def sweep(config: ConfigOption = "config.json"):
    """Run one reconciliation pass and print what it did."""
    relay = _load(config)
    report = asyncio.run(relay.run_sweep())

    table = Table(title=f"Sweep at {report.started_at:%Y-%m-%d %H:%M:%S} UTC")
    table.add_column("Action")
    table.add_column("Count", justify="right")
    table.add_column("IDs")
    rows = [
        ("Released (inactive)", report.released_inactive),
        ("Released (waiting)", report.released_waiting),
        ("Closed (unconfirmed)", report.auto_closed),
        ("Tickets reopened", report.reopened_tickets),
        ("Errors", report.errors),
    ]
    for label, items in rows:
        table.add_row(label, str(len(items)), ", ".join(items))
    console.print(table)


@ticket_app.command("show")
def ticket_show(ticket_id: str, config: ConfigOption = "config.json"):
    """Show a ticket and its status history."""
    relay = _load(config)
    try:
        _print_ticket(relay.get_ticket(ticket_id))
    except RelayError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)


@ticket_app.command("transition")
def ticket_transition(
    ticket_id: str,
    status: str,
    reason: Annotated[Optional[str], typer.Option(help="Reason for the change.")] = None,
    operator: Annotated[str, typer.Option(help="Acting operator ID.")] = "cli",
    role: Annotated[str, typer.Option(help="Acting role.")] = "operator",
    config: ConfigOption = "config.json",
):
    """Move a ticket to another status."""
    relay = _load(config)
    try:
        ticket = asyncio.run(
            relay.transition_ticket(ticket_id, status, _actor(operator, role), reason))
    except ValueError:
        console.print(f"[bold red]Unknown status:[/bold red] {status}")
        raise typer.Exit(code=1)
    except RelayError as e:
        console.print(f"[bold red]Rejected:[/bold red] {e}")
        raise typer.Exit(code=1)
    _print_ticket(ticket)


@ticket_app.command("reopen")
def ticket_reopen(
    ticket_id: str,
    reason: Annotated[str, typer.Option(help="Reason for reopening.")] = "reopened",
    operator: Annotated[str, typer.Option(help="Acting operator ID.")] = "cli",
    role: Annotated[str, typer.Option(help="Acting role.")] = "operator",
    config: ConfigOption = "config.json",
):
    """Reopen a resolved or closed ticket."""
    relay = _load(config)
    try:
        ticket = asyncio.run(
            relay.reopen_ticket(ticket_id, reason, _actor(operator, role)))
    except RelayError as e:
        console.print(f"[bold red]Rejected:[/bold red] {e}")
        raise typer.Exit(code=1)
    _print_ticket(ticket)


async def _simulate(relay: SupportRelay, sender_id: str) -> None:
    relay.start()
    try:
        while True:
            message = await asyncio.to_thread(
                Prompt.ask, f"[bold green]{sender_id}[/bold green]")
            if message.lower() in ["exit", "quit"]:
                break
            if not message.strip():
                continue
            await relay.receive(
                sender_id=sender_id,
                external_message_id=str(uuid.uuid4()),
                text=message,
            )
    finally:
        await relay.stop()


@app.command()
def simulate(
    sender_id: Annotated[
        str, typer.Option(help="Customer ID to send messages as.")
    ] = "cli_customer",
    config: ConfigOption = "config.json",
):
    """
    Feed typed lines through the inbound pipeline as one customer.
    Type 'exit' or 'quit' to end the session.
    """
    with console.status("[bold green]Initializing relay...", spinner="dots"):
        relay = _load(config, channel_provider=ConsoleChannelProvider())
    console.print("[green]Relay ready. Messages sent quickly are merged into one turn.[/green]")
    console.print("[dim]Type 'exit' or 'quit' to end.[/dim]")
    try:
        asyncio.run(_simulate(relay, sender_id))
    except KeyboardInterrupt:
        console.print("\n[yellow]Exiting simulation (KeyboardInterrupt).[/yellow]")


if __name__ == "__main__":
    app()
