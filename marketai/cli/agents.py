"""Agent management commands for MarketAI CLI."""

import uuid
from decimal import Decimal

import click
from rich.table import Table

from marketai.cli.main import console, find_agent, get_store


PROVIDER_CHOICES = ["openai", "anthropic", "google", "deepseek", "groq", "mistral", "xai"]


@click.group()
def agents() -> None:
    """Manage trading agents.

    \b
    Examples:
      marketai agents list
      marketai agents add "Claude" --provider anthropic
      marketai agents deactivate "Claude"
    """
    pass


@agents.command("list")
@click.pass_context
def list_agents(ctx: click.Context) -> None:
    """List all agents with their balances."""
    store = get_store(ctx)
    rows = store.list_agents()

    if not rows:
        console.print("[yellow]No agents yet. Add one with 'marketai agents add'.[/yellow]")
        return

    table = Table(title="Agents")
    table.add_column("Name", style="cyan")
    table.add_column("Provider")
    table.add_column("Model")
    table.add_column("Status")
    table.add_column("Balance", justify="right")
    table.add_column("Initial", justify="right")
    table.add_column("ID", style="dim")

    for agent in rows:
        status_style = "green" if agent.is_active else "dim"
        table.add_row(
            agent.name,
            agent.provider,
            agent.model,
            f"[{status_style}]{agent.status}[/{status_style}]",
            f"{agent.current_balance:,.2f}",
            f"{agent.initial_balance:,.2f}",
            agent.id,
        )

    console.print(table)


@agents.command("add")
@click.argument("name")
@click.option("--provider", "-p", type=click.Choice(PROVIDER_CHOICES), required=True, help="AI provider.")
@click.option("--model", "-m", default=None, help="Model identifier (default: provider default).")
@click.option("--balance", "-b", type=float, default=100000.0, show_default=True, help="Starting balance.")
@click.pass_context
def add_agent(ctx: click.Context, name: str, provider: str, model: str | None, balance: float) -> None:
    """Create a new active agent."""
    from marketai.cli.main import get_config
    from marketai.models import Agent

    store = get_store(ctx)
    if store.get_agent_by_name(name) is not None:
        raise click.ClickException(f"Agent '{name}' already exists")
    if balance < 0:
        raise click.ClickException("Balance must not be negative")

    starting = Decimal(str(balance)).quantize(Decimal("0.01"))
    agent = Agent(
        id=str(uuid.uuid4()),
        name=name,
        model=model or get_config(ctx).provider(provider).model,
        provider=provider,
        initial_balance=starting,
        current_balance=starting,
    )
    store.create_agent(agent)
    console.print(f"[green]Created agent {agent.name} ({agent.provider}/{agent.model}) with {starting:,.2f} TL[/green]")


def _set_status(ctx: click.Context, name_or_id: str, status: str) -> None:
    store = get_store(ctx)
    agent = find_agent(store, name_or_id)
    store.set_agent_status(agent.id, status)
    console.print(f"Agent [cyan]{agent.name}[/cyan] is now [bold]{status}[/bold]")


@agents.command("activate")
@click.argument("agent")
@click.pass_context
def activate(ctx: click.Context, agent: str) -> None:
    """Activate an agent so the engine schedules it."""
    _set_status(ctx, agent, "active")


@agents.command("deactivate")
@click.argument("agent")
@click.pass_context
def deactivate(ctx: click.Context, agent: str) -> None:
    """Deactivate an agent; the engine skips it from the next tick."""
    _set_status(ctx, agent, "inactive")
