"""Portfolio commands for MarketAI CLI.

Handles portfolio summaries, the trade log and the decision log.
"""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from marketai.cli.main import console, find_agent, get_store


OUTCOME_STYLES = {
    "executed": "green",
    "hold": "dim",
    "rejected": "yellow",
    "failed": "red",
    "pending": "blue",
}


def _pnl_style(value) -> str:
    return "green" if value >= 0 else "red"


@click.command()
@click.argument("agent")
@click.pass_context
def portfolio(ctx: click.Context, agent: str) -> None:
    """Show an agent's balance, holdings and P/L.

    AGENT is the agent's name or ID.

    \b
    Examples:
      marketai portfolio "GPT-4o"
    """
    store = get_store(ctx)
    found = find_agent(store, agent)
    summary = store.get_portfolio_summary(found.id)

    style = _pnl_style(summary.total_profit_loss)
    console.print(Panel(
        f"Cash: [cyan]{summary.current_balance:,.2f} TL[/cyan]\n"
        f"Positions: [cyan]{summary.portfolio_value:,.2f} TL[/cyan]\n"
        f"Total: [bold]{summary.total_value:,.2f} TL[/bold]\n"
        f"P/L: [{style}]{summary.total_profit_loss:+,.2f} TL "
        f"({summary.profit_loss_percent:+.2f}%)[/{style}]",
        title=f"{summary.agent_name} ({found.provider}/{found.model})",
        border_style="blue",
    ))

    if not summary.holdings:
        console.print("[dim]No open positions[/dim]")
        return

    table = Table(title="Holdings")
    table.add_column("Symbol", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Avg Price", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P/L", justify="right")

    for h in summary.holdings:
        style = _pnl_style(h.profit_loss)
        table.add_row(
            h.symbol,
            str(h.quantity),
            f"{h.avg_buy_price:,.2f}",
            f"{h.current_price:,.2f}",
            f"{h.current_value:,.2f}",
            f"[{style}]{h.profit_loss:+,.2f} ({h.profit_loss_percent:+.2f}%)[/{style}]",
        )

    console.print(table)


@click.command()
@click.option("--agent", "-a", default=None, help="Only show this agent's trades (name or ID).")
@click.option("--limit", "-n", type=int, default=20, show_default=True, help="Number of trades.")
@click.pass_context
def trades(ctx: click.Context, agent: Optional[str], limit: int) -> None:
    """Show the most recent trades."""
    store = get_store(ctx)
    agent_id = find_agent(store, agent).id if agent else None
    names = {a.id: a.name for a in store.list_agents()}
    rows = store.get_trades(agent_id=agent_id, limit=limit)

    if not rows:
        console.print("[yellow]No trades yet[/yellow]")
        return

    table = Table(title="Trades")
    table.add_column("Time", style="dim")
    table.add_column("Agent", style="cyan")
    table.add_column("Side")
    table.add_column("Symbol")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Commission", justify="right")

    for t in rows:
        side_style = "green" if t.side == "BUY" else "red"
        table.add_row(
            t.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            names.get(t.agent_id, t.agent_id),
            f"[{side_style}]{t.side}[/{side_style}]",
            t.symbol,
            str(t.quantity),
            f"{t.price:,.2f}",
            f"{t.total_amount:,.2f}",
            f"{t.commission:,.2f}",
        )

    console.print(table)


@click.command()
@click.option("--agent", "-a", default=None, help="Only show this agent's decisions (name or ID).")
@click.option("--limit", "-n", type=int, default=20, show_default=True, help="Number of decisions.")
@click.option("--steps", is_flag=True, default=False, help="Print each decision's reasoning steps.")
@click.pass_context
def decisions(ctx: click.Context, agent: Optional[str], limit: int, steps: bool) -> None:
    """Show the most recent AI decisions and their outcomes."""
    store = get_store(ctx)
    agent_id = find_agent(store, agent).id if agent else None
    names = {a.id: a.name for a in store.list_agents()}
    rows = store.get_decisions(agent_id=agent_id, limit=limit)

    if not rows:
        console.print("[yellow]No decisions yet[/yellow]")
        return

    table = Table(title="Decisions")
    table.add_column("Time", style="dim")
    table.add_column("Agent", style="cyan")
    table.add_column("Action")
    table.add_column("Symbol")
    table.add_column("Qty", justify="right")
    table.add_column("Conf.", justify="right")
    table.add_column("Outcome")
    table.add_column("Summary")

    for d in rows:
        style = OUTCOME_STYLES.get(d.outcome, "white")
        outcome = f"[{style}]{d.outcome}[/{style}]"
        if d.rejection_reason:
            outcome += f"\n[dim]{d.rejection_reason}[/dim]"
        table.add_row(
            d.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            names.get(d.agent_id, d.agent_id),
            d.action,
            d.stock_symbol or "-",
            str(d.quantity),
            f"{d.confidence:.0f}",
            outcome,
            d.reasoning_summary,
        )

    console.print(table)

    if steps:
        for d in rows:
            if not d.thinking_steps:
                continue
            lines = [f"{i}. [bold]{s.step}[/bold]: {s.observation}" for i, s in enumerate(d.thinking_steps, start=1)]
            console.print(Panel(
                "\n".join(lines),
                title=f"{names.get(d.agent_id, d.agent_id)} - {d.action} {d.stock_symbol or ''}",
                border_style="dim",
            ))
