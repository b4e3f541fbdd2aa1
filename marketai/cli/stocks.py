"""Stock quote commands for MarketAI CLI."""

from datetime import datetime
from decimal import Decimal, InvalidOperation

import click
from rich.table import Table

from marketai.cli.main import console, get_store


@click.group()
def stocks() -> None:
    """Inspect and set stock quotes.

    \b
    Examples:
      marketai stocks list
      marketai stocks set THYAO 250.50 --name "Turk Hava Yollari"
    """
    pass


@stocks.command("list")
@click.option("--all", "show_all", is_flag=True, default=False, help="Include inactive symbols.")
@click.pass_context
def list_stocks(ctx: click.Context, show_all: bool) -> None:
    """List stock quotes."""
    store = get_store(ctx)
    rows = store.list_stocks(active_only=not show_all)

    if not rows:
        console.print("[yellow]No stocks yet. Set one with 'marketai stocks set'.[/yellow]")
        return

    table = Table(title="Stocks")
    table.add_column("Symbol", style="cyan")
    table.add_column("Name")
    table.add_column("Price", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Volume", justify="right")
    table.add_column("Updated", style="dim")

    for stock in rows:
        change_style = "green" if stock.change_percent >= 0 else "red"
        table.add_row(
            stock.symbol,
            stock.name,
            f"{stock.current_price:,.2f}",
            f"[{change_style}]{stock.change_percent:+.2f}%[/{change_style}]",
            f"{stock.volume:,}",
            stock.last_updated.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@stocks.command("set")
@click.argument("symbol")
@click.argument("price")
@click.option("--name", default=None, help="Company name.")
@click.option("--volume", type=int, default=None, help="Trading volume.")
@click.pass_context
def set_stock(ctx: click.Context, symbol: str, price: str, name: str | None, volume: int | None) -> None:
    """Set the current price of SYMBOL.

    The previous price becomes the previous close, so the change
    percentage reflects the move since the last update.
    """
    from marketai.models import Stock

    try:
        new_price = Decimal(price)
    except InvalidOperation:
        raise click.ClickException(f"Invalid price: {price}")
    if new_price <= 0:
        raise click.ClickException("Price must be positive")

    symbol = symbol.upper()
    store = get_store(ctx)
    existing = store.get_stock(symbol)

    previous = existing.current_price if existing else new_price
    change = float((new_price - previous) / previous * 100) if previous > 0 else 0.0
    stock = Stock(
        symbol=symbol,
        name=name if name is not None else (existing.name if existing else ""),
        current_price=new_price,
        previous_close=previous,
        change_percent=change,
        volume=volume if volume is not None else (existing.volume if existing else 0),
        is_active=True,
        last_updated=datetime.now(),
    )
    store.upsert_stock(stock)
    console.print(f"[green]{symbol} = {new_price} TL ({change:+.2f}%)[/green]")
