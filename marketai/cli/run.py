"""Engine command for MarketAI CLI.

Starts the autonomous decision loop and prints engine events live.
"""

import asyncio
import signal
import sys

import click
from rich.panel import Panel

from marketai.cli.main import console, get_config, get_store


EVENT_STYLES = {
    "agent_thinking": "dim",
    "agent_decision": "cyan",
    "trade_rejected": "yellow",
    "trade_executed": "green",
    "trade_failed": "red",
}


def format_event(event) -> str:
    """Render one engine event as a console line."""
    data = event.data
    name = data.get("agent_name", data.get("agent_id", "?"))
    time_str = event.timestamp.strftime("%H:%M:%S")

    if event.type == "agent_thinking":
        text = f"{name} is analyzing the market..."
    elif event.type == "agent_decision":
        text = (
            f"{name} decided {data['action']} {data.get('symbol') or '-'} "
            f"x{data['quantity']} (confidence {data['confidence']:.0f}): {data.get('reasoning', '')}"
        )
    elif event.type == "trade_executed":
        text = f"{name} {data['side']} {data['quantity']} {data['symbol']} @ {data['price']} TL"
    elif event.type in ("trade_rejected", "trade_failed"):
        verb = "rejected" if event.type == "trade_rejected" else "failed"
        text = (
            f"{name} {data['action']} {data.get('symbol') or '-'} {verb} "
            f"[{data['code']}]: {data['reason']}"
        )
    else:
        text = f"{event.type}: {data}"

    style = EVENT_STYLES.get(event.type, "white")
    return f"[dim]{time_str}[/dim] [{style}]{text}[/{style}]"


async def _print_events(bus) -> None:
    while True:
        event = await bus.get()
        console.print(format_event(event), markup=True, highlight=False)


async def _flush_events(bus, printer: asyncio.Task) -> None:
    """Wait until the printer has shown every queued event, or has died."""
    while bus.qsize() and not printer.done():
        await asyncio.sleep(0.05)


def _install_signal_handlers(engine) -> None:
    """Stop the engine on Ctrl-C / SIGTERM."""
    if sys.platform == "win32":
        signal.signal(signal.SIGINT, lambda signum, frame: engine.stop())
        return
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, engine.stop)


async def _run_engine(config, store, registry, once: bool) -> None:
    from marketai.engine import ContextGatherer, EventBus, RiskValidator, TradingEngine
    from marketai.engine.scheduler import AgentEngine
    from marketai.market import StoreMarketContextSource, StoreNewsSource
    from marketai.market.simulator import MarketSimulator

    engine_cfg = config.engine
    bus = EventBus(maxsize=engine_cfg.event_queue_size)
    gatherer = ContextGatherer(
        store,
        news_source=StoreNewsSource(store, window_hours=engine_cfg.news_window_hours),
        context_source=StoreMarketContextSource(store, cache_ttl=engine_cfg.min_interval_seconds / 2),
        context_symbols=engine_cfg.context_symbols,
        candidate_limit=engine_cfg.candidate_limit,
        recent_trades_limit=engine_cfg.recent_trades_limit,
        news_limit=engine_cfg.news_limit,
        max_risk_per_trade_pct=config.risk.max_risk_per_trade_pct,
    )
    min_interval, max_interval = engine_cfg.interval
    engine = AgentEngine(
        store,
        registry,
        gatherer,
        RiskValidator(store, config.risk),
        TradingEngine(store),
        bus,
        min_interval=min_interval,
        max_interval=max_interval,
        decision_timeout=engine_cfg.decision_timeout_seconds,
    )

    simulator = None
    if engine_cfg.simulate_prices and not once:
        simulator = MarketSimulator(
            store,
            interval=engine_cfg.price_tick_seconds,
            max_change_pct=engine_cfg.max_price_change_pct,
        )

    printer = asyncio.create_task(_print_events(bus))
    simulation = asyncio.create_task(simulator.run()) if simulator else None
    try:
        if once:
            await engine.run_once()
        else:
            _install_signal_handlers(engine)
            await engine.run()
        await engine.wait_idle(timeout=engine_cfg.decision_timeout_seconds * 2)
        await _flush_events(bus, printer)
    finally:
        if simulator is not None:
            simulator.stop()
            await simulation
        printer.cancel()


@click.command()
@click.option("--once", is_flag=True, default=False, help="Run a single tick and exit.")
@click.pass_context
def run(ctx: click.Context, once: bool) -> None:
    """Start the autonomous decision engine.

    Every tick each active agent with a configured provider gathers
    context, asks its model for a decision, and trades if the decision
    passes the risk checks. Press Ctrl-C to stop.

    \b
    Examples:
      marketai run           # Run until Ctrl-C
      marketai run --once    # One decision cycle per agent
    """
    from marketai.ai.registry import build_registry
    from marketai.engine.errors import ConfigError
    from marketai.logger import setup_logging

    config = get_config(ctx)
    setup_logging(config.logging.level)
    store = get_store(ctx)

    try:
        registry = build_registry(
            store.list_active_agents(),
            config.all_providers(),
            enable_premium_models=config.enable_premium_models,
        )
    except ConfigError as e:
        raise click.ClickException(str(e))

    if len(registry) == 0:
        console.print(Panel(
            "[yellow]No agent has a usable decision client.[/yellow]\n\n"
            "Add an agent with [cyan]marketai agents add[/cyan] and set the provider's API key.",
            title="Nothing to run",
            border_style="yellow",
        ))
        return

    min_interval, max_interval = config.engine.interval
    console.print(Panel(
        f"Agents: [cyan]{len(registry)}[/cyan]\n"
        f"Cycle: [cyan]{'single tick' if once else f'{min_interval:.0f}-{max_interval:.0f} sec'}[/cyan]\n"
        f"Database: [dim]{config.database.path}[/dim]",
        title="MarketAI Engine",
        border_style="blue",
    ))

    asyncio.run(_run_engine(config, store, registry, once))
