"""Tests for the MarketAI command line."""

import asyncio
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest
from click.testing import CliRunner

from marketai.cli.main import cli
from marketai.cli.run import _flush_events, _print_events
from marketai.db.store import LedgerStore
from marketai.engine.events import EventBus
from marketai.engine.settlement import TradingEngine
from marketai.models import Decision


@pytest.fixture
def workspace():
    """Create a config file pointing at a temporary ledger."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "ledger.db"
        config_path = Path(tmpdir) / "config.toml"
        config_path.write_text(f'[database]\npath = "{db_path.as_posix()}"\n')
        yield config_path, db_path


def invoke(config_path: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(cli, ["--config", str(config_path), *args])


class TestAgentCommands:
    """Agent management from the command line."""

    def test_add_and_list(self, workspace):
        config_path, db_path = workspace

        result = invoke(config_path, "agents", "add", "Whale", "--provider", "deepseek", "--balance", "5000")
        assert result.exit_code == 0, result.output

        agent = LedgerStore(db_path).get_agent_by_name("Whale")
        assert agent.model == "deepseek-chat"
        assert agent.current_balance == Decimal("5000.00")

        result = invoke(config_path, "agents", "list")
        assert result.exit_code == 0
        assert "Whale" in result.output

    def test_duplicate_name(self, workspace):
        config_path, _ = workspace
        invoke(config_path, "agents", "add", "Whale", "--provider", "groq")
        result = invoke(config_path, "agents", "add", "Whale", "--provider", "groq")
        assert result.exit_code != 0
        assert "already exists" in result.output

    def test_deactivate(self, workspace):
        config_path, db_path = workspace
        invoke(config_path, "agents", "add", "Sleepy", "--provider", "mistral")

        result = invoke(config_path, "agents", "deactivate", "Sleepy")

        assert result.exit_code == 0
        assert LedgerStore(db_path).list_active_agents() == []

    def test_unknown_agent(self, workspace):
        config_path, _ = workspace
        result = invoke(config_path, "agents", "activate", "nobody")
        assert result.exit_code != 0
        assert "Agent not found" in result.output


class TestStockAndLedgerCommands:
    """Quotes, portfolio, trade log and decision log."""

    def test_set_stock_tracks_change(self, workspace):
        config_path, db_path = workspace
        invoke(config_path, "stocks", "set", "thyao", "200", "--name", "THY")
        result = invoke(config_path, "stocks", "set", "THYAO", "210")

        assert result.exit_code == 0
        stock = LedgerStore(db_path).get_stock("THYAO")
        assert stock.current_price == Decimal("210")
        assert stock.previous_close == Decimal("200")
        assert stock.change_percent == pytest.approx(5.0)
        assert stock.name == "THY"

    def test_invalid_price(self, workspace):
        config_path, _ = workspace
        result = invoke(config_path, "stocks", "set", "THYAO", "abc")
        assert result.exit_code != 0
        assert "Invalid price" in result.output

    def test_portfolio_trades_and_decisions(self, workspace):
        config_path, db_path = workspace
        invoke(config_path, "agents", "add", "Trader", "--provider", "xai", "--balance", "10000")
        invoke(config_path, "stocks", "set", "GARAN", "100")

        store = LedgerStore(db_path)
        agent = store.get_agent_by_name("Trader")
        record = store.save_decision(agent.id, Decision(action="BUY", stock_symbol="GARAN", quantity=5, confidence=85))
        TradingEngine(store).execute_trade(agent.id, "GARAN", "BUY", 5, "momentum", decision_id=record.id)

        result = invoke(config_path, "portfolio", "Trader")
        assert result.exit_code == 0, result.output
        assert "GARAN" in result.output

        result = invoke(config_path, "trades", "--agent", "Trader")
        assert result.exit_code == 0, result.output
        assert "Trades" in result.output

        result = invoke(config_path, "decisions", "--agent", "Trader")
        assert result.exit_code == 0, result.output
        assert "Decisions" in result.output
        assert store.get_decision(record.id).outcome == "executed"


class TestRunCommand:
    """Engine startup checks."""

    def test_nothing_to_run(self, workspace):
        config_path, _ = workspace
        result = invoke(config_path, "run", "--once")
        assert result.exit_code == 0, result.output
        assert "Nothing to run" in result.output

    def test_missing_api_key_fails_fast(self, workspace, monkeypatch):
        config_path, _ = workspace
        monkeypatch.delenv("MISTRAL_API_KEY", raising=False)
        invoke(config_path, "agents", "add", "Keyless", "--provider", "mistral")

        result = invoke(config_path, "run", "--once")

        assert result.exit_code != 0
        assert "MISTRAL_API_KEY" in result.output

    def test_invalid_config(self, workspace):
        config_path, _ = workspace
        config_path.write_text("[engine]\nmin_interval_seconds = 90\nmax_interval_seconds = 60\n")
        result = invoke(config_path, "agents", "list")
        assert result.exit_code != 0
        assert "Invalid configuration" in result.output


class TestEventFlush:
    """Shutdown waits for the event printer only while it is alive."""

    def test_returns_when_printer_died(self):
        async def scenario():
            bus = EventBus()
            bus.publish("agent_thinking", {"agent_name": "Ghost"})

            async def crashed():
                raise RuntimeError("console closed")

            printer = asyncio.create_task(crashed())
            await asyncio.sleep(0)
            await asyncio.wait_for(_flush_events(bus, printer), timeout=1)
            return bus.qsize(), printer.exception()

        pending, error = asyncio.run(scenario())
        assert pending == 1
        assert isinstance(error, RuntimeError)

    def test_waits_for_live_printer(self):
        async def scenario():
            bus = EventBus()
            for i in range(3):
                bus.publish("agent_thinking", {"agent_name": f"A{i}"})
            printer = asyncio.create_task(_print_events(bus))
            try:
                await asyncio.wait_for(_flush_events(bus, printer), timeout=2)
            finally:
                printer.cancel()
            return bus.qsize()

        assert asyncio.run(scenario()) == 0
