"""Property-based tests for the ledger store.

**Feature: autonomous-trading-engine**
"""

import sqlite3
import tempfile
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from marketai.db.store import LedgerStore
from marketai.models import Agent, Decision, NewsArticle, Position, SocialPost, Stock, ThinkingStep


def make_agent(store: LedgerStore, name: str = "GPT-4o", balance: str = "100000", status: str = "active") -> Agent:
    agent = Agent(
        id=str(uuid.uuid4()),
        name=name,
        model="gpt-4o",
        provider="openai",
        status=status,
        initial_balance=Decimal(balance),
        current_balance=Decimal(balance),
    )
    store.create_agent(agent)
    return agent


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield LedgerStore(db_path)


class TestDatabaseSchemaCompleteness:
    """
    **Feature: autonomous-trading-engine, Property 8: Database Schema Completeness**

    *For any* fresh database, all required tables exist.
    """

    def test_schema_completeness(self, temp_db: LedgerStore):
        tables = temp_db.get_tables()
        for table in LedgerStore.REQUIRED_TABLES:
            assert table in tables, f"Required table '{table}' is missing"

    def test_reopen_keeps_data(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "nested" / "test.db"
            agent = make_agent(LedgerStore(db_path))
            reopened = LedgerStore(db_path)
            assert reopened.get_agent(agent.id) == agent


class TestAgents:
    """Agent storage and status toggling."""

    def test_list_active_agents(self, temp_db: LedgerStore):
        active = make_agent(temp_db, "Claude")
        make_agent(temp_db, "Grok", status="inactive")

        assert [a.id for a in temp_db.list_active_agents()] == [active.id]
        assert len(temp_db.list_agents()) == 2

    def test_set_status(self, temp_db: LedgerStore):
        agent = make_agent(temp_db)
        temp_db.set_agent_status(agent.id, "inactive")
        assert temp_db.get_agent(agent.id).status == "inactive"
        assert temp_db.list_active_agents() == []

    def test_invalid_status(self, temp_db: LedgerStore):
        agent = make_agent(temp_db)
        with pytest.raises(ValueError):
            temp_db.set_agent_status(agent.id, "paused")

    def test_lookup_by_name(self, temp_db: LedgerStore):
        agent = make_agent(temp_db, "DeepSeek")
        assert temp_db.get_agent_by_name("DeepSeek").id == agent.id
        assert temp_db.get_agent_by_name("nobody") is None

    @given(balance=st.decimals(min_value="0.00", max_value="99999999.99", places=2))
    @settings(max_examples=50, deadline=None)
    def test_balance_round_trips_exactly(self, balance: Decimal):
        """*For any* balance, the stored value reads back without precision loss."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = LedgerStore(Path(tmpdir) / "test.db")
            agent = make_agent(store, balance=str(balance))
            assert store.get_agent_balance(agent.id) == balance


class TestStocks:
    """Stock quotes."""

    def test_upsert_replaces_quote(self, temp_db: LedgerStore):
        temp_db.upsert_stock(Stock(symbol="THYAO", name="THY", current_price=Decimal("250")))
        temp_db.upsert_stock(Stock(symbol="THYAO", name="THY", current_price=Decimal("255.5")))

        assert temp_db.get_stock_price("THYAO") == Decimal("255.5")
        assert len(temp_db.list_stocks()) == 1

    def test_list_is_ordered_and_bounded(self, temp_db: LedgerStore):
        for symbol in ["SISE", "AKBNK", "THYAO", "GARAN"]:
            temp_db.upsert_stock(Stock(symbol=symbol, current_price=Decimal("10")))
        temp_db.upsert_stock(Stock(symbol="AAAA", current_price=Decimal("10"), is_active=False))

        assert [s.symbol for s in temp_db.list_stocks(limit=3)] == ["AKBNK", "GARAN", "SISE"]
        assert "AAAA" in [s.symbol for s in temp_db.list_stocks(active_only=False)]

    def test_unknown_price(self, temp_db: LedgerStore):
        assert temp_db.get_stock_price("NOPE") is None


class TestTransactions:
    """
    **Feature: autonomous-trading-engine, Property 9: Transaction Atomicity**

    Writes inside a failed transaction are never visible.
    """

    def test_exception_rolls_back(self, temp_db: LedgerStore):
        agent = make_agent(temp_db, balance="500")

        with pytest.raises(RuntimeError):
            with temp_db.transaction() as tx:
                tx.debit_balance(agent.id, Decimal("100"))
                tx.save_position(Position(
                    agent_id=agent.id,
                    symbol="THYAO",
                    quantity=1,
                    avg_buy_price=Decimal("100"),
                    total_invested=Decimal("100"),
                ))
                raise RuntimeError("boom")

        assert temp_db.get_agent_balance(agent.id) == Decimal("500")
        assert temp_db.get_positions(agent.id) == []

    def test_commit_persists(self, temp_db: LedgerStore):
        agent = make_agent(temp_db, balance="500")
        with temp_db.transaction() as tx:
            assert tx.credit_balance(agent.id, Decimal("25.50")) == Decimal("525.50")
        assert temp_db.get_agent_balance(agent.id) == Decimal("525.50")

    def test_debit_cannot_go_negative(self, temp_db: LedgerStore):
        agent = make_agent(temp_db, balance="10")
        with pytest.raises(ValueError):
            with temp_db.transaction() as tx:
                tx.debit_balance(agent.id, Decimal("10.01"))
        assert temp_db.get_agent_balance(agent.id) == Decimal("10")

    def test_zero_quantity_position_rejected_by_schema(self, temp_db: LedgerStore):
        agent = make_agent(temp_db)
        with pytest.raises(sqlite3.IntegrityError):
            with temp_db.transaction() as tx:
                tx.save_position(Position(
                    agent_id=agent.id,
                    symbol="THYAO",
                    quantity=0,
                    avg_buy_price=Decimal("0"),
                    total_invested=Decimal("0"),
                ))


class TestDecisions:
    """
    **Feature: autonomous-trading-engine, Property 10: Decision Audit Trail**

    Every stored decision keeps its reasoning steps in order and its
    outcome is written once.
    """

    def test_save_with_thinking_steps(self, temp_db: LedgerStore):
        agent = make_agent(temp_db)
        decision = Decision(
            action="BUY",
            stock_symbol="THYAO",
            quantity=10,
            confidence=82,
            thinking_steps=[
                ThinkingStep(step="Market Analysis", observation="Uptrend"),
                ThinkingStep(step="News", observation="Strong earnings"),
                ThinkingStep(step="Decision", observation="Buy"),
            ],
        )

        record = temp_db.save_decision(agent.id, decision)
        stored = temp_db.get_decision(record.id)

        assert stored.outcome == "pending"
        assert stored.risk_score == pytest.approx(18.0)
        assert [s.step for s in stored.thinking_steps] == ["Market Analysis", "News", "Decision"]

    def test_outcome_written_once(self, temp_db: LedgerStore):
        agent = make_agent(temp_db)
        record = temp_db.save_decision(agent.id, Decision(action="HOLD", confidence=50))

        temp_db.update_decision_outcome(record.id, "hold")
        temp_db.update_decision_outcome(record.id, "rejected", "too late")

        stored = temp_db.get_decision(record.id)
        assert stored.outcome == "hold"
        assert stored.rejection_reason is None

    def test_list_newest_first(self, temp_db: LedgerStore):
        agent = make_agent(temp_db)
        first = temp_db.save_decision(agent.id, Decision(action="HOLD", confidence=40))
        second = temp_db.save_decision(agent.id, Decision(action="HOLD", confidence=45))

        ids = [d.id for d in temp_db.get_decisions(agent_id=agent.id)]
        assert ids == [second.id, first.id]
        assert len(temp_db.get_decisions(limit=1)) == 1


class TestNewsAndPosts:
    """News window and social post storage."""

    def test_news_window_and_limit(self, temp_db: LedgerStore):
        now = datetime.now()
        for i in range(5):
            temp_db.save_news(NewsArticle(
                id=f"n{i}",
                title=f"Headline {i}",
                related_stocks=["THYAO"],
                published_at=now - timedelta(minutes=10 * i),
            ))
        temp_db.save_news(NewsArticle(id="old", title="Old news", published_at=now - timedelta(hours=5)))

        news = temp_db.get_latest_news(window_hours=3, limit=3)
        assert [n.id for n in news] == ["n0", "n1", "n2"]
        assert news[0].related_stocks == ["THYAO"]

    def test_social_posts(self, temp_db: LedgerStore):
        temp_db.save_social_post(SocialPost(
            id="p1", author="trader", text="THYAO to the moon", stock_symbols=["THYAO"],
            sentiment_score=0.8, sentiment_label="positive", impact_score=12.0,
        ))
        temp_db.save_social_post(SocialPost(
            id="p2", text="ancient", created_at=datetime.now() - timedelta(days=3),
        ))

        posts = temp_db.get_social_posts(window_hours=24)
        assert [p.id for p in posts] == ["p1"]
        assert posts[0].stock_symbols == ["THYAO"]


class TestPortfolioSummary:
    """Portfolio valuation at latest prices."""

    def test_summary(self, temp_db: LedgerStore):
        agent = make_agent(temp_db, balance="10000")
        temp_db.upsert_stock(Stock(symbol="THYAO", current_price=Decimal("110")))
        with temp_db.transaction() as tx:
            tx.debit_balance(agent.id, Decimal("1000"))
            tx.save_position(Position(
                agent_id=agent.id,
                symbol="THYAO",
                quantity=10,
                avg_buy_price=Decimal("100"),
                total_invested=Decimal("1000"),
            ))

        summary = temp_db.get_portfolio_summary(agent.id)

        assert summary.current_balance == Decimal("9000")
        assert summary.portfolio_value == Decimal("1100")
        assert summary.total_value == Decimal("10100")
        assert summary.total_profit_loss == Decimal("100")
        assert summary.profit_loss_percent == pytest.approx(1.0)
        assert summary.holdings[0].profit_loss == Decimal("100")
        assert summary.holdings[0].profit_loss_percent == pytest.approx(10.0)

    def test_missing_agent(self, temp_db: LedgerStore):
        assert temp_db.get_portfolio_summary("missing") is None
