"""SQLite ledger store for MarketAI."""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional

from marketai.models import (
    Agent,
    Decision,
    DecisionRecord,
    NewsArticle,
    PortfolioSummary,
    Position,
    PositionView,
    SocialPost,
    Stock,
    ThinkingStep,
    Trade,
)


def _dec(value) -> Optional[Decimal]:
    """Read a TEXT money column back as Decimal."""
    if value is None:
        return None
    return Decimal(str(value))


def _txt(value) -> Optional[str]:
    """Write a Decimal as TEXT so no precision is lost."""
    if value is None:
        return None
    return str(value)


def _row_to_agent(row: sqlite3.Row) -> Agent:
    return Agent(
        id=row["id"],
        name=row["name"],
        model=row["model"],
        provider=row["provider"],
        status=row["status"],
        initial_balance=_dec(row["initial_balance"]),
        current_balance=_dec(row["current_balance"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_stock(row: sqlite3.Row) -> Stock:
    return Stock(
        symbol=row["symbol"],
        name=row["name"],
        current_price=_dec(row["current_price"]),
        previous_close=_dec(row["previous_close"]),
        change_percent=row["change_percent"],
        volume=row["volume"],
        is_active=bool(row["is_active"]),
        last_updated=datetime.fromisoformat(row["last_updated"]),
    )


def _row_to_position(row: sqlite3.Row) -> Position:
    return Position(
        agent_id=row["agent_id"],
        symbol=row["symbol"],
        quantity=row["quantity"],
        avg_buy_price=_dec(row["avg_buy_price"]),
        total_invested=_dec(row["total_invested"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_trade(row: sqlite3.Row) -> Trade:
    return Trade(
        id=row["id"],
        agent_id=row["agent_id"],
        symbol=row["symbol"],
        side=row["side"],
        quantity=row["quantity"],
        price=_dec(row["price"]),
        total_amount=_dec(row["total_amount"]),
        commission=_dec(row["commission"]),
        reasoning=row["reasoning"],
        decision_id=row["decision_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class LedgerTransaction:
    """Reads and writes bound to one open ledger transaction.

    Obtained from :meth:`LedgerStore.transaction`. Every method runs on
    the same connection, so all reads see the transaction's snapshot and
    all writes commit or roll back together.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def get_stock_price(self, symbol: str) -> Optional[Decimal]:
        row = self._conn.execute(
            "SELECT current_price FROM stocks WHERE symbol = ?", (symbol,)
        ).fetchone()
        return _dec(row["current_price"]) if row else None

    def get_agent_balance(self, agent_id: str) -> Optional[Decimal]:
        row = self._conn.execute(
            "SELECT current_balance FROM agents WHERE id = ?", (agent_id,)
        ).fetchone()
        return _dec(row["current_balance"]) if row else None

    def _set_agent_balance(self, agent_id: str, balance: Decimal) -> None:
        self._conn.execute(
            "UPDATE agents SET current_balance = ?, updated_at = ? WHERE id = ?",
            (_txt(balance), datetime.now().isoformat(), agent_id),
        )

    def debit_balance(self, agent_id: str, amount: Decimal) -> Decimal:
        """Subtract from an agent's balance and return the new balance.

        Raises:
            ValueError: If the agent is missing or the balance would go negative.
        """
        balance = self.get_agent_balance(agent_id)
        if balance is None:
            raise ValueError(f"Agent {agent_id} not found")
        new_balance = balance - amount
        if new_balance < 0:
            raise ValueError(f"Balance of {agent_id} would go negative: {new_balance}")
        self._set_agent_balance(agent_id, new_balance)
        return new_balance

    def credit_balance(self, agent_id: str, amount: Decimal) -> Decimal:
        """Add to an agent's balance and return the new balance."""
        balance = self.get_agent_balance(agent_id)
        if balance is None:
            raise ValueError(f"Agent {agent_id} not found")
        new_balance = balance + amount
        self._set_agent_balance(agent_id, new_balance)
        return new_balance

    def get_position(self, agent_id: str, symbol: str) -> Optional[Position]:
        row = self._conn.execute(
            """
            SELECT agent_id, symbol, quantity, avg_buy_price, total_invested, updated_at
            FROM portfolio
            WHERE agent_id = ? AND symbol = ?
            """,
            (agent_id, symbol),
        ).fetchone()
        return _row_to_position(row) if row else None

    def save_position(self, position: Position) -> None:
        """Insert or replace the position row for (agent, symbol)."""
        self._conn.execute(
            """
            INSERT INTO portfolio
            (agent_id, symbol, quantity, avg_buy_price, total_invested, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(agent_id, symbol) DO UPDATE SET
                quantity = excluded.quantity,
                avg_buy_price = excluded.avg_buy_price,
                total_invested = excluded.total_invested,
                updated_at = excluded.updated_at
            """,
            (
                position.agent_id,
                position.symbol,
                position.quantity,
                _txt(position.avg_buy_price),
                _txt(position.total_invested),
                position.updated_at.isoformat(),
            ),
        )

    def delete_position(self, agent_id: str, symbol: str) -> None:
        self._conn.execute(
            "DELETE FROM portfolio WHERE agent_id = ? AND symbol = ?",
            (agent_id, symbol),
        )

    def insert_trade(self, trade: Trade) -> None:
        self._conn.execute(
            """
            INSERT INTO trades
            (id, agent_id, symbol, side, quantity, price, total_amount,
             commission, reasoning, decision_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                trade.id,
                trade.agent_id,
                trade.symbol,
                trade.side,
                trade.quantity,
                _txt(trade.price),
                _txt(trade.total_amount),
                _txt(trade.commission),
                trade.reasoning,
                trade.decision_id,
                trade.created_at.isoformat(),
            ),
        )

    def get_decision_outcome(self, decision_id: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT outcome FROM agent_decisions WHERE id = ?", (decision_id,)
        ).fetchone()
        return row["outcome"] if row else None

    def mark_decision_executed(self, decision_id: str, trade_id: str) -> None:
        self._conn.execute(
            "UPDATE agent_decisions SET outcome = 'executed', trade_id = ? WHERE id = ?",
            (trade_id, decision_id),
        )


class LedgerStore:
    """SQLite-based ledger for agents, positions, trades and decisions."""

    REQUIRED_TABLES = [
        "agents",
        "stocks",
        "portfolio",
        "trades",
        "agent_decisions",
        "agent_thoughts",
        "market_events",
        "social_posts",
    ]

    # Seconds a writer waits for the database lock before failing
    LOCK_TIMEOUT = 30.0

    def __init__(self, db_path: Path):
        """Initialize the ledger store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path, timeout=self.LOCK_TIMEOUT)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")

            # Agents table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS agents (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    model TEXT NOT NULL,
                    provider TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'active',
                    initial_balance TEXT NOT NULL,
                    current_balance TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Stocks table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS stocks (
                    symbol TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT '',
                    current_price TEXT NOT NULL,
                    previous_close TEXT NOT NULL DEFAULT '0',
                    change_percent REAL NOT NULL DEFAULT 0,
                    volume INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_updated TEXT NOT NULL
                )
            """)

            # Portfolio table, one row per agent x symbol
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS portfolio (
                    agent_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    quantity INTEGER NOT NULL CHECK (quantity > 0),
                    avg_buy_price TEXT NOT NULL,
                    total_invested TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (agent_id, symbol)
                )
            """)

            # Trades table (append-only)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id TEXT PRIMARY KEY,
                    agent_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    price TEXT NOT NULL,
                    total_amount TEXT NOT NULL,
                    commission TEXT NOT NULL,
                    reasoning TEXT NOT NULL DEFAULT '',
                    decision_id TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            # Decisions table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS agent_decisions (
                    id TEXT PRIMARY KEY,
                    agent_id TEXT NOT NULL,
                    stock_symbol TEXT NOT NULL DEFAULT '',
                    decision TEXT NOT NULL,
                    quantity INTEGER NOT NULL DEFAULT 0,
                    target_price TEXT,
                    stop_loss TEXT,
                    reasoning_full TEXT NOT NULL DEFAULT '',
                    reasoning_summary TEXT NOT NULL DEFAULT '',
                    confidence_score REAL NOT NULL,
                    risk_score REAL NOT NULL,
                    risk_level TEXT NOT NULL,
                    market_context TEXT NOT NULL DEFAULT '{}',
                    outcome TEXT NOT NULL DEFAULT 'pending',
                    trade_id TEXT,
                    rejection_reason TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            # Reasoning steps table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS agent_thoughts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    agent_id TEXT NOT NULL,
                    decision_id TEXT NOT NULL,
                    step_number INTEGER NOT NULL,
                    step_name TEXT NOT NULL,
                    thought TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            # News table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS market_events (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    source TEXT NOT NULL DEFAULT '',
                    url TEXT NOT NULL DEFAULT '',
                    related_stocks TEXT NOT NULL DEFAULT '[]',
                    published_at TEXT NOT NULL
                )
            """)

            # Social posts table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS social_posts (
                    id TEXT PRIMARY KEY,
                    author TEXT NOT NULL DEFAULT '',
                    text TEXT NOT NULL,
                    stock_symbols TEXT NOT NULL DEFAULT '[]',
                    sentiment_score REAL NOT NULL DEFAULT 0,
                    sentiment_label TEXT NOT NULL DEFAULT 'neutral',
                    impact_score REAL NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_trades_agent ON trades (agent_id, created_at)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_decisions_agent ON agent_decisions (agent_id, created_at)"
            )

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[LedgerTransaction]:
        """Open an atomic read-modify-write scope.

        The write lock is taken up front (``BEGIN IMMEDIATE``) so two
        settlements can never interleave their read and write phases.
        Any exception rolls the whole transaction back and propagates.

        Yields:
            LedgerTransaction bound to the open transaction.
        """
        conn = self._get_connection()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield LedgerTransaction(conn)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    # ==================== Agents ====================

    def create_agent(self, agent: Agent) -> None:
        """Insert a new agent.

        Args:
            agent: Agent to save.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO agents
                (id, name, model, provider, status, initial_balance,
                 current_balance, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    agent.id,
                    agent.name,
                    agent.model,
                    agent.provider,
                    agent.status,
                    _txt(agent.initial_balance),
                    _txt(agent.current_balance),
                    agent.created_at.isoformat(),
                    agent.updated_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        """Get an agent by ID.

        Args:
            agent_id: Agent ID.

        Returns:
            Agent if found, None otherwise.
        """
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM agents WHERE id = ?", (agent_id,)).fetchone()
            return _row_to_agent(row) if row else None
        finally:
            conn.close()

    def get_agent_by_name(self, name: str) -> Optional[Agent]:
        """Get an agent by its display name."""
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM agents WHERE name = ?", (name,)).fetchone()
            return _row_to_agent(row) if row else None
        finally:
            conn.close()

    def list_agents(self, status: Optional[str] = None) -> list[Agent]:
        """Get agents, optionally filtered by status.

        Args:
            status: Optional status filter ("active" or "inactive").

        Returns:
            List of agents ordered by name.
        """
        conn = self._get_connection()
        try:
            if status:
                rows = conn.execute(
                    "SELECT * FROM agents WHERE status = ? ORDER BY name", (status,)
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM agents ORDER BY name").fetchall()
            return [_row_to_agent(row) for row in rows]
        finally:
            conn.close()

    def list_active_agents(self) -> list[Agent]:
        """Get all agents with status 'active'."""
        return self.list_agents(status="active")

    def set_agent_status(self, agent_id: str, status: str) -> None:
        """Toggle an agent between active and inactive.

        Raises:
            ValueError: If status is not a valid agent status.
        """
        if status not in ("active", "inactive"):
            raise ValueError(f"Invalid agent status: {status}")
        conn = self._get_connection()
        try:
            conn.execute(
                "UPDATE agents SET status = ?, updated_at = ? WHERE id = ?",
                (status, datetime.now().isoformat(), agent_id),
            )
            conn.commit()
        finally:
            conn.close()

    def get_agent_balance(self, agent_id: str) -> Optional[Decimal]:
        """Get an agent's current cash balance."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT current_balance FROM agents WHERE id = ?", (agent_id,)
            ).fetchone()
            return _dec(row["current_balance"]) if row else None
        finally:
            conn.close()

    # ==================== Stocks ====================

    def upsert_stock(self, stock: Stock) -> None:
        """Save or update a stock quote.

        Args:
            stock: Stock to save.
        """
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO stocks
                (symbol, name, current_price, previous_close, change_percent,
                 volume, is_active, last_updated)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(symbol) DO UPDATE SET
                    name = excluded.name,
                    current_price = excluded.current_price,
                    previous_close = excluded.previous_close,
                    change_percent = excluded.change_percent,
                    volume = excluded.volume,
                    is_active = excluded.is_active,
                    last_updated = excluded.last_updated
                """,
                (
                    stock.symbol,
                    stock.name,
                    _txt(stock.current_price),
                    _txt(stock.previous_close),
                    stock.change_percent,
                    stock.volume,
                    1 if stock.is_active else 0,
                    stock.last_updated.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_stock(self, symbol: str) -> Optional[Stock]:
        """Get a stock by symbol."""
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM stocks WHERE symbol = ?", (symbol,)).fetchone()
            return _row_to_stock(row) if row else None
        finally:
            conn.close()

    def get_stock_price(self, symbol: str) -> Optional[Decimal]:
        """Get the latest price of a symbol, or None if unknown."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT current_price FROM stocks WHERE symbol = ?", (symbol,)
            ).fetchone()
            return _dec(row["current_price"]) if row else None
        finally:
            conn.close()

    def list_stocks(self, limit: Optional[int] = None, active_only: bool = True) -> list[Stock]:
        """Get stocks ordered by symbol.

        Args:
            limit: Optional maximum number of stocks.
            active_only: Only return tradeable symbols.

        Returns:
            List of stocks.
        """
        query = "SELECT * FROM stocks"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY symbol"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)

        conn = self._get_connection()
        try:
            return [_row_to_stock(row) for row in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

    # ==================== Positions ====================

    def get_positions(self, agent_id: str) -> list[Position]:
        """Get all open positions of an agent.

        Args:
            agent_id: Agent ID.

        Returns:
            List of positions ordered by symbol.
        """
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT agent_id, symbol, quantity, avg_buy_price, total_invested, updated_at
                FROM portfolio
                WHERE agent_id = ?
                ORDER BY symbol
                """,
                (agent_id,),
            ).fetchall()
            return [_row_to_position(row) for row in rows]
        finally:
            conn.close()

    def get_position_views(self, agent_id: str) -> list[PositionView]:
        """Get an agent's positions priced at the latest market price.

        Positions whose symbol has no quote are left out, matching an
        inner join against the stocks table.
        """
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT p.symbol, p.quantity, p.avg_buy_price, p.total_invested,
                       s.current_price
                FROM portfolio p
                JOIN stocks s ON s.symbol = p.symbol
                WHERE p.agent_id = ?
                ORDER BY p.symbol
                """,
                (agent_id,),
            ).fetchall()
        finally:
            conn.close()

        views = []
        for row in rows:
            price = _dec(row["current_price"])
            invested = _dec(row["total_invested"])
            value = price * row["quantity"]
            pnl = value - invested
            pnl_percent = float(pnl / invested * 100) if invested > 0 else 0.0
            views.append(PositionView(
                symbol=row["symbol"],
                quantity=row["quantity"],
                avg_buy_price=_dec(row["avg_buy_price"]),
                total_invested=invested,
                current_price=price,
                current_value=value,
                profit_loss=pnl,
                profit_loss_percent=pnl_percent,
            ))
        return views

    def get_portfolio_value(self, agent_id: str) -> Decimal:
        """Sum of quantity x latest price over an agent's positions."""
        return sum(
            (view.current_value for view in self.get_position_views(agent_id)),
            Decimal("0"),
        )

    def get_portfolio_summary(self, agent_id: str) -> Optional[PortfolioSummary]:
        """Get cash, priced holdings and P/L against the initial balance.

        Args:
            agent_id: Agent ID.

        Returns:
            PortfolioSummary if the agent exists, None otherwise.
        """
        agent = self.get_agent(agent_id)
        if agent is None:
            return None

        holdings = self.get_position_views(agent_id)
        portfolio_value = sum((h.current_value for h in holdings), Decimal("0"))
        total_value = agent.current_balance + portfolio_value
        total_pnl = total_value - agent.initial_balance
        pnl_percent = (
            float(total_pnl / agent.initial_balance * 100)
            if agent.initial_balance > 0
            else 0.0
        )
        return PortfolioSummary(
            agent_id=agent.id,
            agent_name=agent.name,
            current_balance=agent.current_balance,
            portfolio_value=portfolio_value,
            total_value=total_value,
            total_profit_loss=total_pnl,
            profit_loss_percent=pnl_percent,
            holdings=holdings,
        )

    # ==================== Trades ====================

    def get_trades(self, agent_id: Optional[str] = None, limit: Optional[int] = None) -> list[Trade]:
        """Get trades, newest first.

        Args:
            agent_id: Optional agent filter. If None, returns all agents' trades.
            limit: Optional maximum number of trades.

        Returns:
            List of trades.
        """
        query = "SELECT * FROM trades"
        params: list = []
        if agent_id:
            query += " WHERE agent_id = ?"
            params.append(agent_id)
        query += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._get_connection()
        try:
            return [_row_to_trade(row) for row in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

    def get_recent_trades(self, agent_id: str, limit: int = 5) -> list[Trade]:
        """Get an agent's most recent trades."""
        return self.get_trades(agent_id=agent_id, limit=limit)

    # ==================== Decisions ====================

    def save_decision(
        self,
        agent_id: str,
        decision: Decision,
        market_context: Optional[dict] = None,
    ) -> DecisionRecord:
        """Persist a decision and its reasoning steps.

        The decision row and all of its thought rows are written in one
        transaction, so a decision is never visible without its steps.

        Args:
            agent_id: Deciding agent ID.
            decision: Decision returned by the provider.
            market_context: Optional JSON-serializable context snapshot.

        Returns:
            The stored DecisionRecord with outcome "pending".
        """
        record = DecisionRecord(
            id=str(uuid.uuid4()),
            agent_id=agent_id,
            action=decision.action,
            stock_symbol=decision.stock_symbol,
            quantity=decision.quantity,
            target_price=decision.target_price,
            stop_loss=decision.stop_loss,
            reasoning_summary=decision.reasoning_summary,
            reasoning_full=decision.reasoning_full,
            confidence=decision.confidence,
            risk_score=100.0 - decision.confidence,
            risk_level=decision.risk_level,
            outcome="pending",
            thinking_steps=list(decision.thinking_steps),
        )
        context_json = json.dumps(
            market_context or {"timestamp": record.created_at.isoformat()}, default=str
        )

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO agent_decisions
                (id, agent_id, stock_symbol, decision, quantity, target_price,
                 stop_loss, reasoning_full, reasoning_summary, confidence_score,
                 risk_score, risk_level, market_context, outcome, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    agent_id,
                    record.stock_symbol,
                    record.action,
                    record.quantity,
                    _txt(record.target_price),
                    _txt(record.stop_loss),
                    record.reasoning_full,
                    record.reasoning_summary,
                    record.confidence,
                    record.risk_score,
                    record.risk_level,
                    context_json,
                    record.outcome,
                    record.created_at.isoformat(),
                ),
            )
            for number, step in enumerate(record.thinking_steps, start=1):
                cursor.execute(
                    """
                    INSERT INTO agent_thoughts
                    (agent_id, decision_id, step_number, step_name, thought, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        agent_id,
                        record.id,
                        number,
                        step.step,
                        step.observation,
                        record.created_at.isoformat(),
                    ),
                )
            conn.commit()
        finally:
            conn.close()
        return record

    def update_decision_outcome(
        self,
        decision_id: str,
        outcome: str,
        reason: Optional[str] = None,
    ) -> None:
        """Record the terminal outcome of a pending decision.

        Only pending decisions are updated; a decision that already
        reached a terminal outcome is left untouched.
        """
        conn = self._get_connection()
        try:
            conn.execute(
                """
                UPDATE agent_decisions
                SET outcome = ?, rejection_reason = ?
                WHERE id = ? AND outcome = 'pending'
                """,
                (outcome, reason, decision_id),
            )
            conn.commit()
        finally:
            conn.close()

    def _get_thoughts(self, conn: sqlite3.Connection, decision_id: str) -> list[ThinkingStep]:
        rows = conn.execute(
            """
            SELECT step_name, thought FROM agent_thoughts
            WHERE decision_id = ?
            ORDER BY step_number
            """,
            (decision_id,),
        ).fetchall()
        return [ThinkingStep(step=row["step_name"], observation=row["thought"]) for row in rows]

    def _row_to_decision(self, conn: sqlite3.Connection, row: sqlite3.Row) -> DecisionRecord:
        return DecisionRecord(
            id=row["id"],
            agent_id=row["agent_id"],
            action=row["decision"],
            stock_symbol=row["stock_symbol"],
            quantity=row["quantity"],
            target_price=_dec(row["target_price"]),
            stop_loss=_dec(row["stop_loss"]),
            reasoning_summary=row["reasoning_summary"],
            reasoning_full=row["reasoning_full"],
            confidence=row["confidence_score"],
            risk_score=row["risk_score"],
            risk_level=row["risk_level"],
            outcome=row["outcome"],
            trade_id=row["trade_id"],
            rejection_reason=row["rejection_reason"],
            thinking_steps=self._get_thoughts(conn, row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def get_decision(self, decision_id: str) -> Optional[DecisionRecord]:
        """Get a decision with its reasoning steps."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM agent_decisions WHERE id = ?", (decision_id,)
            ).fetchone()
            return self._row_to_decision(conn, row) if row else None
        finally:
            conn.close()

    def get_decisions(
        self, agent_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[DecisionRecord]:
        """Get decisions, newest first."""
        query = "SELECT * FROM agent_decisions"
        params: list = []
        if agent_id:
            query += " WHERE agent_id = ?"
            params.append(agent_id)
        query += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._get_connection()
        try:
            return [self._row_to_decision(conn, row) for row in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

    # ==================== News ====================

    def save_news(self, article: NewsArticle) -> None:
        """Save a news article, replacing any article with the same ID."""
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO market_events
                (id, title, description, source, url, related_stocks, published_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    article.id,
                    article.title,
                    article.description,
                    article.source,
                    article.url,
                    json.dumps(article.related_stocks),
                    article.published_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_latest_news(self, window_hours: int = 3, limit: int = 20) -> list[NewsArticle]:
        """Get news published within the last ``window_hours``, newest first."""
        since = datetime.now() - timedelta(hours=window_hours)
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT * FROM market_events
                WHERE published_at > ?
                ORDER BY published_at DESC
                LIMIT ?
                """,
                (since.isoformat(), limit),
            ).fetchall()
            return [
                NewsArticle(
                    id=row["id"],
                    title=row["title"],
                    description=row["description"],
                    source=row["source"],
                    url=row["url"],
                    related_stocks=json.loads(row["related_stocks"]),
                    published_at=datetime.fromisoformat(row["published_at"]),
                )
                for row in rows
            ]
        finally:
            conn.close()

    # ==================== Social Posts ====================

    def save_social_post(self, post: SocialPost) -> None:
        """Save a social post, replacing any post with the same ID."""
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO social_posts
                (id, author, text, stock_symbols, sentiment_score,
                 sentiment_label, impact_score, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    post.id,
                    post.author,
                    post.text,
                    json.dumps(post.stock_symbols),
                    post.sentiment_score,
                    post.sentiment_label,
                    post.impact_score,
                    post.created_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_social_posts(self, window_hours: int = 24) -> list[SocialPost]:
        """Get social posts created within the last ``window_hours``."""
        since = datetime.now() - timedelta(hours=window_hours)
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM social_posts WHERE created_at > ? ORDER BY created_at DESC",
                (since.isoformat(),),
            ).fetchall()
            return [
                SocialPost(
                    id=row["id"],
                    author=row["author"],
                    text=row["text"],
                    stock_symbols=json.loads(row["stock_symbols"]),
                    sentiment_score=row["sentiment_score"],
                    sentiment_label=row["sentiment_label"],
                    impact_score=row["impact_score"],
                    created_at=datetime.fromisoformat(row["created_at"]),
                )
                for row in rows
            ]
        finally:
            conn.close()

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
