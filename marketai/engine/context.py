"""Decision context gathering."""

import asyncio
import logging
import sqlite3
from typing import Optional

from marketai.db.store import LedgerStore
from marketai.engine.errors import ContextUnavailable
from marketai.market import MarketContextSource, NewsSource
from marketai.models import Agent, DecisionRequest, MarketContext


logger = logging.getLogger(__name__)


class ContextGatherer:
    """Assembles the DecisionRequest handed to a decision client.

    Positions and candidate stocks are mandatory: if either cannot be
    read the agent's cycle is aborted with ContextUnavailable. Recent
    trades, news and the fused market context are optional and degrade
    to empty with a warning.
    """

    def __init__(
        self,
        store: LedgerStore,
        news_source: Optional[NewsSource] = None,
        context_source: Optional[MarketContextSource] = None,
        context_symbols: Optional[list[str]] = None,
        candidate_limit: int = 20,
        recent_trades_limit: int = 5,
        news_limit: int = 20,
        max_risk_per_trade_pct: float = 5.0,
    ):
        self._store = store
        self._news_source = news_source
        self._context_source = context_source
        self.context_symbols = list(context_symbols or [])
        self.candidate_limit = candidate_limit
        self.recent_trades_limit = recent_trades_limit
        self.news_limit = news_limit
        self.max_risk_per_trade_pct = max_risk_per_trade_pct

    def gather(self, agent: Agent) -> DecisionRequest:
        """Build the decision request for one agent.

        Args:
            agent: Agent about to decide. Its balance is re-read from
                the ledger so the request reflects committed state.

        Returns:
            DecisionRequest.

        Raises:
            ContextUnavailable: If positions or stocks cannot be read.
        """
        try:
            balance = self._store.get_agent_balance(agent.id)
            portfolio = self._store.get_position_views(agent.id)
        except sqlite3.Error as e:
            raise ContextUnavailable(f"Portfolio unavailable for {agent.name}: {e}") from e
        if balance is None:
            raise ContextUnavailable(f"Agent {agent.id} no longer exists")

        try:
            stocks = self._store.list_stocks(limit=self.candidate_limit)
        except sqlite3.Error as e:
            raise ContextUnavailable(f"Stock list unavailable: {e}") from e

        try:
            recent_trades = self._store.get_recent_trades(agent.id, limit=self.recent_trades_limit)
        except sqlite3.Error as e:
            logger.warning("Recent trades unavailable for %s: %s", agent.name, e)
            recent_trades = []

        news = []
        if self._news_source is not None:
            try:
                news = self._news_source.get_latest_news(self.news_limit)
            except Exception as e:
                logger.warning("News unavailable for %s: %s", agent.name, e)

        market_context = self._market_context(agent)

        return DecisionRequest(
            agent_id=agent.id,
            agent_name=agent.name,
            current_balance=balance,
            portfolio=portfolio,
            stocks=stocks,
            recent_trades=recent_trades,
            news=news,
            market_context=market_context,
            max_risk_per_trade_pct=self.max_risk_per_trade_pct,
        )

    def _market_context(self, agent: Agent) -> Optional[MarketContext]:
        if self._context_source is None or not self.context_symbols:
            return None
        try:
            context = self._context_source.market_context(self.context_symbols)
        except Exception as e:
            logger.warning("Market context unavailable for %s: %s", agent.name, e)
            return None
        return None if context.is_empty else context

    async def gather_async(self, agent: Agent) -> DecisionRequest:
        """Run :meth:`gather` in a worker thread."""
        return await asyncio.to_thread(self.gather, agent)
