"""Agent decision scheduler.

Wakes up at random intervals, and on every tick starts one independent
decision cycle per active agent: gather context, ask the agent's AI
provider, persist the decision, validate it and settle the trade.
"""

import asyncio
import logging
import random
from typing import Optional

from marketai.ai.base import DecisionClient
from marketai.ai.prompt import build_decision_prompt
from marketai.ai.registry import ClientRegistry
from marketai.db.store import LedgerStore
from marketai.engine.context import ContextGatherer
from marketai.engine.errors import (
    ConfigError,
    ContextUnavailable,
    DecisionClientError,
    SettlementError,
    TradeRejected,
)
from marketai.engine.events import EventSink
from marketai.engine.risk import RiskValidator
from marketai.engine.settlement import TradingEngine
from marketai.models import Agent, DecisionRequest


logger = logging.getLogger(__name__)


class AgentEngine:
    """Runs the autonomous decision loop for every registered agent.

    Cycles are fire-and-forget tasks: a slow or failing agent never
    delays or breaks another one, and stopping the engine only cancels
    the sleep between ticks. An agent whose previous cycle is still
    running is skipped for the tick.
    """

    def __init__(
        self,
        store: LedgerStore,
        registry: ClientRegistry,
        gatherer: ContextGatherer,
        validator: RiskValidator,
        trading_engine: TradingEngine,
        events: EventSink,
        min_interval: float = 30.0,
        max_interval: float = 60.0,
        decision_timeout: float = 30.0,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the engine.

        Args:
            store: Ledger store, the source of active agents.
            registry: Agent ID to decision client map.
            gatherer: Builds each agent's decision request.
            validator: Risk validator run before settlement.
            trading_engine: Settlement engine.
            events: Sink for cycle events.
            min_interval: Minimum seconds between ticks.
            max_interval: Maximum seconds between ticks (exclusive).
            decision_timeout: Seconds to wait for a provider decision.
            rng: Random source for tick intervals.

        Raises:
            ConfigError: If the interval bounds are invalid.
        """
        if min_interval <= 0 or min_interval >= max_interval:
            raise ConfigError(
                f"Invalid tick interval [{min_interval}, {max_interval}): "
                "need 0 < min < max"
            )
        self._store = store
        self.registry = registry
        self._gatherer = gatherer
        self._validator = validator
        self._trading = trading_engine
        self._events = events
        self.min_interval = min_interval
        self.max_interval = max_interval
        self.decision_timeout = decision_timeout
        self._rng = rng or random.Random()

        self._stop = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._in_flight: set[str] = set()

    # ==================== Lifecycle ====================

    def stop(self) -> None:
        """Signal the loop to exit after the current sleep."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    @property
    def in_flight(self) -> frozenset[str]:
        """IDs of agents with a cycle currently running."""
        return frozenset(self._in_flight)

    def next_delay(self) -> float:
        """Draw the next tick delay, uniform in [min_interval, max_interval)."""
        delay = self.min_interval + self._rng.random() * (self.max_interval - self.min_interval)
        # Float rounding can land exactly on the upper bound.
        return delay if delay < self.max_interval else self.min_interval

    async def run(self) -> None:
        """Run ticks until stop() is called."""
        logger.info(
            "Agent engine started (%.0f-%.0f sec decision cycle, %d agent(s) registered)",
            self.min_interval, self.max_interval, len(self.registry),
        )
        while not self._stop.is_set():
            delay = self.next_delay()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            if self._stop.is_set():
                break
            await self.run_once()
        logger.info("Agent engine stopped (%d cycle(s) still running)", len(self._tasks))

    async def run_once(self) -> list[asyncio.Task]:
        """Perform one tick.

        Returns:
            The cycle tasks started on this tick.
        """
        try:
            agents = await asyncio.to_thread(self._store.list_active_agents)
        except Exception:
            logger.exception("Failed to list active agents, skipping tick")
            return []

        started = []
        for agent in agents:
            client = self.registry.get(agent.id)
            if client is None:
                logger.warning("Agent %s (%s) has no decision client, skipping", agent.name, agent.id)
                continue
            if agent.id in self._in_flight:
                logger.debug("Agent %s is still deciding, skipping tick", agent.name)
                continue

            self._in_flight.add(agent.id)
            task = asyncio.create_task(self._run_cycle(agent, client), name=f"decision-{agent.name}")
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            started.append(task)
        return started

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight cycles to finish.

        Args:
            timeout: Seconds to wait. None waits for all of them.

        Returns:
            True if no cycle is running anymore.
        """
        if self._tasks:
            await asyncio.wait(set(self._tasks), timeout=timeout)
        return all(task.done() for task in self._tasks)

    async def _run_cycle(self, agent: Agent, client: DecisionClient) -> None:
        try:
            await self.process_agent(agent, client)
        except Exception:
            logger.exception("Decision cycle for %s failed", agent.name)
        finally:
            self._in_flight.discard(agent.id)

    # ==================== Decision Cycle ====================

    async def process_agent(self, agent: Agent, client: DecisionClient) -> Optional[str]:
        """Run one full decision cycle for an agent.

        Args:
            agent: Deciding agent.
            client: The agent's decision client.

        Returns:
            The decision's terminal outcome ("hold", "rejected", "failed"
            or "executed"), or None if the cycle was aborted before a
            decision was stored.
        """
        self._events.publish("agent_thinking", {
            "agent_id": agent.id,
            "agent_name": agent.name,
            "status": "analyzing",
        })

        try:
            request = await self._gatherer.gather_async(agent)
        except ContextUnavailable as e:
            logger.error("Context unavailable for %s: %s", agent.name, e.message)
            return None

        prompt = build_decision_prompt(request)
        try:
            decision = await asyncio.wait_for(
                client.get_trading_decision(prompt), timeout=self.decision_timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                "Decision from %s timed out after %.0fs", agent.name, self.decision_timeout
            )
            return None
        except DecisionClientError as e:
            logger.error("Decision from %s failed: %s", agent.name, e.message)
            return None

        record = await asyncio.to_thread(
            self._store.save_decision, agent.id, decision, self._context_snapshot(request)
        )
        logger.info(
            "%s decided %s %s x%d (confidence %.0f)",
            agent.name, decision.action, decision.stock_symbol or "-",
            decision.quantity, decision.confidence,
        )
        self._events.publish("agent_decision", {
            "agent_id": agent.id,
            "agent_name": agent.name,
            "decision_id": record.id,
            "action": decision.action,
            "symbol": decision.stock_symbol,
            "quantity": decision.quantity,
            "confidence": decision.confidence,
            "risk_level": decision.risk_level,
            "reasoning": decision.reasoning_summary,
            "model": client.get_model_name(),
        })

        if decision.is_hold:
            await asyncio.to_thread(self._store.update_decision_outcome, record.id, "hold")
            return "hold"

        try:
            await self._validator.validate_async(agent.id, decision)
        except TradeRejected as e:
            logger.warning("%s: %s %s rejected (%s)", agent.name, decision.action, decision.stock_symbol, e)
            await asyncio.to_thread(
                self._store.update_decision_outcome, record.id, "rejected", str(e)
            )
            self._events.publish("trade_rejected", {
                "agent_id": agent.id,
                "agent_name": agent.name,
                "decision_id": record.id,
                "action": decision.action,
                "symbol": decision.stock_symbol,
                "quantity": decision.quantity,
                "code": e.code,
                "reason": e.message,
            })
            return "rejected"

        try:
            trade = await self._trading.execute_trade_async(
                agent.id,
                decision.stock_symbol,
                decision.action,
                decision.quantity,
                decision.reasoning_summary,
                decision_id=record.id,
            )
        except SettlementError as e:
            logger.error("%s: settlement of %s %s failed (%s)", agent.name, decision.action, decision.stock_symbol, e)
            await asyncio.to_thread(
                self._store.update_decision_outcome, record.id, "failed", str(e)
            )
            self._events.publish("trade_failed", {
                "agent_id": agent.id,
                "agent_name": agent.name,
                "decision_id": record.id,
                "action": decision.action,
                "symbol": decision.stock_symbol,
                "quantity": decision.quantity,
                "code": e.code,
                "reason": e.message,
            })
            return "failed"

        logger.info(
            "%s executed %s %d %s @ %s (trade %s)",
            agent.name, trade.side, trade.quantity, trade.symbol, trade.price, trade.id,
        )
        self._events.publish("trade_executed", {
            "agent_name": agent.name,
            **trade.model_dump(mode="json"),
        })
        return "executed"

    @staticmethod
    def _context_snapshot(request: DecisionRequest) -> dict:
        return {
            "balance": str(request.current_balance),
            "positions": len(request.portfolio),
            "stocks": len(request.stocks),
            "news": len(request.news),
            "has_market_context": request.market_context is not None,
        }
