"""Trade settlement engine.

Turns an accepted decision into a Trade by mutating the ledger inside a
single transaction: balance, position and the trade row (plus the
decision link, when given) either all commit or none do.
"""

import asyncio
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Optional

from marketai.db.store import LedgerStore, LedgerTransaction
from marketai.engine.errors import SettlementError
from marketai.engine.money import commission_for, notional, to_money, to_price
from marketai.models import Position, Trade


logger = logging.getLogger(__name__)


class TradingEngine:
    """Settles BUY and SELL trades against the shared ledger.

    Prices and balances are always read inside the settlement
    transaction, so a trade settles at the quote current at commit time
    and never against a stale balance.
    """

    def __init__(self, store: LedgerStore):
        """Initialize the settlement engine.

        Args:
            store: Ledger store holding balances, positions and trades.
        """
        self._store = store

    def execute_trade(
        self,
        agent_id: str,
        symbol: str,
        side: str,
        quantity: int,
        reasoning: str = "",
        decision_id: Optional[str] = None,
    ) -> Trade:
        """Settle one trade atomically.

        Args:
            agent_id: Trading agent ID.
            symbol: Trading symbol.
            side: BUY or SELL.
            quantity: Number of lots, a positive integer.
            reasoning: Free text stored with the trade.
            decision_id: Optional decision to mark executed in the same
                transaction.

        Returns:
            The committed Trade.

        Raises:
            SettlementError: If the trade cannot settle. The ledger is
                left exactly as it was before the call.
        """
        side = side.upper() if isinstance(side, str) else side
        if side not in ("BUY", "SELL"):
            raise SettlementError(f"Invalid side: {side}", code="invalid-side")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise SettlementError(
                f"Quantity must be a positive integer, got {quantity}",
                code="invalid-quantity",
            )

        try:
            with self._store.transaction() as tx:
                if decision_id is not None:
                    self._check_decision(tx, decision_id)

                price = tx.get_stock_price(symbol)
                if price is None:
                    raise SettlementError(f"Stock {symbol} not found", code="stock-not-found")
                if notional(quantity, price) <= 0:
                    raise SettlementError(
                        f"{quantity} {symbol} @ {price} rounds to a zero trade value",
                        code="zero-notional",
                    )

                if side == "BUY":
                    trade = self._buy(tx, agent_id, symbol, quantity, price, reasoning, decision_id)
                else:
                    trade = self._sell(tx, agent_id, symbol, quantity, price, reasoning, decision_id)

                tx.insert_trade(trade)
                if decision_id is not None:
                    tx.mark_decision_executed(decision_id, trade.id)
        except sqlite3.Error as e:
            raise SettlementError(f"Ledger error: {e}", code="ledger-error") from e

        logger.info(
            "Settled %s %d %s @ %s for agent %s (trade %s)",
            trade.side, trade.quantity, trade.symbol, trade.price, agent_id, trade.id,
        )
        return trade

    async def execute_trade_async(
        self,
        agent_id: str,
        symbol: str,
        side: str,
        quantity: int,
        reasoning: str = "",
        decision_id: Optional[str] = None,
    ) -> Trade:
        """Run :meth:`execute_trade` in a worker thread."""
        return await asyncio.to_thread(
            self.execute_trade, agent_id, symbol, side, quantity, reasoning, decision_id
        )

    def _check_decision(self, tx: LedgerTransaction, decision_id: str) -> None:
        outcome = tx.get_decision_outcome(decision_id)
        if outcome is not None and outcome != "pending":
            raise SettlementError(
                f"Decision {decision_id} already settled with outcome {outcome}",
                code="decision-already-settled",
            )

    def _balance(self, tx: LedgerTransaction, agent_id: str):
        balance = tx.get_agent_balance(agent_id)
        if balance is None:
            raise SettlementError(f"Agent {agent_id} not found", code="agent-not-found")
        return balance

    def _buy(self, tx, agent_id, symbol, quantity, price, reasoning, decision_id) -> Trade:
        balance = self._balance(tx, agent_id)
        amount = notional(quantity, price)
        commission = commission_for(amount)
        total_cost = amount + commission

        if balance < total_cost:
            raise SettlementError(
                f"Insufficient balance: need {total_cost}, have {balance}",
                code="insufficient-balance",
            )

        tx.debit_balance(agent_id, total_cost)

        existing = tx.get_position(agent_id, symbol)
        if existing is None:
            new_quantity = quantity
            new_invested = amount
        else:
            new_quantity = existing.quantity + quantity
            new_invested = to_money(existing.total_invested + amount)

        tx.save_position(Position(
            agent_id=agent_id,
            symbol=symbol,
            quantity=new_quantity,
            avg_buy_price=to_price(new_invested / new_quantity),
            total_invested=new_invested,
            updated_at=datetime.now(),
        ))

        return self._make_trade(agent_id, symbol, "BUY", quantity, price, amount, commission, reasoning, decision_id)

    def _sell(self, tx, agent_id, symbol, quantity, price, reasoning, decision_id) -> Trade:
        self._balance(tx, agent_id)

        existing = tx.get_position(agent_id, symbol)
        held = existing.quantity if existing else 0
        if held < quantity:
            raise SettlementError(
                f"Insufficient stocks: want to sell {quantity} {symbol}, hold {held}",
                code="insufficient-stocks",
            )

        amount = notional(quantity, price)
        commission = commission_for(amount)
        tx.credit_balance(agent_id, amount - commission)

        remaining = existing.quantity - quantity
        if remaining == 0:
            tx.delete_position(agent_id, symbol)
        else:
            # Cost basis shrinks proportionally; average price is unchanged.
            tx.save_position(Position(
                agent_id=agent_id,
                symbol=symbol,
                quantity=remaining,
                avg_buy_price=existing.avg_buy_price,
                total_invested=to_money(existing.total_invested * remaining / existing.quantity),
                updated_at=datetime.now(),
            ))

        return self._make_trade(agent_id, symbol, "SELL", quantity, price, amount, commission, reasoning, decision_id)

    @staticmethod
    def _make_trade(agent_id, symbol, side, quantity, price, amount, commission, reasoning, decision_id) -> Trade:
        return Trade(
            id=str(uuid.uuid4()),
            agent_id=agent_id,
            symbol=symbol,
            side=side,
            quantity=quantity,
            price=price,
            total_amount=amount,
            commission=commission,
            reasoning=reasoning or "",
            decision_id=decision_id,
            created_at=datetime.now(),
        )
