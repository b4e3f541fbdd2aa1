"""Risk validation for AI trading decisions."""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from marketai.db.store import LedgerStore
from marketai.engine.errors import TradeRejected
from marketai.engine.money import commission_for, max_affordable_quantity, notional, to_decimal
from marketai.models import Decision


logger = logging.getLogger(__name__)


class RiskLimits(BaseModel):
    """Process-wide risk limits, read-only after startup."""

    max_risk_per_trade_pct: float = Field(
        default=5.0, gt=0, le=100, description="Max notional per trade, % of cash balance"
    )
    max_portfolio_risk_pct: float = Field(
        default=20.0, gt=0, le=100, description="Max share of total value held in positions"
    )
    min_confidence: float = Field(
        default=70.0, ge=0, le=100, description="Minimum decision confidence"
    )

    model_config = {"frozen": True}


class RiskValidator:
    """Accepts or rejects a decision before it reaches settlement.

    Rules run in a fixed order and the first failing rule wins. The
    quantity and confidence rules need no ledger reads, so a
    low-confidence decision never touches the store. SELL decisions are
    only checked by those two rules; holdings are enforced at settlement.
    The validator never writes.
    """

    def __init__(self, store: LedgerStore, limits: Optional[RiskLimits] = None):
        """Initialize the validator.

        Args:
            store: Ledger store for price, balance and portfolio reads.
            limits: Risk limits. Defaults to RiskLimits().
        """
        self._store = store
        self.limits = limits or RiskLimits()

    def validate(self, agent_id: str, decision: Decision) -> None:
        """Check a BUY or SELL decision against the risk limits.

        Args:
            agent_id: Deciding agent ID.
            decision: Decision to check.

        Raises:
            TradeRejected: With the code of the first rule that fails.
        """
        if decision.quantity <= 0:
            raise TradeRejected(
                f"Quantity must be a positive integer, got {decision.quantity}",
                code="invalid-quantity",
            )

        if decision.confidence < self.limits.min_confidence:
            raise TradeRejected(
                f"Confidence {decision.confidence:.1f} below minimum {self.limits.min_confidence:.1f}",
                code="low-confidence",
            )

        if decision.action != "BUY":
            return

        price = self._store.get_stock_price(decision.stock_symbol) if decision.stock_symbol else None
        if price is None:
            raise TradeRejected(
                f"Unknown symbol: {decision.stock_symbol or '<empty>'}",
                code="unknown-symbol",
            )

        balance = self._store.get_agent_balance(agent_id)
        if balance is None:
            raise TradeRejected(f"Unknown agent: {agent_id}", code="unknown-agent")

        amount = notional(decision.quantity, price)

        max_per_trade = balance * to_decimal(self.limits.max_risk_per_trade_pct) / Decimal(100)
        if amount > max_per_trade:
            raise TradeRejected(
                f"Trade value {amount} exceeds {self.limits.max_risk_per_trade_pct:.1f}% "
                f"of balance (max {max_per_trade:.2f})",
                code="trade-too-large",
            )

        total_cost = amount + commission_for(amount)
        if total_cost > balance:
            affordable = max_affordable_quantity(balance, price)
            raise TradeRejected(
                f"Insufficient balance: need {total_cost}, have {balance}. "
                f"Max affordable quantity at {price}: {affordable}",
                code="insufficient-balance",
            )

        portfolio_value = self._store.get_portfolio_value(agent_id)
        total_value = balance + portfolio_value
        if total_value > 0:
            concentration = (portfolio_value + amount) / total_value * 100
            if concentration > to_decimal(self.limits.max_portfolio_risk_pct):
                raise TradeRejected(
                    f"Portfolio concentration would be {concentration:.2f}%, "
                    f"above {self.limits.max_portfolio_risk_pct:.1f}%",
                    code="concentration-exceeded",
                )

        logger.debug(
            "%s %d %s passed risk checks for agent %s",
            decision.action, decision.quantity, decision.stock_symbol, agent_id,
        )

    async def validate_async(self, agent_id: str, decision: Decision) -> None:
        """Run :meth:`validate` in a worker thread."""
        await asyncio.to_thread(self.validate, agent_id, decision)
