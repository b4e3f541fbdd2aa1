"""Random-walk price simulator for running without a live quote feed."""

import asyncio
import logging
import random
from datetime import datetime
from typing import Optional

from marketai.db.store import LedgerStore
from marketai.engine.money import CENT, to_decimal, to_money
from marketai.models import Stock


logger = logging.getLogger(__name__)


class MarketSimulator:
    """Moves every active quote by a random percentage on each tick.

    Each step draws a change uniformly from ``[-max_change_pct,
    max_change_pct)``, applies it to the current price and stores the
    new quote with the old price as previous close.
    """

    def __init__(
        self,
        store: LedgerStore,
        interval: float = 5.0,
        max_change_pct: float = 2.0,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the simulator.

        Args:
            store: Ledger store holding the quotes.
            interval: Seconds between steps.
            max_change_pct: Largest absolute change per step, in percent.
            rng: Random source for the price moves.
        """
        self._store = store
        self.interval = interval
        self.max_change_pct = max_change_pct
        self._rng = rng or random.Random()
        self._stop = asyncio.Event()

    def stop(self) -> None:
        self._stop.set()

    def step(self) -> list[Stock]:
        """Apply one random move to every active stock.

        Returns:
            The updated quotes.
        """
        updated = []
        for stock in self._store.list_stocks(active_only=True):
            change = (self._rng.random() - 0.5) * 2 * self.max_change_pct
            new_price = to_money(stock.current_price * (1 + to_decimal(change) / 100))
            # Never let a quote round down to zero.
            new_price = max(new_price, CENT)
            quote = stock.model_copy(update={
                "current_price": new_price,
                "previous_close": stock.current_price,
                "change_percent": float((new_price - stock.current_price) / stock.current_price * 100),
                "last_updated": datetime.now(),
            })
            self._store.upsert_stock(quote)
            updated.append(quote)

        logger.debug("Simulated %d price update(s)", len(updated))
        return updated

    async def run(self) -> None:
        """Step every ``interval`` seconds until stop() is called."""
        logger.info("Market simulator started (%.1fs ticks, +/-%.1f%%)", self.interval, self.max_change_pct)
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            if self._stop.is_set():
                break
            try:
                await asyncio.to_thread(self.step)
            except Exception:
                logger.exception("Price simulation step failed")
        logger.info("Market simulator stopped")
