"""Fused market context: prices, social sentiment and top posts."""

import sqlite3
import time
from abc import ABC, abstractmethod
from typing import Optional

from marketai.db.store import LedgerStore
from marketai.market.reliability import SourceReliability
from marketai.models import MarketContext, PriceSnapshot, SocialPost, Stock, StockSentiment


class MarketContextSource(ABC):
    """Abstract source of a fused multi-source market snapshot."""

    @abstractmethod
    def market_context(self, symbols: list[str]) -> MarketContext:
        """Build a market context for the given symbols.

        Args:
            symbols: Symbols of interest.

        Returns:
            MarketContext, possibly empty.
        """
        pass


def aggregate_sentiment(posts: list[SocialPost], symbols: list[str]) -> dict[str, StockSentiment]:
    """Aggregate post sentiment per symbol.

    Every requested symbol gets an entry, even with no posts. Posts
    mentioning symbols outside ``symbols`` are ignored.
    """
    totals = {s: {"count": 0, "score": 0.0, "pos": 0, "neu": 0, "neg": 0} for s in symbols}
    for post in posts:
        for symbol in post.stock_symbols:
            agg = totals.get(symbol)
            if agg is None:
                continue
            agg["count"] += 1
            agg["score"] += post.sentiment_score
            if post.sentiment_label == "positive":
                agg["pos"] += 1
            elif post.sentiment_label == "negative":
                agg["neg"] += 1
            else:
                agg["neu"] += 1

    return {
        symbol: StockSentiment(
            symbol=symbol,
            post_count=agg["count"],
            avg_sentiment=agg["score"] / agg["count"] if agg["count"] else 0.0,
            positive_count=agg["pos"],
            neutral_count=agg["neu"],
            negative_count=agg["neg"],
        )
        for symbol, agg in totals.items()
    }


class StoreMarketContextSource(MarketContextSource):
    """Market context built from the ledger's stocks and social_posts tables.

    Results are cached per symbol set for ``cache_ttl`` seconds so that
    agents deciding in the same tick share one snapshot. Every price read
    is recorded in ``reliability`` and scored onto the snapshots.
    """

    PRICE_SOURCE = "ledger-quotes"

    def __init__(
        self,
        store: LedgerStore,
        window_hours: int = 24,
        top_posts: int = 3,
        cache_ttl: float = 0.0,
        reliability: Optional[SourceReliability] = None,
    ):
        self._store = store
        self.window_hours = window_hours
        self.top_posts = top_posts
        self.cache_ttl = cache_ttl
        self.reliability = reliability or SourceReliability()
        # (symbols key, monotonic time, context), replaced in one assignment
        self._cache: Optional[tuple[tuple[str, ...], float, MarketContext]] = None

    def market_context(self, symbols: list[str]) -> MarketContext:
        key = tuple(sorted(symbols))
        cached = self._cache
        if (
            self.cache_ttl > 0
            and cached is not None
            and cached[0] == key
            and time.monotonic() - cached[1] < self.cache_ttl
        ):
            return cached[2]

        stocks = self._fetch_prices(symbols)
        confidence = self.reliability.confidence(self.PRICE_SOURCE)
        prices = [
            PriceSnapshot(
                symbol=stock.symbol,
                price=stock.current_price,
                change_percent=stock.change_percent,
                volume=stock.volume,
                confidence_score=confidence,
            )
            for stock in stocks
        ]

        wanted = set(symbols)
        posts = [
            p for p in self._store.get_social_posts(window_hours=self.window_hours)
            if wanted.intersection(p.stock_symbols)
        ]
        top = sorted(posts, key=lambda p: p.impact_score, reverse=True)[: self.top_posts]

        context = MarketContext(
            prices=prices,
            sentiments=aggregate_sentiment(posts, symbols),
            top_posts=top,
        )
        self._cache = (key, time.monotonic(), context)
        return context

    def _fetch_prices(self, symbols: list[str]) -> list[Stock]:
        started = time.perf_counter()
        try:
            stocks = [s for s in (self._store.get_stock(symbol) for symbol in symbols) if s is not None]
        except sqlite3.Error:
            self.reliability.record(self.PRICE_SOURCE, time.perf_counter() - started, False)
            raise
        self.reliability.record(self.PRICE_SOURCE, time.perf_counter() - started, bool(stocks))
        return stocks
