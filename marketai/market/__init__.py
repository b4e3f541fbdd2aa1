"""Market data sources for MarketAI.

The price simulator lives in ``marketai.market.simulator`` and is not
re-exported here: it depends on ``marketai.engine``, which imports this
package.
"""

from marketai.market.context import (
    MarketContextSource,
    StoreMarketContextSource,
    aggregate_sentiment,
)
from marketai.market.news import NewsSource, StoreNewsSource
from marketai.market.reliability import SourceReliability, SourceStats, compute_confidence

__all__ = [
    "MarketContextSource",
    "StoreMarketContextSource",
    "aggregate_sentiment",
    "NewsSource",
    "StoreNewsSource",
    "SourceReliability",
    "SourceStats",
    "compute_confidence",
]
