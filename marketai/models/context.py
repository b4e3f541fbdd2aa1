"""Decision context data models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from marketai.models.news import NewsArticle, SocialPost
from marketai.models.position import PositionView
from marketai.models.stock import Stock
from marketai.models.trade import Trade


class PriceSnapshot(BaseModel):
    """Latest price of one symbol as seen by the fused context."""

    symbol: str
    price: Decimal
    change_percent: float = 0.0
    volume: int = 0
    confidence_score: Optional[float] = None

    model_config = {"frozen": True}


class StockSentiment(BaseModel):
    """Aggregated social sentiment for one symbol."""

    symbol: str
    post_count: int = 0
    avg_sentiment: float = 0.0
    positive_count: int = 0
    neutral_count: int = 0
    negative_count: int = 0

    model_config = {"frozen": True}


class MarketContext(BaseModel):
    """Fused multi-source market snapshot."""

    prices: list[PriceSnapshot] = Field(default_factory=list)
    sentiments: dict[str, StockSentiment] = Field(default_factory=dict)
    top_posts: list[SocialPost] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not (self.prices or self.sentiments or self.top_posts)


class DecisionRequest(BaseModel):
    """Everything a decision client needs to make one decision."""

    agent_id: str
    agent_name: str
    current_balance: Decimal
    strategy: str = "balanced"
    portfolio: list[PositionView] = Field(default_factory=list)
    stocks: list[Stock] = Field(default_factory=list)
    recent_trades: list[Trade] = Field(default_factory=list)
    news: list[NewsArticle] = Field(default_factory=list)
    market_context: Optional[MarketContext] = None
    max_risk_per_trade_pct: float = 5.0

    model_config = {"frozen": True}
