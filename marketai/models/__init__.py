"""Data models for MarketAI."""

from marketai.models.agent import Agent, AgentStatus, ProviderKind
from marketai.models.context import (
    DecisionRequest,
    MarketContext,
    PriceSnapshot,
    StockSentiment,
)
from marketai.models.decision import Decision, DecisionRecord, ThinkingStep
from marketai.models.news import NewsArticle, SocialPost
from marketai.models.position import PortfolioSummary, Position, PositionView
from marketai.models.stock import Stock
from marketai.models.trade import Trade, TradeSide

__all__ = [
    "Agent",
    "AgentStatus",
    "ProviderKind",
    "Decision",
    "DecisionRecord",
    "ThinkingStep",
    "DecisionRequest",
    "MarketContext",
    "PriceSnapshot",
    "StockSentiment",
    "NewsArticle",
    "SocialPost",
    "Position",
    "PositionView",
    "PortfolioSummary",
    "Stock",
    "Trade",
    "TradeSide",
]
