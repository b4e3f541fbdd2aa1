"""Decision loop, risk validation and settlement for MarketAI.

The scheduler lives in marketai.engine.scheduler and is imported from
there directly; it depends on marketai.ai, which in turn depends on the
error types exported here.
"""

from marketai.engine.context import ContextGatherer
from marketai.engine.errors import (
    ConfigError,
    ContextUnavailable,
    DecisionClientError,
    MarketAIError,
    SettlementError,
    TradeRejected,
)
from marketai.engine.events import EVENT_TYPES, Event, EventBus, EventSink
from marketai.engine.risk import RiskLimits, RiskValidator
from marketai.engine.settlement import TradingEngine

__all__ = [
    "ConfigError",
    "ContextGatherer",
    "ContextUnavailable",
    "DecisionClientError",
    "EVENT_TYPES",
    "Event",
    "EventBus",
    "EventSink",
    "MarketAIError",
    "RiskLimits",
    "RiskValidator",
    "SettlementError",
    "TradeRejected",
    "TradingEngine",
]
