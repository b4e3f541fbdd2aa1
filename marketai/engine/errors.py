"""Exception types for the decision loop and settlement engine."""

from typing import Optional


class MarketAIError(Exception):
    """Base class for MarketAI errors.

    Every error carries a stable ``code`` string so callers (logs,
    events, tests) can branch on the kind of failure without parsing
    the human-readable message.
    """

    code = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ConfigError(MarketAIError):
    """Invalid or incomplete configuration, raised at startup."""

    code = "config-error"


class TradeRejected(MarketAIError):
    """A decision failed a risk rule. A normal outcome, not a fault."""

    code = "rejected"


class SettlementError(MarketAIError):
    """Settlement aborted; the ledger transaction was rolled back."""

    code = "settlement-error"


class ContextUnavailable(MarketAIError):
    """A mandatory context sub-source could not be read."""

    code = "context-unavailable"


class DecisionClientError(MarketAIError):
    """The AI provider failed or returned an unusable response."""

    code = "decision-client-error"
