"""Decision data models."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


DecisionAction = Literal["BUY", "SELL", "HOLD"]
RiskLevel = Literal["low", "medium", "high"]
DecisionOutcome = Literal["pending", "hold", "rejected", "failed", "executed"]


class ThinkingStep(BaseModel):
    """One step of the provider's reasoning."""

    step: str = Field(default="", description="Step name")
    observation: str = Field(default="", description="What was observed")

    model_config = {"frozen": True}


class Decision(BaseModel):
    """A trading recommendation produced by an AI provider.

    Quantity is deliberately unconstrained here; the risk validator is
    the component that rejects non-positive quantities.
    """

    action: DecisionAction = Field(..., description="BUY, SELL or HOLD")
    stock_symbol: str = Field(
        default="",
        validation_alias=AliasChoices("stock_symbol", "symbol"),
        description="Trading symbol",
    )
    quantity: int = Field(default=0, description="Lots to trade")
    target_price: Optional[Decimal] = Field(default=None, description="Target price")
    stop_loss: Optional[Decimal] = Field(default=None, description="Stop loss price")
    reasoning_summary: str = Field(default="", description="One-line reasoning")
    reasoning_full: str = Field(default="", description="Detailed reasoning")
    confidence: float = Field(..., ge=0, le=100, description="Confidence score (0-100)")
    risk_level: RiskLevel = Field(default="medium", description="Self-assessed risk")
    thinking_steps: list[ThinkingStep] = Field(
        default_factory=list, description="Ordered reasoning steps"
    )

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("action", mode="before")
    @classmethod
    def _upper_action(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("stock_symbol", mode="before")
    @classmethod
    def _upper_symbol(cls, value):
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("risk_level", mode="before")
    @classmethod
    def _lower_risk(cls, value):
        if value is None:
            return "medium"
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def is_hold(self) -> bool:
        return self.action == "HOLD"


class DecisionRecord(BaseModel):
    """A persisted decision plus its terminal outcome."""

    id: str = Field(..., min_length=1, description="Decision UUID")
    agent_id: str = Field(..., min_length=1, description="Deciding agent ID")
    action: DecisionAction
    stock_symbol: str = ""
    quantity: int = 0
    target_price: Optional[Decimal] = None
    stop_loss: Optional[Decimal] = None
    reasoning_summary: str = ""
    reasoning_full: str = ""
    confidence: float = 0.0
    risk_score: float = 0.0
    risk_level: RiskLevel = "medium"
    outcome: DecisionOutcome = "pending"
    trade_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    thinking_steps: list[ThinkingStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = {"frozen": True}
