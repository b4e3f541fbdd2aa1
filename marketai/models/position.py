"""Position data models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Position(BaseModel):
    """Represents an agent's holding of one symbol."""

    agent_id: str = Field(..., min_length=1, description="Owning agent ID")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    quantity: int = Field(..., ge=0, description="Lots held")
    avg_buy_price: Decimal = Field(..., ge=0, description="Weighted average buy price")
    total_invested: Decimal = Field(..., ge=0, description="Cost basis")
    updated_at: datetime = Field(
        default_factory=datetime.now, description="Last update timestamp"
    )

    model_config = {"frozen": True}


class PositionView(BaseModel):
    """A position priced at the latest market quote."""

    symbol: str = Field(..., min_length=1, description="Trading symbol")
    quantity: int = Field(..., ge=0, description="Lots held")
    avg_buy_price: Decimal = Field(..., ge=0, description="Weighted average buy price")
    total_invested: Decimal = Field(..., ge=0, description="Cost basis")
    current_price: Decimal = Field(..., ge=0, description="Latest price")
    current_value: Decimal = Field(..., ge=0, description="Quantity x latest price")
    profit_loss: Decimal = Field(..., description="Unrealized P/L")
    profit_loss_percent: float = Field(..., description="Unrealized P/L percentage")

    model_config = {"frozen": True}


class PortfolioSummary(BaseModel):
    """Cash plus priced holdings for one agent."""

    agent_id: str
    agent_name: str
    current_balance: Decimal
    portfolio_value: Decimal
    total_value: Decimal
    total_profit_loss: Decimal
    profit_loss_percent: float
    holdings: list[PositionView] = Field(default_factory=list)

    model_config = {"frozen": True}
