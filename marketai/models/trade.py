"""Trade data model."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


TradeSide = Literal["BUY", "SELL"]


class Trade(BaseModel):
    """Represents an executed trade. Never mutated after creation."""

    id: str = Field(..., min_length=1, description="Trade UUID")
    agent_id: str = Field(..., min_length=1, description="Executing agent ID")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    side: TradeSide = Field(..., description="Trade side (BUY/SELL)")
    quantity: int = Field(..., gt=0, description="Trade quantity")
    price: Decimal = Field(..., gt=0, description="Execution price")
    total_amount: Decimal = Field(..., ge=0, description="Gross notional")
    commission: Decimal = Field(..., ge=0, description="Commission charged")
    reasoning: str = Field(default="", description="Free-text reasoning")
    decision_id: Optional[str] = Field(default=None, description="Originating decision")
    created_at: datetime = Field(
        default_factory=datetime.now, description="Execution timestamp"
    )

    model_config = {"frozen": True}
