"""Stock quote data model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Stock(BaseModel):
    """Represents a tradeable BIST symbol and its latest quote."""

    symbol: str = Field(..., min_length=1, description="Trading symbol")
    name: str = Field(default="", description="Company name")
    current_price: Decimal = Field(..., gt=0, description="Latest price")
    previous_close: Decimal = Field(default=Decimal("0"), ge=0, description="Previous close")
    change_percent: float = Field(default=0.0, description="Percentage change")
    volume: int = Field(default=0, ge=0, description="Trading volume")
    is_active: bool = Field(default=True, description="Whether the symbol is tradeable")
    last_updated: datetime = Field(
        default_factory=datetime.now, description="Quote timestamp"
    )

    model_config = {"frozen": True}
