"""Agent data model."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


ProviderKind = Literal[
    "openai",
    "anthropic",
    "google",
    "deepseek",
    "groq",
    "mistral",
    "xai",
]

AgentStatus = Literal["active", "inactive"]


class Agent(BaseModel):
    """Represents a simulated trading persona backed by one AI provider."""

    id: str = Field(..., min_length=1, description="Agent UUID")
    name: str = Field(..., min_length=1, description="Display name")
    model: str = Field(..., min_length=1, description="Model identifier")
    provider: ProviderKind = Field(..., description="AI provider kind")
    status: AgentStatus = Field(default="active", description="Agent status")
    initial_balance: Decimal = Field(..., ge=0, description="Starting cash balance")
    current_balance: Decimal = Field(..., ge=0, description="Current cash balance")
    created_at: datetime = Field(
        default_factory=datetime.now, description="Creation timestamp"
    )
    updated_at: datetime = Field(
        default_factory=datetime.now, description="Last update timestamp"
    )

    model_config = {"frozen": True}

    @property
    def is_active(self) -> bool:
        return self.status == "active"
