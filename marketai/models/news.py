"""News and social post data models."""

from datetime import datetime

from pydantic import BaseModel, Field


class NewsArticle(BaseModel):
    """Represents a market news item."""

    id: str = Field(..., min_length=1, description="Article ID")
    title: str = Field(..., min_length=1, description="Headline")
    description: str = Field(default="", description="Short description")
    source: str = Field(default="", description="Publisher")
    url: str = Field(default="", description="Article URL")
    related_stocks: list[str] = Field(default_factory=list, description="Mentioned symbols")
    published_at: datetime = Field(..., description="Publication timestamp")

    model_config = {"frozen": True}


class SocialPost(BaseModel):
    """A social media post mentioning one or more symbols."""

    id: str = Field(..., min_length=1, description="Post ID")
    author: str = Field(default="", description="Author handle")
    text: str = Field(..., description="Post text")
    stock_symbols: list[str] = Field(default_factory=list, description="Mentioned symbols")
    sentiment_score: float = Field(default=0.0, ge=-1, le=1, description="Sentiment (-1..1)")
    sentiment_label: str = Field(default="neutral", description="positive/neutral/negative")
    impact_score: float = Field(default=0.0, ge=0, description="Estimated market impact")
    created_at: datetime = Field(default_factory=datetime.now, description="Post timestamp")

    model_config = {"frozen": True}
