"""AI provider defaults.

Every provider is reached through an OpenAI-compatible chat completions
endpoint, so one client class serves all of them; only the base URL,
credentials and model differ.
"""

from typing import Optional

from pydantic import BaseModel, Field

from marketai.models import ProviderKind


class ProviderSettings(BaseModel):
    """Resolved connection settings for one provider kind."""

    kind: ProviderKind = Field(..., description="Provider kind")
    base_url: Optional[str] = Field(default=None, description="OpenAI-compatible endpoint")
    api_key: str = Field(default="", description="API key")
    api_key_env: str = Field(..., description="Environment variable holding the API key")
    model: str = Field(..., description="Default model identifier")
    premium_models: list[str] = Field(
        default_factory=list, description="Models only enabled with premium models on"
    )

    model_config = {"frozen": True}

    def is_premium(self, model: str) -> bool:
        return model in self.premium_models


PROVIDER_DEFAULTS: dict[str, ProviderSettings] = {
    "openai": ProviderSettings(
        kind="openai",
        base_url=None,
        api_key_env="OPENAI_API_KEY",
        model="gpt-4o",
        premium_models=["gpt-4o", "gpt-4-turbo"],
    ),
    "anthropic": ProviderSettings(
        kind="anthropic",
        base_url="https://api.anthropic.com/v1/",
        api_key_env="ANTHROPIC_API_KEY",
        model="claude-3-5-sonnet-latest",
        premium_models=["claude-3-5-sonnet-latest", "claude-3-opus-latest"],
    ),
    "google": ProviderSettings(
        kind="google",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
        api_key_env="GOOGLE_API_KEY",
        model="gemini-1.5-flash",
    ),
    "deepseek": ProviderSettings(
        kind="deepseek",
        base_url="https://api.deepseek.com",
        api_key_env="DEEPSEEK_API_KEY",
        model="deepseek-chat",
    ),
    "groq": ProviderSettings(
        kind="groq",
        base_url="https://api.groq.com/openai/v1",
        api_key_env="GROQ_API_KEY",
        model="llama-3.1-70b-versatile",
    ),
    "mistral": ProviderSettings(
        kind="mistral",
        base_url="https://api.mistral.ai/v1",
        api_key_env="MISTRAL_API_KEY",
        model="open-mixtral-8x7b",
    ),
    "xai": ProviderSettings(
        kind="xai",
        base_url="https://api.x.ai/v1",
        api_key_env="XAI_API_KEY",
        model="grok-beta",
        premium_models=["grok-beta"],
    ),
}
