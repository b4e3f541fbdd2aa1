"""Decision client built on the OpenAI Agents SDK."""

import logging
import os
from typing import Optional

# Disable tracing to avoid noisy 503 errors from telemetry
os.environ.setdefault("OPENAI_AGENTS_DISABLE_TRACING", "1")

from agents import Agent, OpenAIChatCompletionsModel, Runner
from openai import AsyncOpenAI

from marketai.ai.base import DecisionClient, parse_decision
from marketai.ai.prompt import DECISION_INSTRUCTIONS
from marketai.ai.providers import ProviderSettings
from marketai.engine.errors import DecisionClientError
from marketai.models import Decision


logger = logging.getLogger(__name__)


class AgentsDecisionClient(DecisionClient):
    """Asks one provider model for trading decisions.

    The provider is reached through its OpenAI-compatible endpoint using
    the Agents SDK chat completions model, so the same class serves
    every provider kind.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        model: Optional[str] = None,
        instructions: str = DECISION_INSTRUCTIONS,
    ):
        """Initialize the client.

        Args:
            settings: Resolved provider settings (endpoint and API key).
            model: Model override. Defaults to the provider's model.
            instructions: System instructions for the decision agent.

        Raises:
            DecisionClientError: If the provider has no API key.
        """
        if not settings.api_key:
            raise DecisionClientError(
                f"No API key for provider {settings.kind} (set {settings.api_key_env})"
            )
        self.settings = settings
        self.model = model or settings.model

        openai_client = AsyncOpenAI(base_url=settings.base_url, api_key=settings.api_key)
        self._agent = Agent(
            name=f"{settings.kind}-trader",
            instructions=instructions,
            model=OpenAIChatCompletionsModel(model=self.model, openai_client=openai_client),
        )

    def get_model_name(self) -> str:
        return self.model

    async def get_trading_decision(self, prompt: str) -> Decision:
        logger.debug("Requesting decision from %s/%s", self.settings.kind, self.model)
        try:
            result = await Runner.run(self._agent, prompt)
        except Exception as e:
            raise DecisionClientError(
                f"{self.settings.kind}/{self.model} request failed: {e}"
            ) from e

        output = result.final_output
        if not isinstance(output, str):
            output = str(output)
        return parse_decision(output)
