"""Decision client interface and response parsing."""

import json
import re
from abc import ABC, abstractmethod

from pydantic import ValidationError

from marketai.engine.errors import DecisionClientError
from marketai.models import Decision


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class DecisionClient(ABC):
    """Abstract AI provider that turns a prompt into a trading decision."""

    @abstractmethod
    async def get_trading_decision(self, prompt: str) -> Decision:
        """Ask the provider for a decision.

        Args:
            prompt: Fully rendered decision prompt.

        Returns:
            Parsed Decision.

        Raises:
            DecisionClientError: On provider failure or an unusable response.
        """
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the model identifier backing this client."""
        pass


def extract_json(text: str) -> str:
    """Pull the JSON object out of a model response.

    Handles fenced code blocks and prose before or after the object.

    Raises:
        DecisionClientError: If no JSON object is present.
    """
    if not text or not text.strip():
        raise DecisionClientError("Empty response from provider")

    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise DecisionClientError(f"No JSON object in response: {text[:200]!r}")
    return text[start:end + 1]


def parse_decision(text: str) -> Decision:
    """Parse a provider response into a validated Decision.

    Args:
        text: Raw model output.

    Returns:
        Decision.

    Raises:
        DecisionClientError: If the response is not a valid decision.
    """
    raw = extract_json(text)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecisionClientError(f"Invalid JSON in response: {e}") from e
    if not isinstance(data, dict):
        raise DecisionClientError("Decision JSON must be an object")

    try:
        return Decision.model_validate(data)
    except ValidationError as e:
        raise DecisionClientError(f"Invalid decision: {e.error_count()} validation error(s): {e}") from e
