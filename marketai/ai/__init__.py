"""AI decision clients for MarketAI.

- DecisionClient: provider-agnostic interface
- AgentsDecisionClient: OpenAI Agents SDK client for OpenAI-compatible endpoints
- ClientRegistry: agent ID to client mapping
"""

from marketai.ai.base import DecisionClient, extract_json, parse_decision
from marketai.ai.prompt import DECISION_INSTRUCTIONS, build_decision_prompt
from marketai.ai.providers import PROVIDER_DEFAULTS, ProviderSettings
from marketai.ai.registry import ClientRegistry, build_registry

__all__ = [
    "ClientRegistry",
    "DECISION_INSTRUCTIONS",
    "DecisionClient",
    "PROVIDER_DEFAULTS",
    "ProviderSettings",
    "build_decision_prompt",
    "build_registry",
    "extract_json",
    "parse_decision",
]
