"""Mapping from agent ID to decision client."""

import logging
from typing import Callable, Iterable, Optional

from marketai.ai.base import DecisionClient
from marketai.ai.providers import ProviderSettings
from marketai.engine.errors import ConfigError
from marketai.models import Agent


logger = logging.getLogger(__name__)


class ClientRegistry:
    """Agent ID to DecisionClient map owned by the agent engine."""

    def __init__(self):
        self._clients: dict[str, DecisionClient] = {}

    def register(self, agent_id: str, client: DecisionClient) -> None:
        self._clients[agent_id] = client

    def unregister(self, agent_id: str) -> None:
        self._clients.pop(agent_id, None)

    def get(self, agent_id: str) -> Optional[DecisionClient]:
        return self._clients.get(agent_id)

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def agent_ids(self) -> list[str]:
        return list(self._clients)


ClientFactory = Callable[[ProviderSettings, str], DecisionClient]


def _default_factory(settings: ProviderSettings, model: str) -> DecisionClient:
    from marketai.ai.client import AgentsDecisionClient

    return AgentsDecisionClient(settings, model=model)


def build_registry(
    agents: Iterable[Agent],
    providers: dict[str, ProviderSettings],
    enable_premium_models: bool = False,
    factory: Optional[ClientFactory] = None,
) -> ClientRegistry:
    """Create a decision client for every active agent.

    Dispatch uses the agent's ``provider`` field. Agents on a premium
    model are skipped unless premium models are enabled. Agents sharing
    a provider and model share one client.

    Args:
        agents: Agents to register. Inactive agents are ignored.
        providers: Resolved settings per provider kind.
        enable_premium_models: Register agents on premium models too.
        factory: Client constructor, for tests. Defaults to AgentsDecisionClient.

    Returns:
        Populated ClientRegistry.

    Raises:
        ConfigError: If a provider needed by an active agent has no API key.
    """
    factory = factory or _default_factory
    registry = ClientRegistry()
    shared: dict[tuple[str, str], DecisionClient] = {}

    for agent in agents:
        if not agent.is_active:
            continue

        settings = providers.get(agent.provider)
        if settings is None:
            raise ConfigError(f"No provider settings for {agent.provider} (agent {agent.name})")

        if settings.is_premium(agent.model) and not enable_premium_models:
            logger.info("Skipping %s: %s is a premium model", agent.name, agent.model)
            continue

        if not settings.api_key:
            raise ConfigError(
                f"Agent {agent.name} needs provider {agent.provider} but "
                f"{settings.api_key_env} is not set"
            )

        key = (agent.provider, agent.model)
        if key not in shared:
            shared[key] = factory(settings, agent.model)
        registry.register(agent.id, shared[key])
        logger.info("Registered %s (%s/%s)", agent.name, agent.provider, agent.model)

    return registry
