"""Tests for decision parsing, prompt building and client registration.

**Feature: autonomous-trading-engine**
"""

import json
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from marketai.ai.base import DecisionClient, parse_decision
from marketai.ai.prompt import build_decision_prompt, format_time_ago
from marketai.ai.providers import PROVIDER_DEFAULTS, ProviderSettings
from marketai.ai.registry import ClientRegistry, build_registry
from marketai.engine.errors import ConfigError, DecisionClientError
from marketai.models import (
    Agent,
    DecisionRequest,
    MarketContext,
    NewsArticle,
    PositionView,
    PriceSnapshot,
    SocialPost,
    Stock,
    StockSentiment,
)


SAMPLE = {
    "action": "BUY",
    "stock_symbol": "THYAO",
    "quantity": 12,
    "target_price": 265.0,
    "stop_loss": 242.5,
    "reasoning_summary": "Breakout on volume",
    "reasoning_full": "Price cleared resistance with strong volume.",
    "confidence": 84,
    "risk_level": "medium",
    "thinking_steps": [
        {"step": "Market Analysis", "observation": "Uptrend"},
        {"step": "Decision", "observation": "Buy"},
    ],
}


class TestDecisionParsing:
    """
    **Feature: autonomous-trading-engine, Property 16: Tolerant Decision Parsing**

    Provider text wrapped in fences or prose still yields the decision;
    anything that is not a valid decision raises DecisionClientError.
    """

    def test_plain_json(self):
        decision = parse_decision(json.dumps(SAMPLE))
        assert decision.action == "BUY"
        assert decision.quantity == 12
        assert decision.stop_loss == Decimal("242.5")
        assert [s.step for s in decision.thinking_steps] == ["Market Analysis", "Decision"]

    def test_fenced_json_with_prose(self):
        text = "Here is my decision:\n```json\n" + json.dumps(SAMPLE) + "\n```\nGood luck!"
        assert parse_decision(text).stock_symbol == "THYAO"

    def test_normalizes_case_and_alias(self):
        data = {"action": " sell ", "symbol": "garan", "quantity": 3, "confidence": 75, "risk_level": "HIGH"}
        decision = parse_decision(json.dumps(data))
        assert decision.action == "SELL"
        assert decision.stock_symbol == "GARAN"
        assert decision.risk_level == "high"

    def test_hold_without_symbol(self):
        decision = parse_decision('{"action": "HOLD", "stock_symbol": null, "confidence": 40}')
        assert decision.is_hold
        assert decision.stock_symbol == ""
        assert decision.quantity == 0

    @pytest.mark.parametrize("text", [
        "",
        "I think you should buy THYAO",
        '{"action": "BUY", "stock_symbol": "THYAO"',
        '{"action": "SHORT", "stock_symbol": "THYAO", "confidence": 90}',
        '{"action": "BUY", "stock_symbol": "THYAO", "quantity": 2.5, "confidence": 90}',
        '{"action": "BUY", "stock_symbol": "THYAO", "quantity": 2, "confidence": 150}',
        '[{"action": "BUY"}]',
    ])
    def test_invalid_responses(self, text: str):
        with pytest.raises(DecisionClientError):
            parse_decision(text)

    @given(
        confidence=st.floats(min_value=0, max_value=100, allow_nan=False),
        quantity=st.integers(min_value=-1000, max_value=1000),
        prefix=st.text(alphabet="abc xyz.\n", max_size=40),
    )
    @settings(max_examples=50)
    def test_prose_prefix_ignored(self, confidence: float, quantity: int, prefix: str):
        """*For any* prose before the object, the fields parse unchanged."""
        data = {**SAMPLE, "confidence": confidence, "quantity": quantity}
        decision = parse_decision(prefix + json.dumps(data))
        assert decision.confidence == confidence
        assert decision.quantity == quantity


def make_request(**overrides) -> DecisionRequest:
    base = dict(
        agent_id="a1",
        agent_name="Claude",
        current_balance=Decimal("10000"),
        portfolio=[PositionView(
            symbol="AKBNK", quantity=20, avg_buy_price=Decimal("40"), total_invested=Decimal("800"),
            current_price=Decimal("45"), current_value=Decimal("900"),
            profit_loss=Decimal("100"), profit_loss_percent=12.5,
        )],
        stocks=[
            Stock(symbol="THYAO", name="Turk Hava Yollari", current_price=Decimal("250"), change_percent=1.5),
            Stock(symbol="SISE", name="Sisecam", current_price=Decimal("45"), change_percent=-0.8),
        ],
    )
    base.update(overrides)
    return DecisionRequest(**base)


class TestPromptBuilding:
    """Prompt sections reflect the gathered context."""

    def test_core_sections(self):
        prompt = build_decision_prompt(make_request())

        assert "=== AGENT STATUS ===" in prompt
        assert "Name: Claude" in prompt
        assert "Available Balance: 10000.00 TL" in prompt
        assert "- AKBNK: 20 lots @ 40.00 TL avg" in prompt
        assert "Max Per Trade: 500.00 TL" in prompt
        # 500 / 250 = 2 lots, 500 / 45 = 11 lots
        assert "- THYAO: 250.00 TL | Max lots: 2" in prompt
        assert "- SISE: 45.00 TL | Max lots: 11" in prompt
        assert "No significant recent news." in prompt
        assert "=== MARKET CONTEXT ===" not in prompt
        assert prompt.rstrip().endswith("Reply with the JSON object only.")

    def test_empty_portfolio(self):
        assert "No positions" in build_decision_prompt(make_request(portfolio=[]))

    def test_news_is_truncated_and_bounded(self):
        news = [
            NewsArticle(
                id=str(i), title=f"Headline {i}", source="AA", description="x" * 300,
                related_stocks=["THYAO"], published_at=datetime.now() - timedelta(minutes=5),
            )
            for i in range(15)
        ]
        prompt = build_decision_prompt(make_request(news=news))

        assert "Total: 15 articles" in prompt
        assert "10. [5m ago] [AA] Headline 9" in prompt
        assert "Headline 10" not in prompt
        assert "x" * 150 + "..." in prompt
        assert "x" * 151 not in prompt

    def test_market_context_section(self):
        context = MarketContext(
            prices=[PriceSnapshot(symbol="THYAO", price=Decimal("250"), change_percent=2.0, volume=5000)],
            sentiments={"THYAO": StockSentiment(symbol="THYAO", post_count=3, avg_sentiment=0.4, positive_count=2, neutral_count=1)},
            top_posts=[SocialPost(id="p", author="analyst", text="y" * 200, stock_symbols=["THYAO"])],
        )
        prompt = build_decision_prompt(make_request(market_context=context))

        assert "=== MARKET CONTEXT ===" in prompt
        assert "- THYAO: avg +0.40 over 3 posts" in prompt
        assert "@analyst: " + "y" * 140 + "..." in prompt
        assert "consider sentiment extremes and sudden volume spikes" in prompt

    @pytest.mark.parametrize("delta,expected", [
        (timedelta(seconds=10), "just now"),
        (timedelta(minutes=42), "42m ago"),
        (timedelta(hours=3, minutes=5), "3h ago"),
        (timedelta(days=2), "2d ago"),
    ])
    def test_time_ago(self, delta, expected):
        now = datetime(2024, 5, 1, 12, 0, 0)
        assert format_time_ago(now - delta, now=now) == expected


class StubClient(DecisionClient):
    def __init__(self, settings: ProviderSettings, model: str):
        self.settings = settings
        self.model = model

    async def get_trading_decision(self, prompt):
        raise NotImplementedError

    def get_model_name(self) -> str:
        return self.model


def make_agent(provider: str, model: str, status: str = "active") -> Agent:
    return Agent(
        id=str(uuid.uuid4()),
        name=f"{provider}-{model}",
        model=model,
        provider=provider,
        status=status,
        initial_balance=Decimal("100000"),
        current_balance=Decimal("100000"),
    )


def providers_with_keys(**keys) -> dict[str, ProviderSettings]:
    return {
        kind: defaults.model_copy(update={"api_key": keys.get(kind, "")})
        for kind, defaults in PROVIDER_DEFAULTS.items()
    }


class TestClientRegistration:
    """
    **Feature: autonomous-trading-engine, Property 17: Provider Dispatch**

    Clients are chosen by provider kind; premium models need opting in
    and a missing key for a needed provider fails fast.
    """

    def test_registers_by_provider(self):
        agents = [make_agent("deepseek", "deepseek-chat"), make_agent("groq", "llama-3.1-70b-versatile")]
        registry = build_registry(
            agents, providers_with_keys(deepseek="k1", groq="k2"), factory=StubClient
        )

        assert len(registry) == 2
        assert registry.get(agents[0].id).settings.kind == "deepseek"
        assert registry.get(agents[1].id).settings.api_key == "k2"

    def test_premium_skipped_unless_enabled(self):
        premium = make_agent("openai", "gpt-4o")
        budget = make_agent("openai", "gpt-4o-mini")
        providers = providers_with_keys(openai="sk-test")

        registry = build_registry([premium, budget], providers, factory=StubClient)
        assert premium.id not in registry
        assert budget.id in registry

        registry = build_registry([premium, budget], providers, enable_premium_models=True, factory=StubClient)
        assert premium.id in registry

    def test_missing_key_fails_fast(self):
        with pytest.raises(ConfigError):
            build_registry([make_agent("mistral", "open-mixtral-8x7b")], providers_with_keys(), factory=StubClient)

    def test_inactive_agents_ignored(self):
        agent = make_agent("mistral", "open-mixtral-8x7b", status="inactive")
        registry = build_registry([agent], providers_with_keys(), factory=StubClient)
        assert len(registry) == 0

    def test_shared_client_per_model(self):
        first = make_agent("google", "gemini-1.5-flash")
        second = make_agent("google", "gemini-1.5-flash")
        registry = build_registry([first, second], providers_with_keys(google="g"), factory=StubClient)
        assert registry.get(first.id) is registry.get(second.id)

    def test_registry_operations(self):
        registry = ClientRegistry()
        client = StubClient(PROVIDER_DEFAULTS["xai"], "grok-beta")
        registry.register("a", client)
        assert registry.get("a") is client
        assert registry.agent_ids() == ["a"]
        registry.unregister("a")
        registry.unregister("a")
        assert registry.get("a") is None
