"""Prompt construction for trading decisions."""

from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from marketai.models import DecisionRequest, MarketContext, NewsArticle


DECISION_INSTRUCTIONS = """You are a professional Borsa Istanbul (BIST) equity trader.
Your goal is to grow the portfolio while keeping risk under control.

Respond ONLY with a single JSON object in exactly this format:
{
  "action": "BUY|SELL|HOLD",
  "stock_symbol": "THYAO",
  "quantity": 10,
  "target_price": 260.00,
  "stop_loss": 245.00,
  "reasoning_summary": "One-line explanation",
  "reasoning_full": "Detailed analysis",
  "confidence": 80,
  "risk_level": "low|medium|high",
  "thinking_steps": [
    {"step": "Market Analysis", "observation": "What you saw"},
    {"step": "Decision", "observation": "Why you decided"}
  ]
}

Rules:
- Never commit more than the stated per-trade limit of your balance
- Quantity is a whole number of lots
- Always set a stop loss
- Only trade when your confidence is above 70
- Choose HOLD when uncertain
- Weigh the news carefully; major headlines can move prices 10% or more
- Keep the portfolio diversified
"""

CONTEXT_NOTE = (
    "Context aggregated from multi-source feed; consider sentiment extremes "
    "and sudden volume spikes."
)

MAX_NEWS = 10
MAX_RECENT_TRADES = 3
MAX_CONTEXT_PRICES = 5
MAX_CONTEXT_SENTIMENTS = 5
MAX_TOP_POSTS = 3


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def format_time_ago(when: datetime, now: Optional[datetime] = None) -> str:
    """Format the age of a timestamp as '5m ago' / '2h ago' / '1d ago'."""
    seconds = max(((now or datetime.now()) - when).total_seconds(), 0)
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    return f"{int(seconds // 86400)}d ago"


def _news_lines(news: list[NewsArticle]) -> list[str]:
    lines = ["=== LATEST NEWS ==="]
    if not news:
        lines.append("No significant recent news.")
        return lines

    lines.append(f"Total: {len(news)} articles (showing up to {MAX_NEWS})")
    for i, article in enumerate(news[:MAX_NEWS], start=1):
        lines.append(f"{i}. [{format_time_ago(article.published_at)}] [{article.source}] {article.title}")
        if article.description:
            lines.append(f"   {_truncate(article.description, 150)}")
        if article.related_stocks:
            lines.append(f"   Related: {', '.join(article.related_stocks)}")
    return lines


def _context_lines(context: MarketContext) -> list[str]:
    lines = ["=== MARKET CONTEXT ==="]
    if context.prices:
        lines.append("Prices:")
        for p in context.prices[:MAX_CONTEXT_PRICES]:
            line = f"- {p.symbol}: {p.price:.2f} TL ({p.change_percent:+.2f}%) | Volume: {p.volume}"
            if p.confidence_score is not None:
                line += f" | Confidence: {p.confidence_score:.0f}"
            lines.append(line)
    active = [s for s in context.sentiments.values() if s.post_count > 0]
    if active:
        lines.append("Sentiment:")
        for s in active[:MAX_CONTEXT_SENTIMENTS]:
            lines.append(
                f"- {s.symbol}: avg {s.avg_sentiment:+.2f} over {s.post_count} posts "
                f"(+{s.positive_count} / ={s.neutral_count} / -{s.negative_count})"
            )
    if context.top_posts:
        lines.append("Top posts:")
        for post in context.top_posts[:MAX_TOP_POSTS]:
            lines.append(f"- @{post.author}: {_truncate(post.text, 140)}")
    lines.append(f"Note: {CONTEXT_NOTE}")
    return lines


def build_decision_prompt(request: DecisionRequest) -> str:
    """Render a DecisionRequest into the user prompt.

    Args:
        request: Gathered decision context.

    Returns:
        Prompt text.
    """
    balance = request.current_balance
    max_trade = balance * Decimal(str(request.max_risk_per_trade_pct)) / 100

    lines = [
        "=== AGENT STATUS ===",
        f"Name: {request.agent_name}",
        f"Available Balance: {balance:.2f} TL",
        f"Strategy: {request.strategy}",
        "",
        "=== CURRENT PORTFOLIO ===",
    ]
    if not request.portfolio:
        lines.append("No positions")
    for p in request.portfolio:
        lines.append(
            f"- {p.symbol}: {p.quantity} lots @ {p.avg_buy_price:.2f} TL avg "
            f"(Current Value: {p.current_value:.2f} TL, P/L: {p.profit_loss:.2f} TL)"
        )

    lines += ["", "=== AVAILABLE STOCKS ==="]
    for s in request.stocks:
        lines.append(
            f"- {s.symbol} ({s.name}): {s.current_price:.2f} TL "
            f"({s.change_percent:+.2f}%) | Volume: {s.volume}"
        )

    lines += [
        "",
        "=== TRADING AUTHORITY ===",
        f"Max Per Trade: {max_trade:.2f} TL ({request.max_risk_per_trade_pct:g}% of balance)",
        "You choose the stock, the number of lots (a whole number) and the timing.",
        "Max lots per stock under the per-trade limit:",
    ]
    for s in request.stocks:
        max_lots = int((max_trade / s.current_price).to_integral_value(rounding=ROUND_DOWN))
        lines.append(f"- {s.symbol}: {s.current_price:.2f} TL | Max lots: {max_lots} (~{max_lots * s.current_price:.2f} TL)")

    lines += [
        "",
        "=== QUANTITY RULES ===",
        "1. Higher price means fewer lots",
        "2. Higher conviction may justify more lots, never above the limit",
        "3. Avoid concentrating the portfolio in one stock",
        "4. Trade smaller in volatile markets",
        "",
    ]
    lines += _news_lines(request.news)

    if request.recent_trades:
        lines += ["", "=== YOUR RECENT TRADES ==="]
        for t in request.recent_trades[:MAX_RECENT_TRADES]:
            lines.append(
                f"- {t.side} {t.quantity} {t.symbol} @ {t.price:.2f} TL "
                f"({format_time_ago(t.created_at)})"
            )

    if request.market_context is not None and not request.market_context.is_empty:
        lines.append("")
        lines += _context_lines(request.market_context)

    lines += [
        "",
        "=== QUESTION ===",
        "Based on your portfolio, the market and the news above, what is your "
        "next move? Reply with the JSON object only.",
    ]
    return "\n".join(lines)
