"""CLI commands for MarketAI.

This package provides the command-line interface for MarketAI: running
the decision engine and inspecting agents, stocks, portfolios, trades
and decisions.
"""

from marketai.cli.main import cli, main

__all__ = ["cli", "main"]
