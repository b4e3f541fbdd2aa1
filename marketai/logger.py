"""Logging setup for MarketAI."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO", console: Optional[Console] = None) -> None:
    """Route log records through rich.

    Args:
        level: Root log level name.
        console: Console to write to. Defaults to a stderr console.
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # Provider SDKs log every HTTP request at INFO
    for noisy in ("httpx", "openai", "openai.agents"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
