"""Main CLI entry point for MarketAI.

This module provides the main click group, lazy loading of command
modules, and the config/store helpers shared by the commands.
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console

# Console for rich output
console = Console()


class LazyGroup(click.Group):
    """A click Group that lazily loads commands.

    Command modules pull in the engine and the AI SDKs, so they are
    only imported when actually invoked.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        """List all available commands."""
        base = super().list_commands(ctx)
        lazy = list(self._lazy_subcommands.keys())
        return sorted(set(base + lazy))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        """Get a command by name, lazily loading if needed."""
        if cmd_name in self.commands:
            return self.commands[cmd_name]

        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)

        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        """Lazily load a command from its module path."""
        import importlib

        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        cmd = getattr(module, cmd_name, None)
        if not isinstance(cmd, click.Command):
            raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")

        self.add_command(cmd)
        return cmd


LAZY_SUBCOMMANDS = {
    "run": "marketai.cli.run",
    "agents": "marketai.cli.agents",
    "stocks": "marketai.cli.stocks",
    "portfolio": "marketai.cli.portfolio",
    "trades": "marketai.cli.portfolio",
    "decisions": "marketai.cli.portfolio",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def get_config(ctx: click.Context):
    """Load the app config once per invocation.

    Raises:
        click.ClickException: If the config file is invalid.
    """
    from marketai.config import load_config
    from marketai.engine.errors import ConfigError

    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        try:
            obj["config"] = load_config(obj.get("config_path"))
        except ConfigError as e:
            raise click.ClickException(str(e))
    return obj["config"]


def get_store(ctx: click.Context):
    """Open the ledger store named by the config."""
    from marketai.db.store import LedgerStore

    return LedgerStore(get_config(ctx).database.path)


def find_agent(store, name_or_id: str):
    """Look up an agent by ID, then by name.

    Raises:
        click.ClickException: If no agent matches.
    """
    agent = store.get_agent(name_or_id) or store.get_agent_by_name(name_or_id)
    if agent is None:
        raise click.ClickException(f"Agent not found: {name_or_id}")
    return agent


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="marketai")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="MARKETAI_CONFIG",
    default=None,
    help="Path to config.toml (default: ~/.config/marketai/config.toml).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]) -> None:
    """MarketAI - autonomous AI trading agents on BIST data.

    Each agent is backed by an AI provider. The engine wakes the agents
    periodically, asks them for a decision, checks it against risk
    limits and settles the trade in a simulated ledger.

    \b
    Quick Start:
      marketai agents add "GPT-4o" --provider openai --model gpt-4o
      marketai stocks set THYAO 250
      marketai run --once
      marketai portfolio "GPT-4o"
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
