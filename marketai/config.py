"""Configuration loading for MarketAI.

Settings live in a TOML file (``~/.config/marketai/config.toml`` by
default) and are validated into pydantic models. A missing file means
all defaults; an invalid value raises ConfigError at startup.
"""

import os
from pathlib import Path
from typing import Optional

import toml
from pydantic import BaseModel, Field, ValidationError, model_validator

from marketai.ai.providers import PROVIDER_DEFAULTS, ProviderSettings
from marketai.engine.errors import ConfigError
from marketai.engine.risk import RiskLimits


CONFIG_DIR = Path.home() / ".config" / "marketai"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = CONFIG_DIR / "marketai.db"
CONFIG_ENV_VAR = "MARKETAI_CONFIG"

DEFAULT_SYMBOLS = ["THYAO", "AKBNK", "ASELS", "GARAN", "BIMAS", "KCHOL", "SISE"]


class DatabaseConfig(BaseModel):
    path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite ledger path")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Root log level")

    model_config = {"frozen": True}


class EngineConfig(BaseModel):
    """Scheduler and context-gathering settings."""

    min_interval_seconds: float = Field(default=30.0, gt=0)
    max_interval_seconds: float = Field(default=60.0, gt=0)
    decision_timeout_seconds: float = Field(default=30.0, gt=0)
    budget_mode: bool = Field(default=False, description="Double both interval bounds")
    candidate_limit: int = Field(default=20, gt=0)
    recent_trades_limit: int = Field(default=5, ge=0)
    news_limit: int = Field(default=20, ge=0)
    news_window_hours: int = Field(default=3, gt=0)
    context_symbols: list[str] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    event_queue_size: int = Field(default=256, gt=0)
    simulate_prices: bool = Field(default=False, description="Random-walk quotes while running")
    price_tick_seconds: float = Field(default=5.0, gt=0)
    max_price_change_pct: float = Field(default=2.0, gt=0, lt=100)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_interval(self) -> "EngineConfig":
        if self.min_interval_seconds >= self.max_interval_seconds:
            raise ValueError(
                f"min_interval_seconds ({self.min_interval_seconds}) must be less than "
                f"max_interval_seconds ({self.max_interval_seconds})"
            )
        return self

    @property
    def interval(self) -> tuple[float, float]:
        """Effective (min, max) tick interval in seconds."""
        factor = 2 if self.budget_mode else 1
        return self.min_interval_seconds * factor, self.max_interval_seconds * factor


class ProviderConfig(BaseModel):
    """Per-provider overrides. Unset fields fall back to the provider defaults."""

    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    premium_models: Optional[list[str]] = None

    model_config = {"frozen": True}


class AppConfig(BaseModel):
    """Top-level application configuration."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    risk: RiskLimits = Field(default_factory=RiskLimits)
    enable_premium_models: bool = False
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_providers(self) -> "AppConfig":
        unknown = set(self.providers) - set(PROVIDER_DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown provider(s): {', '.join(sorted(unknown))}")
        return self

    def provider(self, kind: str) -> ProviderSettings:
        """Resolve settings for one provider kind.

        The API key comes from the config file, falling back to the
        provider's environment variable.
        """
        defaults = PROVIDER_DEFAULTS[kind]
        override = self.providers.get(kind, ProviderConfig())
        return ProviderSettings(
            kind=defaults.kind,
            base_url=override.base_url or defaults.base_url,
            api_key=override.api_key or os.environ.get(defaults.api_key_env, ""),
            api_key_env=defaults.api_key_env,
            model=override.model or defaults.model,
            premium_models=(
                override.premium_models
                if override.premium_models is not None
                else defaults.premium_models
            ),
        )

    def all_providers(self) -> dict[str, ProviderSettings]:
        return {kind: self.provider(kind) for kind in PROVIDER_DEFAULTS}


def get_config_path(path: Optional[Path] = None) -> Path:
    """Resolve the config path from an explicit path, the environment, or the default."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration.

    Args:
        path: Optional config file path. See get_config_path.

    Returns:
        Validated AppConfig. Defaults if the file does not exist.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    config_path = get_config_path(path)
    if not config_path.exists():
        return AppConfig()

    try:
        raw = toml.load(config_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"Cannot read {config_path}: {e}") from e

    return parse_config(raw)


def parse_config(raw: dict) -> AppConfig:
    """Validate a raw config mapping as loaded from TOML.

    ``[providers]`` mixes the ``enable_premium_models`` flag with one
    sub-table per provider kind; they are split apart here.
    """
    data = dict(raw)
    providers = dict(data.pop("providers", {}) or {})
    enable_premium = providers.pop("enable_premium_models", False)
    data["enable_premium_models"] = enable_premium
    data["providers"] = providers

    db_path = data.get("database", {}).get("path")
    if db_path:
        data["database"] = {**data["database"], "path": Path(db_path).expanduser()}

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
