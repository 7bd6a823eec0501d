"""Symbol and strategy configuration loaded from signals.yaml.

Supports:
- The list of tracked symbols ("BTC" or "BTCUSDT" form)
- Scoring profile selection by registered name
- Overrides of indicator periods, SL/TP multipliers and ATR-gate thresholds
- Backward compatible: no YAML file = values from Settings
"""

import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, model_validator

from app.config import Settings, get_settings
from core.models.config import StrategyConfig
from core.strategy import list_profiles

logger = logging.getLogger(__name__)


class SignalsConfig(BaseModel):
    """Top-level signals.yaml configuration."""

    symbols: list[str] | None = None
    profile: str | None = None
    interval: str | None = None
    limit: int | None = None
    strategy: StrategyConfig = StrategyConfig()

    @model_validator(mode="after")
    def _validate(self):
        if self.symbols is not None:
            self.symbols = [s.strip().upper() for s in self.symbols if s and s.strip()]
            if not self.symbols:
                raise ValueError("'symbols' must list at least one symbol")
        if self.profile is not None and self.profile not in list_profiles():
            raise ValueError(
                f"profile must be one of {list_profiles()}, got '{self.profile}'"
            )
        if self.limit is not None and self.limit <= 0:
            raise ValueError(f"limit must be positive, got {self.limit}")
        return self

    def resolve_symbols(self, settings: Settings) -> list[str]:
        return list(self.symbols) if self.symbols else list(settings.symbols)

    def resolve_profile(self, settings: Settings) -> str:
        return self.profile or settings.strategy

    def resolve_interval(self, settings: Settings) -> str:
        return self.interval or settings.interval

    def resolve_limit(self, settings: Settings) -> int:
        return self.limit or settings.candle_limit


_DEFAULT_PATH = Path(__file__).parent.parent / "signals.yaml"


def load_signals_config(path: Path | None = None) -> SignalsConfig:
    """Load signals config from YAML file.

    Falls back to defaults (Settings values) if file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    # Credentials kept next to the YAML; cached Settings predate them
    env_path = config_path.parent / ".env"
    if env_path.exists() and load_dotenv(env_path, override=False):
        logger.info("Loaded environment from %s", env_path)
        get_settings.cache_clear()

    if not config_path.exists():
        logger.info("No signals.yaml found at %s, using defaults", config_path)
        return SignalsConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = SignalsConfig(**raw)
    logger.info(
        "Loaded signals config: %s symbols, profile=%s, interval=%s",
        len(config.symbols) if config.symbols else "default",
        config.profile or "default",
        config.interval or "default",
    )
    return config


def parse_symbols(values: list[str] | None) -> list[str]:
    """Split "BTC,ETH" style values, strip blanks and drop repeats (order kept)."""
    symbols: list[str] = []
    for value in values or []:
        for part in value.split(","):
            part = part.strip().upper()
            if part and part not in symbols:
                symbols.append(part)
    return symbols
