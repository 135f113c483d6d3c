"""
Configuration management for league-specific model and market parameters.
"""

import json
import logging
from dataclasses import asdict, fields
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..domains.betting.entities import MarketConfig
from ..domains.shared.exceptions import ConfigurationError
from ..models.core import ModelConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages league-specific configurations stored as JSON files."""

    def __init__(self, config_dir: Union[str, Path] = Path("league_configs")):
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.default_model_config = ModelConfig()
        self.default_market_config = MarketConfig()

    def save_league_config(
        self,
        league: str,
        config: ModelConfig,
        market_config: Optional[MarketConfig] = None,
    ) -> None:
        """Save league-specific configuration."""
        config_dict = {
            "model": asdict(config),
            "market": (market_config or self.default_market_config).to_dict(),
            "optimized_date": datetime.now().isoformat(),
        }

        with open(self._get_config_file(league), "w") as f:
            json.dump(config_dict, f, indent=2)

    def load_league_config(self, league: str) -> ModelConfig:
        """Load league-specific model configuration."""
        section = self._load_section(league, "model")
        if section is None:
            return self.default_model_config

        try:
            return self._model_config_from_dict(section)
        except ConfigurationError as e:
            logger.warning(f"Invalid model config for {league}: {e}, using default")
            return self.default_model_config

    def load_market_config(self, league: str) -> MarketConfig:
        section = self._load_section(league, "market")
        if section is None:
            return self.default_market_config

        try:
            return MarketConfig.from_dict(section)
        except ConfigurationError as e:
            logger.warning(f"Invalid market config for {league}: {e}, using default")
            return self.default_market_config

    def should_reoptimize(
        self,
        league: str,
        days_threshold: int = 90,
        now: Optional[datetime] = None,
    ) -> bool:
        """Check if parameters should be re-optimized."""
        config_dict = self._read(league)
        if config_dict is None or "optimized_date" not in config_dict:
            return True

        try:
            opt_date = datetime.fromisoformat(config_dict["optimized_date"])
        except (TypeError, ValueError):
            return True
        return ((now or datetime.now()) - opt_date).days > days_threshold

    def _get_config_file(self, league: str) -> Path:
        """Get configuration file path for league."""
        safe_name = league.replace(" ", "_").replace("-", "_")
        return self.config_dir / f"{safe_name}_config.json"

    def _read(self, league: str) -> Optional[dict]:
        config_file = self._get_config_file(league)
        if not config_file.exists():
            return None

        try:
            with open(config_file, "r") as f:
                config_dict = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Error reading config for {league}: {e}")
            return None

        return config_dict if isinstance(config_dict, dict) else None

    def _load_section(self, league: str, key: str) -> Optional[dict]:
        config_dict = self._read(league)
        if config_dict is None:
            logger.info(f"No saved config for {league}, using default")
            return None

        section = config_dict.get(key)
        if not isinstance(section, dict):
            logger.info(f"No saved {key} config for {league}, using default")
            return None
        return section

    @staticmethod
    def _model_config_from_dict(values: dict) -> ModelConfig:
        known = {f.name for f in fields(ModelConfig)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown model settings: {sorted(unknown)}")

        values = dict(values)
        if "rho_bounds" in values:
            values["rho_bounds"] = tuple(values["rho_bounds"])
        return ModelConfig(**values)
