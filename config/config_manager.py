"""
Configuration manager with environment-based loading.

Supports:
- Base configuration (base.yaml)
- Environment-specific overrides (dev.yaml, prod.yaml)
- Secrets loading (secrets.yaml - gitignored)
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Any, List
import yaml
import logging

from src.domain.exceptions import ConfigurationError
from src.domain.signals.data.timeframe_aggregator import DEFAULT_SERIES_CAPACITY

from .models import (
    AppConfig,
    BufferConfig,
    AggregatorConfig,
    IndicatorConfig,
    StrategyConfig,
    PipelineConfig,
    AnomalyConfig,
    LoggingConfig,
)


logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Configuration manager with environment support.

    Loads configuration in this order:
    1. base.yaml (default config)
    2. {env}.yaml (environment-specific, e.g., dev.yaml)
    3. secrets.yaml (if exists, gitignored)

    Later configs override earlier ones.
    """

    def __init__(self, config_dir: str | Path = "config", env: str = "dev"):
        """
        Initialize config manager.

        Args:
            config_dir: Directory containing config files.
            env: Environment name (dev, prod, etc).
        """
        self.config_dir = Path(config_dir)
        self.env = env
        self.config: Dict[str, Any] = {}

    def load(self) -> AppConfig:
        """
        Load configuration from YAML files.

        Returns:
            AppConfig object.

        Raises:
            ConfigurationError: If base config is missing or invalid.
        """
        base_path = self.config_dir / "base.yaml"
        if not base_path.exists():
            raise ConfigurationError(f"Base config not found: {base_path}")

        self.config = self._load_yaml(base_path)
        logger.info(f"Loaded base config from {base_path}")

        # Load environment-specific config (optional)
        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self.config = self._merge_dicts(self.config, env_config)
            logger.info(f"Loaded {self.env} config from {env_path}")

        # Load secrets (optional, gitignored)
        secrets_path = self.config_dir / "secrets.yaml"
        if secrets_path.exists():
            secrets = self._load_yaml(secrets_path)
            self.config = self._merge_dicts(self.config, secrets)
            logger.info("Loaded secrets")

        return self.parse(self.config, env=self.env)

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load YAML file."""
        try:
            with open(path, "r") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    def _merge_dicts(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    @staticmethod
    def parse(config: Dict[str, Any], env: str = "dev") -> AppConfig:
        """
        Parse a raw dict into AppConfig.

        Raises:
            ConfigurationError: If a section has the wrong shape.
        """
        try:
            pipeline_raw = config.get("pipeline", {})
            pipeline = PipelineConfig(
                timeframes=list(pipeline_raw.get("timeframes", ["15m", "1h", "1d"])),
                trigger_timeframe=pipeline_raw.get("trigger_timeframe", "15m"),
                max_queue_size=pipeline_raw.get("max_queue_size", 10_000),
                warm_start_limit=pipeline_raw.get("warm_start_limit", 1440),
                max_workers=pipeline_raw.get("max_workers"),
                drain_timeout_sec=pipeline_raw.get("drain_timeout_sec", 30.0),
            )

            buffer_raw = config.get("buffer", {})
            buffer = BufferConfig(capacity=buffer_raw.get("capacity", 1440))

            aggregator_raw = config.get("aggregator", {})
            aggregator = AggregatorConfig(series_capacity=aggregator_raw.get("series_capacity", DEFAULT_SERIES_CAPACITY))

            indicators_raw = config.get("indicators", {})
            rsi_raw = indicators_raw.get("rsi", {})
            macd_raw = indicators_raw.get("macd", {})
            indicators = IndicatorConfig(
                rsi_period=rsi_raw.get("period", 14),
                rsi_overbought=rsi_raw.get("overbought", 70.0),
                rsi_oversold=rsi_raw.get("oversold", 30.0),
                volume_surge_ratio=indicators_raw.get("volume", {}).get("surge_ratio", 2.0),
                macd_fast=macd_raw.get("fast", 12),
                macd_slow=macd_raw.get("slow", 26),
                macd_signal=macd_raw.get("signal", 9),
            )

            anomaly_raw = config.get("anomaly", {})
            anomaly = AnomalyConfig(
                enabled=anomaly_raw.get("enabled", True),
                volume_multiplier=anomaly_raw.get("volume_multiplier", 3.0),
                volume_lookback=anomaly_raw.get("volume_lookback", 10),
                spike_percent=anomaly_raw.get("spike_percent", 3.0),
                gap_percent=anomaly_raw.get("gap_percent", 1.0),
            )

            logging_raw = config.get("logging", {})
            logging_config = LoggingConfig(
                level=logging_raw.get("level", "INFO"),
                json=logging_raw.get("json", True),
                console=logging_raw.get("console", True),
                log_dir=logging_raw.get("log_dir", "./logs"),
                timezone=logging_raw.get("timezone", "UTC"),
            )

            strategies: List[StrategyConfig] = []
            for strategy_id, settings in (config.get("strategies") or {}).items():
                settings = settings or {}
                strategies.append(StrategyConfig(
                    id=strategy_id,
                    type=settings.get("type", strategy_id),
                    enabled=settings.get("enabled", True),
                    params=dict(settings.get("params") or {}),
                    timeframes=settings.get("timeframes"),
                ))

            return AppConfig(
                env=env,
                pipeline=pipeline,
                buffer=buffer,
                aggregator=aggregator,
                indicators=indicators,
                anomaly=anomaly,
                logging=logging_config,
                strategies=strategies,
                raw=config,
            )

        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Failed to parse config: {e}") from e
