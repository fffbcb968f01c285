"""Configuration management."""

from .config_manager import ConfigManager
from .models import (
    AppConfig,
    AggregatorConfig,
    AnomalyConfig,
    BufferConfig,
    IndicatorConfig,
    LoggingConfig,
    PipelineConfig,
    StrategyConfig,
)

__all__ = [
    "ConfigManager",
    "AppConfig",
    "AggregatorConfig",
    "AnomalyConfig",
    "BufferConfig",
    "IndicatorConfig",
    "LoggingConfig",
    "PipelineConfig",
    "StrategyConfig",
]
