"""
Strategies package.

Provides:
- Strategy: Base class; evaluate(series, indicators) -> StrategyResult
- StrategyRegistry: Configured strategy instances keyed by id
- register_strategy / create_strategy: Type table for config-driven setup
- DEFAULT_STRATEGIES: The built-in strategy set
"""

from .base import Strategy, Verdict
from .registry import (
    DEFAULT_STRATEGIES,
    StrategyRegistry,
    create_strategy,
    load_builtin_strategies,
    register_strategy,
    strategy_types,
)

load_builtin_strategies()

__all__ = [
    "DEFAULT_STRATEGIES",
    "Strategy",
    "StrategyRegistry",
    "Verdict",
    "create_strategy",
    "load_builtin_strategies",
    "register_strategy",
    "strategy_types",
]
