"""
Strategy Registry - Table of named strategy instances.

Strategy classes register their type name with @register_strategy. A
StrategyRegistry then holds configured *instances* keyed by strategy id,
built either in code or from YAML:

    strategies:
      ma_breakout_20:
        type: ma_breakout
        enabled: true
        params: {period: 20}
        timeframes: [15m, 1h]
"""

from __future__ import annotations

import importlib
import pkgutil
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, TypeVar

from src.domain.exceptions import ConfigurationError
from src.utils.logging_setup import get_logger

from .base import Strategy

logger = get_logger(__name__)

S = TypeVar("S", bound=Type[Strategy])

_STRATEGY_TYPES: Dict[str, Type[Strategy]] = {}
_builtins_loaded = False


def register_strategy(cls: S) -> S:
    """Class decorator adding a Strategy subclass to the type table."""
    if not cls.type_name:
        raise ValueError(f"{cls.__name__} must define type_name")
    existing = _STRATEGY_TYPES.get(cls.type_name)
    if existing is not None and existing is not cls:
        logger.warning(f"Strategy type {cls.type_name} already registered, overwriting")
    _STRATEGY_TYPES[cls.type_name] = cls
    return cls


def load_builtin_strategies() -> None:
    """Import every module of this package so their decorators run."""
    global _builtins_loaded
    if _builtins_loaded:
        return
    package_path = Path(__file__).parent
    for module_info in pkgutil.iter_modules([str(package_path)]):
        if module_info.name.startswith("_") or module_info.name in ("base", "registry"):
            continue
        importlib.import_module(f"{__package__}.{module_info.name}")
    _builtins_loaded = True


def strategy_types() -> Dict[str, Type[Strategy]]:
    """All registered strategy classes keyed by type name."""
    load_builtin_strategies()
    return dict(_STRATEGY_TYPES)


def create_strategy(type_name: str, strategy_id: Optional[str] = None, **kwargs: Any) -> Strategy:
    """
    Instantiate a registered strategy type.

    Raises:
        KeyError: Unknown type name
        ValueError: Invalid parameters
    """
    types = strategy_types()
    if type_name not in types:
        raise KeyError(f"Unknown strategy type '{type_name}'. Known: {sorted(types)}")
    return types[type_name](strategy_id=strategy_id, **kwargs)


class StrategyRegistry:
    """
    Ordered table of strategy instances.

    Iteration order is registration order, which is also the order of
    StrategyResults in a MultiStrategyResult.
    """

    def __init__(self) -> None:
        self._strategies: Dict[str, Strategy] = {}

    def register(self, strategy: Strategy) -> None:
        """
        Add a strategy instance.

        Raises:
            ValueError: If the id is already taken
        """
        if strategy.strategy_id in self._strategies:
            raise ValueError(f"Duplicate strategy id '{strategy.strategy_id}'")
        self._strategies[strategy.strategy_id] = strategy
        logger.debug(f"Registered strategy: {strategy!r}")

    def add(self, strategies: List[Strategy]) -> None:
        for strategy in strategies:
            self.register(strategy)

    def unregister(self, strategy_id: str) -> Optional[Strategy]:
        return self._strategies.pop(strategy_id, None)

    def get(self, strategy_id: str) -> Optional[Strategy]:
        return self._strategies.get(strategy_id)

    def for_timeframe(self, timeframe: str) -> List[Strategy]:
        return [s for s in self._strategies.values() if s.applies_to(timeframe)]

    def ids(self) -> List[str]:
        return list(self._strategies)

    def __iter__(self) -> Iterator[Strategy]:
        return iter(list(self._strategies.values()))

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, strategy_id: str) -> bool:
        return strategy_id in self._strategies

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "StrategyRegistry":
        """
        Create a registry from configuration.

        Args:
            config: Dict with a 'strategies' mapping of id -> settings

        Returns:
            Populated StrategyRegistry

        Raises:
            ConfigurationError: Unknown type or invalid parameters
        """
        registry = cls()
        for strategy_id, settings in (config.get("strategies") or {}).items():
            settings = settings or {}
            if not settings.get("enabled", True):
                logger.debug(f"Skipping disabled strategy: {strategy_id}")
                continue
            type_name = settings.get("type", strategy_id)
            try:
                strategy = create_strategy(
                    type_name,
                    strategy_id=strategy_id,
                    timeframes=settings.get("timeframes"),
                    **(settings.get("params") or {}),
                )
            except (KeyError, ValueError, TypeError) as e:
                raise ConfigurationError(f"Invalid strategy '{strategy_id}': {e}") from e
            registry.register(strategy)

        logger.info(f"Loaded {len(registry)} strategies from config")
        return registry

    @classmethod
    def with_defaults(cls) -> "StrategyRegistry":
        """Registry holding DEFAULT_STRATEGIES."""
        registry = cls()
        for factory in DEFAULT_STRATEGIES:
            registry.register(factory())
        return registry


def _default(type_name: str, **params: Any) -> Callable[[], Strategy]:
    return lambda: create_strategy(type_name, **params)


DEFAULT_STRATEGIES: List[Callable[[], Strategy]] = [
    _default("ma_breakout", period=20),
    _default("ma_breakout", period=50),
    _default("ma_breakout", period=200),
    _default("golden_cross", fast_period=5, slow_period=20),
    _default("golden_cross", fast_period=20, slow_period=60),
    _default("golden_cross", fast_period=50, slow_period=200),
    _default("ma_crossover"),
    _default("rsi_oversold_bounce"),
    _default("rsi_overbought_reversal"),
    _default("macd_golden_cross"),
    _default("macd_zero_cross"),
    _default("bollinger_upper_break"),
    _default("bollinger_lower_bounce"),
    _default("bollinger_reversal"),
    _default("volume_surge"),
    _default("obv_trend"),
    _default("triple_confirmation"),
    _default("mean_reversion"),
    _default("vwap_trend"),
]
