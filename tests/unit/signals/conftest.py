"""
Shared pytest fixtures for signal pipeline unit tests.

Provides strategy registries and an engine that is closed after each test.
"""

from typing import Iterator

import pytest

from src.domain.signals.strategies import StrategyRegistry, create_strategy
from src.domain.signals.strategy_engine import StrategyEngine


@pytest.fixture
def breakout_registry() -> StrategyRegistry:
    registry = StrategyRegistry()
    registry.register(create_strategy("ma_breakout", period=20))
    return registry


@pytest.fixture
def breakout_engine(breakout_registry: StrategyRegistry) -> Iterator[StrategyEngine]:
    engine = StrategyEngine(breakout_registry)
    yield engine
    engine.close()
