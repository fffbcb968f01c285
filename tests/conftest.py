"""Pytest configuration and fixtures."""

from typing import Callable

import numpy as np
import pytest

from src.domain.signals.data import Candle, CandleKey
from tests.factories import make_candle


@pytest.fixture
def key() -> CandleKey:
    return CandleKey("BTCUSDT", "FUTURES")


@pytest.fixture
def candle_factory() -> Callable[..., Candle]:
    return make_candle


@pytest.fixture
def linear_closes() -> np.ndarray:
    """60 closes rising linearly from 100 to 160."""
    return np.linspace(100.0, 160.0, 60)


@pytest.fixture
def random_walk_closes() -> np.ndarray:
    """Deterministic positive random walk."""
    rng = np.random.default_rng(42)
    steps = rng.normal(0, 1.0, 300)
    return 100.0 + np.cumsum(steps) + 50.0
