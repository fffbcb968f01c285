"""
Signal core - Multi-timeframe candles, indicators and strategy consensus.

This module provides:
- Candle / CandleBuffer / TimeframeAggregator: one-minute candles rolled up
  into 15m, 1h and 1d series per (instrument, market)
- IndicatorRegistry / IndicatorSuite: SMA, EMA, RSI, MACD, Bollinger, ATR,
  VWAP and volume analysis returning typed results
- Strategy / StrategyRegistry: pure strategies producing StrategyResults
- StrategyEngine / SignalReducer: concurrent fan-out and consensus

Usage:
    from src.domain.signals import StrategyEngine, StrategyRegistry

    engine = StrategyEngine(StrategyRegistry.with_defaults())
    result = await engine.evaluate(key, Timeframe.M15, ts, series_by_timeframe)
"""

from .models import (
    EvaluationState,
    Evidence,
    MultiStrategyResult,
    SignalType,
    StrategyResult,
    TimeframeSummary,
)
from .data import (
    Candle,
    CandleBuffer,
    CandleKey,
    CandleSeries,
    Timeframe,
    TimeframeAggregator,
)
from .reducer import SignalReducer
from .strategies import Strategy, StrategyRegistry
from .strategy_engine import StrategyEngine

__all__ = [
    # Models
    "EvaluationState",
    "Evidence",
    "MultiStrategyResult",
    "SignalType",
    "StrategyResult",
    "TimeframeSummary",
    # Data pipeline
    "Candle",
    "CandleBuffer",
    "CandleKey",
    "CandleSeries",
    "Timeframe",
    "TimeframeAggregator",
    # Engines
    "SignalReducer",
    "Strategy",
    "StrategyRegistry",
    "StrategyEngine",
]
