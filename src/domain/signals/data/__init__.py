"""Data pipeline components for the signal engine (candle buffering, timeframe aggregation)."""

from .anomaly_detector import AnomalyKind, AnomalyThresholds, CandleAnomaly, CandleAnomalyDetector
from .candle import Candle, CandleKey, Timeframe, validate_candle
from .candle_buffer import BufferUpdate, CandleBuffer, UpdateAction
from .candle_series import CandleSeries
from .timeframe_aggregator import DEFAULT_SERIES_CAPACITY, AggregatedCandle, TimeframeAggregator, aggregate_bucket

__all__ = [
    "DEFAULT_SERIES_CAPACITY",
    "AggregatedCandle",
    "AnomalyKind",
    "AnomalyThresholds",
    "BufferUpdate",
    "Candle",
    "CandleAnomaly",
    "CandleAnomalyDetector",
    "CandleBuffer",
    "CandleKey",
    "CandleSeries",
    "Timeframe",
    "TimeframeAggregator",
    "UpdateAction",
    "aggregate_bucket",
    "validate_candle",
]
