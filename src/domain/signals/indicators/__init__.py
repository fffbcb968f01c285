"""
Indicators package for technical analysis.

Provides:
- Indicator: Protocol for all indicator implementations
- IndicatorBase: Base class with common functionality
- IndicatorResult / InsufficientData: typed outcomes of a calculation
- IndicatorRegistry: Auto-discovery and management of indicators
- IndicatorSuite: Cached results for one candle series
- detect_threshold_crosses: UP_BREAK / DOWN_BREAK detection against a line
"""

from .base import (
    Indicator,
    IndicatorBase,
    IndicatorCategory,
    IndicatorKind,
    IndicatorOutcome,
    IndicatorResult,
    InsufficientData,
)
from .crossings import ThresholdCross, detect_threshold_crosses
from .registry import IndicatorRegistry, get_indicator_registry
from .suite import IndicatorSpec, IndicatorSuite

__all__ = [
    "Indicator",
    "IndicatorBase",
    "IndicatorCategory",
    "IndicatorKind",
    "IndicatorOutcome",
    "IndicatorResult",
    "InsufficientData",
    "IndicatorRegistry",
    "IndicatorSpec",
    "IndicatorSuite",
    "ThresholdCross",
    "detect_threshold_crosses",
    "get_indicator_registry",
]
