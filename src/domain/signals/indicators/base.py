"""
Indicator Protocol and Base Class.

Defines the unified interface for all technical indicators. Every indicator
is pure: the same candle series and parameters always produce the same
result, and nothing is remembered between calls.

Not having enough history is an expected condition during warm-up, so
calculate() returns a Result instead of raising:

    result = SMAIndicator().calculate(series, {"period": 20})
    if result.is_ok():
        sma = result.unwrap().latest("sma")
    else:
        logger.debug(str(result.error))  # InsufficientData
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

import numpy as np
import pandas as pd

from src.utils.result import Err, Ok, Result

from ..data.candle_series import CandleSeries


class IndicatorCategory(Enum):
    """Indicator family, used for registry lookups."""

    TREND = "trend"
    MOMENTUM = "momentum"
    VOLATILITY = "volatility"
    VOLUME = "volume"


class IndicatorKind(Enum):
    """Tag of an IndicatorResult."""

    SMA = "sma"
    EMA = "ema"
    RSI = "rsi"
    MACD = "macd"
    BOLLINGER = "bollinger"
    ATR = "atr"
    VOLUME = "volume"
    VWAP = "vwap"


@dataclass(frozen=True)
class InsufficientData:
    """The series is shorter than the indicator's required lookback."""

    indicator: str
    required: int
    available: int

    def __str__(self) -> str:
        return f"{self.indicator} needs {self.required} candles, got {self.available}"


@dataclass(frozen=True)
class IndicatorResult:
    """
    Output of one indicator parameterization.

    frame is indexed by candle openTime and has one row per input candle
    starting at the first index where the lookback is satisfied. No warm-up
    rows and no padding.
    """

    kind: IndicatorKind
    params: Dict[str, Any]
    frame: pd.DataFrame = field(compare=False, repr=False)
    state: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def timestamps(self) -> np.ndarray:
        return self.frame.index.to_numpy()

    def column(self, name: str) -> np.ndarray:
        return self.frame[name].to_numpy()

    def latest(self, name: str) -> float:
        return float(self.frame[name].iloc[-1])

    def previous(self, name: str) -> Optional[float]:
        """Second-to-last value, or None when only one row exists."""
        if len(self.frame) < 2:
            return None
        return float(self.frame[name].iloc[-2])

    def at(self, timestamp: int, name: str) -> Optional[float]:
        """Value at a candle openTime, or None if outside the result."""
        if timestamp not in self.frame.index:
            return None
        return float(self.frame.at[timestamp, name])

    def equals(self, other: "IndicatorResult") -> bool:
        """Exact equality including every value."""
        return (
            self.kind == other.kind
            and self.params == other.params
            and self.frame.equals(other.frame)
        )


IndicatorOutcome = Result[IndicatorResult, InsufficientData]


@runtime_checkable
class Indicator(Protocol):
    """
    Protocol for all technical indicators.

    Each indicator must define:
    - name: Unique identifier (e.g., "rsi", "macd")
    - kind: IndicatorKind tag of its results
    - category: IndicatorCategory
    - required_fields: OHLCV fields needed

    And implement:
    - required_lookback(): Minimum candles for a result
    - calculate(): Compute the result series
    """

    name: str
    kind: IndicatorKind
    category: IndicatorCategory
    required_fields: List[str]

    @property
    def default_params(self) -> Dict[str, Any]:
        ...

    def required_lookback(self, params: Optional[Dict[str, Any]] = None) -> int:
        ...

    def calculate(
        self,
        series: Union[CandleSeries, pd.DataFrame],
        params: Optional[Dict[str, Any]] = None,
    ) -> IndicatorOutcome:
        ...


class IndicatorBase(ABC):
    """
    Abstract base class for indicators with common functionality.

    Provides:
    - Parameter merging with defaults
    - Lookback check returning InsufficientData
    - Trimming of warm-up rows
    - State extraction from the last two rows

    Subclasses must implement:
    - _lookback(): Minimum number of candles
    - _first_valid(): Index of the first fully computed row
    - _calculate(): Core calculation over the full input (NaN warm-up allowed)
    - _get_state(): State extraction for strategies and evidence
    """

    name: str = ""
    kind: IndicatorKind = IndicatorKind.SMA
    category: IndicatorCategory = IndicatorCategory.TREND
    required_fields: List[str] = ["close"]

    _default_params: Dict[str, Any] = {}

    @property
    def default_params(self) -> Dict[str, Any]:
        """Default parameters for this indicator."""
        return self._default_params.copy()

    def merge_params(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        merged = {**self.default_params, **(params or {})}
        self._validate_params(merged)
        return merged

    def required_lookback(self, params: Optional[Dict[str, Any]] = None) -> int:
        """Minimum number of candles for a non-empty result."""
        return self._lookback(self.merge_params(params))

    def calculate(
        self,
        series: Union[CandleSeries, pd.DataFrame],
        params: Optional[Dict[str, Any]] = None,
    ) -> IndicatorOutcome:
        """
        Calculate the indicator.

        Args:
            series: CandleSeries or OHLCV DataFrame (time-ascending)
            params: User-provided parameters (merged with defaults)

        Returns:
            Ok(IndicatorResult) or Err(InsufficientData)

        Raises:
            ValueError: If parameters are invalid or required columns missing
        """
        merged = self.merge_params(params)
        data = series.frame if isinstance(series, CandleSeries) else series
        self._validate_data(data)

        required = self._lookback(merged)
        if len(data) < required:
            return Err(InsufficientData(self.name, required, len(data)))

        full = self._calculate(data, merged)
        frame = full.iloc[self._first_valid(merged):]

        current = frame.iloc[-1]
        previous = frame.iloc[-2] if len(frame) > 1 else None
        state = self._get_state(current, previous, merged)

        return Ok(IndicatorResult(kind=self.kind, params=merged, frame=frame, state=state))

    def get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Extract state with parameter merging."""
        return self._get_state(current, previous, self.merge_params(params))

    @abstractmethod
    def _lookback(self, params: Dict[str, Any]) -> int:
        ...

    def _first_valid(self, params: Dict[str, Any]) -> int:
        """Index of the first computed row; defaults to lookback - 1."""
        return self._lookback(params) - 1

    @abstractmethod
    def _calculate(self, data: pd.DataFrame, params: Dict[str, Any]) -> pd.DataFrame:
        """
        Core calculation logic - must be implemented by subclasses.

        Args:
            data: Validated OHLCV DataFrame with at least _lookback() rows
            params: Merged parameters

        Returns:
            DataFrame with indicator columns, same index as data
        """
        ...

    def _get_state(
        self,
        current: pd.Series,
        previous: Optional[pd.Series],
        params: Dict[str, Any],
    ) -> Dict[str, Any]:
        return {"value": float(current.iloc[0])}

    def _validate_params(self, params: Dict[str, Any]) -> None:
        """Reject non-positive integer periods."""
        for key, value in params.items():
            if key == "period" or key.endswith("_period"):
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    raise ValueError(f"Indicator {self.name}: {key} must be a positive integer, got {value!r}")

    def _validate_data(self, data: pd.DataFrame) -> None:
        """
        Validate that required fields are present.

        Raises:
            ValueError: If required fields are missing
        """
        missing = [f for f in self.required_fields if f not in data.columns]
        if missing:
            raise ValueError(
                f"Indicator {self.name} requires fields {self.required_fields}, "
                f"missing: {missing}"
            )


def rolling_mean(values: np.ndarray, period: int) -> np.ndarray:
    """Trailing mean over `period` values, NaN before the window fills."""
    n = len(values)
    out = np.full(n, np.nan, dtype=np.float64)
    for i in range(period - 1, n):
        out[i] = np.mean(values[i - period + 1 : i + 1])
    return out


def ema_seeded(values: np.ndarray, period: int, start: int = 0) -> np.ndarray:
    """
    EMA seeded with the SMA of the first `period` values from `start`.

    ema[i] = values[i] * alpha + ema[i-1] * (1 - alpha), alpha = 2 / (period + 1)
    """
    n = len(values)
    out = np.full(n, np.nan, dtype=np.float64)
    seed_end = start + period - 1
    if seed_end >= n:
        return out
    alpha = 2.0 / (period + 1)
    out[seed_end] = np.mean(values[start : seed_end + 1])
    for i in range(seed_end + 1, n):
        out[i] = values[i] * alpha + out[i - 1] * (1 - alpha)
    return out
