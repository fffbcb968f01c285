"""
Strategy interface.

A strategy is a pure function of (candle series, indicator results) to one
StrategyResult. Strategies compare the latest indicator values against the
previous ones so they report transitions (breakouts, crosses) distinctly
from conditions that merely persist.

Subclasses implement:
- requirements(): indicator parameterizations they read
- _evaluate(): the decision, returning a Verdict

The base class turns missing history into a zero-weight NEUTRAL result, so
_evaluate() can assume every required indicator is available.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple

from ..data.candle import CandleKey, Timeframe
from ..data.candle_series import CandleSeries
from ..indicators.registry import get_indicator_registry
from ..indicators.suite import IndicatorSpec, IndicatorSuite
from ..models import Evidence, SignalType, StrategyResult


@dataclass
class Verdict:
    """Decision of a strategy before it is stamped with identity/time."""

    signal: SignalType
    confidence: float = 50.0
    conditions: List[str] = field(default_factory=list)
    snapshot: Dict[str, Optional[float]] = field(default_factory=dict)
    notes: str = ""


class Strategy(ABC):
    """
    Base class for all strategies.

    Class attributes:
        type_name: Registry key (e.g. "ma_breakout")
        description: One-line human description
        _default_params: Parameters merged under constructor overrides

    Args:
        strategy_id: Unique id in a registry; defaults to a name derived
            from the type and parameters (e.g. "ma_breakout_20")
        timeframes: Timeframes this strategy runs on; None means all
        **params: Overrides of _default_params
    """

    type_name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    _default_params: ClassVar[Dict[str, Any]] = {}

    def __init__(
        self,
        strategy_id: Optional[str] = None,
        timeframes: Optional[Sequence[str]] = None,
        **params: Any,
    ) -> None:
        unknown = set(params) - set(self._default_params)
        if unknown:
            raise ValueError(f"{self.type_name}: unknown parameters {sorted(unknown)}")
        self.params: Dict[str, Any] = {**self._default_params, **params}
        self.timeframes: Optional[Tuple[str, ...]] = tuple(timeframes) if timeframes else None
        self.strategy_id = strategy_id or self._default_id()
        self._validate()

    def _default_id(self) -> str:
        suffix = "_".join(str(v) for k, v in sorted(self.params.items()) if k.endswith("period"))
        return f"{self.type_name}_{suffix}" if suffix else self.type_name

    def _validate(self) -> None:
        """Hook for parameter checks; raise ValueError on bad values."""

    def applies_to(self, timeframe: str) -> bool:
        return self.timeframes is None or timeframe in self.timeframes

    @abstractmethod
    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        """Indicator parameterizations read by _evaluate()."""
        ...

    @abstractmethod
    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        ...

    def required_history(self) -> int:
        """
        Candles a series must hold for transitions to be detectable.

        The longest indicator lookback plus one candle, so every required
        indicator has both a latest and a previous row.
        """
        registry = get_indicator_registry()
        empty = CandleSeries.of(CandleKey(""), Timeframe.M1, ())
        lookback = 1
        for spec in self.requirements(empty):
            indicator = registry.get(spec.name)
            if indicator is not None:
                lookback = max(lookback, indicator.required_lookback(spec.param_dict))
        return lookback + 1

    def evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> StrategyResult:
        """
        Evaluate the strategy on the latest candle of series.

        Returns:
            StrategyResult; a skipped NEUTRAL one when history is insufficient.
        """
        instrument = series.instrument
        timeframe = series.timeframe.value
        timestamp = series.last_timestamp

        if len(series) < 2:
            return StrategyResult.neutral(
                self.strategy_id, instrument, timeframe, timestamp,
                error=f"{self.strategy_id} needs at least 2 candles, got {len(series)}",
            )

        missing = indicators.missing(self.requirements(series))
        if missing:
            return StrategyResult.neutral(
                self.strategy_id, instrument, timeframe, timestamp,
                error="; ".join(str(m) for m in missing),
            )

        verdict = self._evaluate(series, indicators)
        return StrategyResult(
            strategy_id=self.strategy_id,
            instrument=instrument,
            timeframe=timeframe,
            signal=verdict.signal,
            timestamp=timestamp,
            evidence=Evidence(
                indicator_snapshot=dict(verdict.snapshot),
                conditions=tuple(verdict.conditions),
                notes=verdict.notes,
            ),
            confidence=max(0.0, min(100.0, verdict.confidence)),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.strategy_id!r}, params={self.params})"


def check(conditions: List[str], label: str, passed: bool) -> bool:
    """Record a named condition with its outcome and return the outcome."""
    conditions.append(f"{label}: {'yes' if passed else 'no'}")
    return passed
