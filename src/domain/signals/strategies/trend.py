"""
Moving-average strategies.

- ma_breakout: close breaking above / below SMA(period)
- golden_cross: SMA(fast) crossing SMA(slow)
- ma_crossover: EMA/SMA(fast) crossing EMA/SMA(slow), symmetric strong signals
"""

from __future__ import annotations

from typing import List, Optional

from ..data.candle_series import CandleSeries
from ..indicators.suite import IndicatorSpec, IndicatorSuite
from ..models import SignalType
from .base import Strategy, Verdict, check
from .registry import register_strategy


def _pct(value: float, reference: float) -> float:
    return (value - reference) / reference * 100 if reference else 0.0


@register_strategy
class MABreakoutStrategy(Strategy):
    """
    Close breaking through the simple moving average.

    BUY on the candle where close moves above SMA having not been above it
    on the previous candle; a previous candle without an SMA yet counts as
    not above. WEAK_BUY while close stays above. SELL on the breakdown
    candle, WEAK_SELL while below.
    """

    type_name = "ma_breakout"
    description = "Close breaking above/below SMA(period)"
    _default_params = {"period": 20}

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return [IndicatorSpec.of("sma", period=self.params["period"])]

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        period = self.params["period"]
        sma = indicators.result("sma", period=period)
        close = series.last.close
        prev_close = series.previous.close
        ma = sma.latest("sma")
        prev_ma: Optional[float] = sma.previous("sma")

        conditions: List[str] = []
        above = check(conditions, f"close > SMA{period}", close > ma)
        was_above = prev_ma is not None and prev_close > prev_ma
        check(conditions, f"previous close > SMA{period}", was_above)

        strength = _pct(close, ma)
        slope = _pct(ma, prev_ma) if prev_ma else 0.0

        if above and not was_above:
            signal = SignalType.BUY
            confidence = min(60 + abs(strength) * 10, 90) + (10 if slope > 0 else 0)
            notes = f"breakout above SMA{period}"
        elif above:
            signal = SignalType.WEAK_BUY
            confidence = min(30 + abs(strength) * 5, 50)
            notes = f"holding above SMA{period}"
        elif was_above:
            signal = SignalType.SELL
            confidence = min(60 + abs(strength) * 10, 90) + (10 if slope < 0 else 0)
            notes = f"breakdown below SMA{period}"
        else:
            signal = SignalType.WEAK_SELL
            confidence = min(20 + abs(strength) * 5, 40)
            notes = f"below SMA{period}"

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"close": close, f"sma{period}": ma, "breakout_strength": strength, "ma_slope": slope},
            notes=notes,
        )


class _TwoLineCross(Strategy):
    """Shared logic for fast/slow moving-average crosses."""

    _default_params = {"fast_period": 20, "slow_period": 50}

    ma_name = "sma"

    def _validate(self) -> None:
        if self.params["fast_period"] >= self.params["slow_period"]:
            raise ValueError(
                f"{self.type_name}: fast_period must be < slow_period, got {self.params}"
            )

    def _specs(self) -> List[IndicatorSpec]:
        return [
            IndicatorSpec.of(self.ma_name, period=self.params["fast_period"]),
            IndicatorSpec.of(self.ma_name, period=self.params["slow_period"]),
        ]

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return self._specs()

    def _lines(self, indicators: IndicatorSuite):
        fast_spec, slow_spec = self._specs()
        fast = indicators.get_spec(fast_spec).unwrap()
        slow = indicators.get_spec(slow_spec).unwrap()
        col = self.ma_name
        prev_fast, prev_slow = fast.previous(col), slow.previous(col)
        return fast.latest(col), slow.latest(col), prev_fast, prev_slow


@register_strategy
class GoldenCrossStrategy(_TwoLineCross):
    """
    SMA(fast) crossing above SMA(slow).

    STRONG_BUY on the cross, BUY while fast stays above, SELL on a dead
    cross, WEAK_SELL while below. Without a previous value for both lines
    no cross is reported.
    """

    type_name = "golden_cross"
    description = "Fast SMA crossing slow SMA"
    _default_params = {"fast_period": 50, "slow_period": 200}

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        fast_p, slow_p = self.params["fast_period"], self.params["slow_period"]
        fast, slow, prev_fast, prev_slow = self._lines(indicators)
        has_previous = prev_fast is not None and prev_slow is not None

        conditions: List[str] = []
        above = check(conditions, f"SMA{fast_p} > SMA{slow_p}", fast > slow)
        crossed_up = has_previous and prev_fast <= prev_slow and above
        crossed_down = has_previous and prev_fast >= prev_slow and fast < slow
        gap = _pct(fast, slow)
        fast_slope = _pct(fast, prev_fast) if prev_fast else 0.0
        slow_slope = _pct(slow, prev_slow) if prev_slow else 0.0

        if crossed_up:
            check(conditions, "golden cross on this candle", True)
            signal = SignalType.STRONG_BUY
            confidence = min(70 + abs(gap) * 20, 95) + (10 if fast_slope > 0 and slow_slope > 0 else 0)
        elif above:
            signal = SignalType.BUY
            confidence = min(40 + abs(gap) * 10, 70)
        elif crossed_down:
            check(conditions, "dead cross on this candle", True)
            signal = SignalType.SELL
            confidence = min(50 + abs(gap) * 20, 85)
        else:
            signal = SignalType.WEAK_SELL
            confidence = min(30 + abs(gap) * 5, 50)

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={
                f"sma{fast_p}": fast,
                f"sma{slow_p}": slow,
                "cross_gap": gap,
                "fast_slope": fast_slope,
                "slow_slope": slow_slope,
            },
            notes=f"SMA{fast_p} x SMA{slow_p} golden cross",
        )


@register_strategy
class MACrossoverStrategy(_TwoLineCross):
    """
    Symmetric fast/slow crossover.

    STRONG_BUY / STRONG_SELL on the crossing candle, WEAK_BUY / WEAK_SELL
    while the order persists. A cross confirmed by volume ratio > 1.5 gets
    extra confidence.
    """

    type_name = "ma_crossover"
    description = "Fast/slow moving-average crossover"
    _default_params = {"fast_period": 20, "slow_period": 50, "ma_type": "sma"}

    def _validate(self) -> None:
        super()._validate()
        if self.params["ma_type"] not in ("sma", "ema"):
            raise ValueError(f"ma_crossover: ma_type must be 'sma' or 'ema', got {self.params['ma_type']!r}")
        self.ma_name = self.params["ma_type"]

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return self._specs() + [IndicatorSpec.of("volume", period=20)]

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        fast_p, slow_p = self.params["fast_period"], self.params["slow_period"]
        label = self.ma_name.upper()
        fast, slow, prev_fast, prev_slow = self._lines(indicators)
        volume_ratio = indicators.result("volume", period=20).latest("ratio")
        has_previous = prev_fast is not None and prev_slow is not None

        conditions: List[str] = []
        crossed_up = check(
            conditions, f"{label}{fast_p} crossed above {label}{slow_p}",
            has_previous and prev_fast < prev_slow and fast > slow,
        )
        crossed_down = check(
            conditions, f"{label}{fast_p} crossed below {label}{slow_p}",
            has_previous and prev_fast > prev_slow and fast < slow,
        )
        volume_confirmed = check(conditions, "volume ratio > 1.5", volume_ratio > 1.5)

        if crossed_up:
            signal, confidence = SignalType.STRONG_BUY, 75 + (15 if volume_confirmed else 0)
        elif crossed_down:
            signal, confidence = SignalType.STRONG_SELL, 75 + (15 if volume_confirmed else 0)
        elif fast > slow:
            signal, confidence = SignalType.WEAK_BUY, 40
        elif fast < slow:
            signal, confidence = SignalType.WEAK_SELL, 40
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={f"{self.ma_name}{fast_p}": fast, f"{self.ma_name}{slow_p}": slow, "volume_ratio": volume_ratio},
            notes=f"{label}{fast_p}/{label}{slow_p} crossover",
        )
