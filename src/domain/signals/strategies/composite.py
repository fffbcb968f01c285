"""
Composite strategies combining several indicators.

- triple_confirmation: MA breakout + RSI bounce + volume surge scored together
- mean_reversion: stretched price against bands, RSI and SMA
- vwap_trend: close crossing session VWAP
"""

from __future__ import annotations

from typing import List

from ..data.candle import Timeframe
from ..data.candle_series import CandleSeries
from ..indicators.suite import IndicatorSpec, IndicatorSuite
from ..models import SignalType
from .base import Strategy, Verdict, check
from .momentum import RSIOversoldBounceStrategy
from .registry import register_strategy
from .trend import MABreakoutStrategy
from .volume import VolumeSurgeStrategy


@register_strategy
class TripleConfirmationStrategy(Strategy):
    """
    Sum of three component signals.

    Each component contributes its signal weight. A total of 4 or more is
    STRONG_BUY, 2 or more BUY, 1 or more WEAK_BUY, -2 or less SELL.
    Components that cannot run contribute nothing.
    """

    type_name = "triple_confirmation"
    description = "MA breakout + RSI bounce + volume surge"
    _default_params = {"ma_period": 20}

    def _validate(self) -> None:
        self._components: List[Strategy] = [
            MABreakoutStrategy(period=self.params["ma_period"]),
            RSIOversoldBounceStrategy(),
            VolumeSurgeStrategy(),
        ]

    def _default_id(self) -> str:
        return self.type_name

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        specs: List[IndicatorSpec] = []
        for component in self._components:
            specs.extend(component.requirements(series))
        return specs

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        conditions: List[str] = []
        snapshot = {}
        total = 0
        for component in self._components:
            result = component.evaluate(series, indicators)
            total += result.signal.weight
            snapshot[component.strategy_id] = float(result.signal.weight)
            check(conditions, f"{component.strategy_id} bullish", result.signal.is_bullish)
        snapshot["score"] = float(total)

        if total >= 4:
            signal, confidence = SignalType.STRONG_BUY, 85
        elif total >= 2:
            signal, confidence = SignalType.BUY, 65
        elif total >= 1:
            signal, confidence = SignalType.WEAK_BUY, 40
        elif total <= -2:
            signal, confidence = SignalType.SELL, 60
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(signal, confidence, conditions, snapshot, notes=f"combined score {total}")


@register_strategy
class MeanReversionStrategy(Strategy):
    """
    Price stretched far from its mean.

    BUY when %B < 0.1, RSI < 25 and close is more than 2% under SMA(period);
    SELL on the mirrored conditions (%B > 0.9, RSI > 75, 2% over).
    """

    type_name = "mean_reversion"
    description = "Stretched price reverting to mean"
    _default_params = {"period": 20, "rsi_period": 14, "deviation": 0.02}

    def _specs(self) -> List[IndicatorSpec]:
        return [
            IndicatorSpec.of("bollinger", period=self.params["period"], std_dev=2.0),
            IndicatorSpec.of("rsi", period=self.params["rsi_period"]),
            IndicatorSpec.of("sma", period=self.params["period"]),
        ]

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return self._specs()

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        bands_spec, rsi_spec, sma_spec = self._specs()
        percent_b = indicators.get_spec(bands_spec).unwrap().latest("percent_b")
        rsi = indicators.get_spec(rsi_spec).unwrap().latest("rsi")
        sma = indicators.get_spec(sma_spec).unwrap().latest("sma")
        close = series.last.close
        deviation = self.params["deviation"]

        conditions: List[str] = []
        low_b = check(conditions, "%B < 0.1", percent_b < 0.1)
        low_rsi = check(conditions, "RSI < 25", rsi < 25)
        under = check(conditions, f"close < SMA by {deviation:.0%}", close < sma * (1 - deviation))
        high_b = check(conditions, "%B > 0.9", percent_b > 0.9)
        high_rsi = check(conditions, "RSI > 75", rsi > 75)
        over = check(conditions, f"close > SMA by {deviation:.0%}", close > sma * (1 + deviation))

        if low_b and low_rsi and under:
            signal, confidence = SignalType.BUY, 70
        elif high_b and high_rsi and over:
            signal, confidence = SignalType.SELL, 70
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"close": close, "sma": sma, "percent_b": percent_b, "rsi": rsi},
            notes="mean reversion",
        )


@register_strategy
class VWAPTrendStrategy(Strategy):
    """
    Close relative to VWAP.

    BUY / SELL on the candle where close crosses VWAP, WEAK_BUY / WEAK_SELL
    by side otherwise. With session="daily" VWAP restarts at every UTC
    midnight inside the series; with session="none" it accumulates over the
    whole series.
    """

    type_name = "vwap_trend"
    description = "Close crossing VWAP"
    _default_params = {"session": "daily"}

    def _validate(self) -> None:
        if self.params["session"] not in ("daily", "none"):
            raise ValueError(f"vwap_trend: session must be 'daily' or 'none', got {self.params['session']!r}")

    def _spec(self, series: CandleSeries) -> IndicatorSpec:
        boundaries = ()
        if self.params["session"] == "daily" and len(series):
            day = Timeframe.D1.millis
            first = Timeframe.D1.bucket_start(series.candles[0].open_time) + day
            boundaries = tuple(range(first, series.last.open_time + 1, day))
        return IndicatorSpec.of("vwap", session_boundaries=boundaries)

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return [self._spec(series)]

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        vwap = indicators.get_spec(self._spec(series)).unwrap()
        value, prev_value = vwap.latest("vwap"), vwap.previous("vwap")
        close, prev_close = series.last.close, series.previous.close
        deviation = vwap.latest("deviation_percent")

        conditions: List[str] = []
        above = check(conditions, "close > VWAP", close > value)
        has_previous = prev_value is not None
        crossed_up = check(conditions, "crossed above VWAP", has_previous and prev_close <= prev_value and above)
        crossed_down = check(
            conditions, "crossed below VWAP", has_previous and prev_close >= prev_value and close < value
        )

        if crossed_up:
            signal, confidence = SignalType.BUY, 60
        elif crossed_down:
            signal, confidence = SignalType.SELL, 60
        elif above:
            signal, confidence = SignalType.WEAK_BUY, 35
        elif close < value:
            signal, confidence = SignalType.WEAK_SELL, 35
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"close": close, "vwap": value, "deviation_percent": deviation},
            notes=f"VWAP ({self.params['session']} session)",
        )
