"""
Bollinger Band strategies.

- bollinger_upper_break: close breaking above the upper band
- bollinger_lower_bounce: close recovering from below the lower band
- bollinger_reversal: band touch confirmed by an RSI extreme
"""

from __future__ import annotations

from typing import List

from ..data.candle_series import CandleSeries
from ..indicators.suite import IndicatorSpec, IndicatorSuite
from ..models import SignalType
from .base import Strategy, Verdict, check
from .registry import register_strategy

SQUEEZE_BANDWIDTH = 0.1


class _BandStrategy(Strategy):
    _default_params = {"period": 20, "std_dev": 2.0}

    def _validate(self) -> None:
        if self.params["std_dev"] <= 0:
            raise ValueError(f"{self.type_name}: std_dev must be positive, got {self.params['std_dev']}")

    def _bands_spec(self) -> IndicatorSpec:
        return IndicatorSpec.of("bollinger", period=self.params["period"], std_dev=self.params["std_dev"])

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return [self._bands_spec()]

    def _bands(self, indicators: IndicatorSuite):
        return indicators.get_spec(self._bands_spec()).unwrap()


@register_strategy
class BollingerUpperBreakStrategy(_BandStrategy):
    """
    Close breaking above the upper band.

    BUY on the breaking candle, with extra confidence when the bands were
    squeezed (bandwidth < 0.1). WEAK_BUY while above the band or when %B
    exceeds 0.8.
    """

    type_name = "bollinger_upper_break"
    description = "Close breaking above upper Bollinger Band"

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        bands = self._bands(indicators)
        close, prev_close = series.last.close, series.previous.close
        upper, prev_upper = bands.latest("upper"), bands.previous("upper")
        percent_b = bands.latest("percent_b")
        bandwidth = bands.latest("bandwidth")

        conditions: List[str] = []
        above = check(conditions, "close > upper band", close > upper)
        was_inside = prev_upper is not None and prev_close <= prev_upper
        check(conditions, "previous close <= upper band", was_inside)
        squeeze = check(conditions, f"bandwidth < {SQUEEZE_BANDWIDTH}", bandwidth < SQUEEZE_BANDWIDTH)

        if above and was_inside:
            signal = SignalType.BUY
            confidence = 65 + (15 if squeeze else 0)
        elif above or percent_b > 0.8:
            signal, confidence = SignalType.WEAK_BUY, 40
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"close": close, "upper": upper, "percent_b": percent_b, "bandwidth": bandwidth},
            notes="upper band breakout",
        )


@register_strategy
class BollingerLowerBounceStrategy(_BandStrategy):
    """
    Close recovering back above the lower band.

    BUY when the previous close was below the lower band and the current
    one is back at or above it. WEAK_BUY while below the band or when %B is
    under 0.2.
    """

    type_name = "bollinger_lower_bounce"
    description = "Close bouncing off lower Bollinger Band"

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        bands = self._bands(indicators)
        close, prev_close = series.last.close, series.previous.close
        lower, prev_lower = bands.latest("lower"), bands.previous("lower")
        percent_b = bands.latest("percent_b")

        conditions: List[str] = []
        was_below = check(
            conditions, "previous close < lower band", prev_lower is not None and prev_close < prev_lower
        )
        recovered = check(conditions, "close >= lower band", close >= lower)

        if was_below and recovered:
            signal, confidence = SignalType.BUY, 65
        elif not recovered or percent_b < 0.2:
            signal, confidence = SignalType.WEAK_BUY, 35
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"close": close, "lower": lower, "percent_b": percent_b},
            notes="lower band bounce",
        )


@register_strategy
class BollingerReversalStrategy(_BandStrategy):
    """
    Band extremes confirmed by RSI.

    STRONG_SELL when close is at or above the upper band with RSI above
    overbought; STRONG_BUY when at or below the lower band with RSI under
    oversold. Otherwise %B > 0.8 leans WEAK_SELL and %B < 0.2 WEAK_BUY.
    """

    type_name = "bollinger_reversal"
    description = "Bollinger Band extreme with RSI confirmation"
    _default_params = {"period": 20, "std_dev": 2.0, "rsi_period": 14, "oversold": 30.0, "overbought": 70.0}

    def _rsi_spec(self) -> IndicatorSpec:
        return IndicatorSpec.of(
            "rsi",
            period=self.params["rsi_period"],
            oversold=self.params["oversold"],
            overbought=self.params["overbought"],
        )

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return [self._bands_spec(), self._rsi_spec()]

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        bands = self._bands(indicators)
        rsi = indicators.get_spec(self._rsi_spec()).unwrap().latest("rsi")
        close = series.last.close
        upper, lower = bands.latest("upper"), bands.latest("lower")
        percent_b = bands.latest("percent_b")

        conditions: List[str] = []
        at_upper = check(conditions, "close >= upper band", close >= upper)
        at_lower = check(conditions, "close <= lower band", close <= lower)
        hot = check(conditions, f"RSI > {self.params['overbought']:g}", rsi > self.params["overbought"])
        cold = check(conditions, f"RSI < {self.params['oversold']:g}", rsi < self.params["oversold"])

        if at_upper and hot:
            signal, confidence = SignalType.STRONG_SELL, 75
        elif at_lower and cold:
            signal, confidence = SignalType.STRONG_BUY, 75
        elif percent_b > 0.8:
            signal, confidence = SignalType.WEAK_SELL, 35
        elif percent_b < 0.2:
            signal, confidence = SignalType.WEAK_BUY, 35
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"close": close, "upper": upper, "lower": lower, "percent_b": percent_b, "rsi": rsi},
            notes="band extreme reversal",
        )
