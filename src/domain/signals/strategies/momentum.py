"""
Momentum strategies built on RSI and MACD.

- rsi_oversold_bounce: RSI turning up from the oversold zone
- rsi_overbought_reversal: RSI turning down from the overbought zone
- macd_golden_cross: MACD line crossing its signal line
- macd_zero_cross: MACD line crossing zero
"""

from __future__ import annotations

from typing import List

from ..data.candle_series import CandleSeries
from ..indicators.suite import IndicatorSpec, IndicatorSuite
from ..models import SignalType
from .base import Strategy, Verdict, check
from .registry import register_strategy


class _RSIStrategy(Strategy):
    _default_params = {"period": 14, "oversold": 30.0, "overbought": 70.0}

    def _validate(self) -> None:
        if not 0 <= self.params["oversold"] < self.params["overbought"] <= 100:
            raise ValueError(f"{self.type_name}: need 0 <= oversold < overbought <= 100, got {self.params}")

    def _spec(self) -> IndicatorSpec:
        return IndicatorSpec.of(
            "rsi",
            period=self.params["period"],
            oversold=self.params["oversold"],
            overbought=self.params["overbought"],
        )

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return [self._spec()]

    def _rsi(self, indicators: IndicatorSuite):
        result = indicators.get_spec(self._spec()).unwrap()
        return result.latest("rsi"), result.previous("rsi")


@register_strategy
class RSIOversoldBounceStrategy(_RSIStrategy):
    """
    RSI rebounding inside the oversold zone.

    BUY when RSI <= oversold and rising, WEAK_BUY when oversold but still
    falling, WEAK_SELL when overbought.
    """

    type_name = "rsi_oversold_bounce"
    description = "RSI bouncing from oversold"

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        oversold, overbought = self.params["oversold"], self.params["overbought"]
        rsi, prev_rsi = self._rsi(indicators)

        conditions: List[str] = []
        is_oversold = check(conditions, f"RSI <= {oversold:g}", rsi <= oversold)
        rising = check(conditions, "RSI rising", prev_rsi is not None and rsi > prev_rsi)

        if is_oversold and rising:
            signal, confidence = SignalType.BUY, min(60 + (oversold - rsi) * 2, 85)
            notes = "RSI turning up from oversold"
        elif is_oversold:
            signal, confidence = SignalType.WEAK_BUY, 40
            notes = "RSI oversold"
        elif rsi >= overbought:
            signal, confidence = SignalType.WEAK_SELL, 40
            notes = "RSI overbought"
        else:
            signal, confidence = SignalType.NEUTRAL, 0
            notes = ""

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"rsi": rsi, "previous_rsi": prev_rsi},
            notes=notes,
        )


@register_strategy
class RSIOverboughtReversalStrategy(_RSIStrategy):
    """
    RSI rolling over inside the overbought zone.

    SELL when RSI >= overbought and falling, WEAK_SELL when overbought but
    still rising, WEAK_BUY when oversold.
    """

    type_name = "rsi_overbought_reversal"
    description = "RSI reversing from overbought"

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        oversold, overbought = self.params["oversold"], self.params["overbought"]
        rsi, prev_rsi = self._rsi(indicators)

        conditions: List[str] = []
        is_overbought = check(conditions, f"RSI >= {overbought:g}", rsi >= overbought)
        falling = check(conditions, "RSI falling", prev_rsi is not None and rsi < prev_rsi)

        if is_overbought and falling:
            signal, confidence = SignalType.SELL, min(60 + (rsi - overbought) * 2, 85)
            notes = "RSI turning down from overbought"
        elif is_overbought:
            signal, confidence = SignalType.WEAK_SELL, 40
            notes = "RSI overbought"
        elif rsi <= oversold:
            signal, confidence = SignalType.WEAK_BUY, 40
            notes = "RSI oversold"
        else:
            signal, confidence = SignalType.NEUTRAL, 0
            notes = ""

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"rsi": rsi, "previous_rsi": prev_rsi},
            notes=notes,
        )


class _MACDStrategy(Strategy):
    _default_params = {"fast_period": 12, "slow_period": 26, "signal_period": 9}

    def _validate(self) -> None:
        if self.params["fast_period"] >= self.params["slow_period"]:
            raise ValueError(f"{self.type_name}: fast_period must be < slow_period, got {self.params}")

    def _spec(self) -> IndicatorSpec:
        return IndicatorSpec.of("macd", **self.params)

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return [self._spec()]


@register_strategy
class MACDGoldenCrossStrategy(_MACDStrategy):
    """
    MACD line crossing above its signal line.

    BUY on the cross, STRONG_BUY when the cross happens above zero.
    WEAK_BUY while MACD stays above signal, SELL on the dead cross,
    WEAK_SELL while below.
    """

    type_name = "macd_golden_cross"
    description = "MACD crossing its signal line"

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        macd = indicators.get_spec(self._spec()).unwrap()
        state = macd.state
        macd_value, signal_value = state["macd"], state["signal"]
        histogram = state["histogram"]

        conditions: List[str] = []
        golden = check(conditions, "golden cross", state["crossover"] == "golden")
        dead = check(conditions, "dead cross", state["crossover"] == "dead")
        above_zero = check(conditions, "MACD > 0", macd_value > 0)

        if golden:
            signal = SignalType.STRONG_BUY if above_zero else SignalType.BUY
            confidence = 80 if above_zero else 65
        elif dead:
            signal = SignalType.SELL
            confidence = 65 if not above_zero else 55
        elif macd_value > signal_value:
            signal, confidence = SignalType.WEAK_BUY, 40
        else:
            signal, confidence = SignalType.WEAK_SELL, 40

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"macd": macd_value, "signal": signal_value, "histogram": histogram},
            notes="MACD/signal crossover",
        )


@register_strategy
class MACDZeroCrossStrategy(_MACDStrategy):
    """
    MACD line crossing the zero line.

    BUY / SELL on the crossing candle, WEAK_BUY / WEAK_SELL by side of zero
    otherwise.
    """

    type_name = "macd_zero_cross"
    description = "MACD crossing zero"

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        macd = indicators.get_spec(self._spec()).unwrap()
        value = macd.latest("macd")
        previous = macd.previous("macd")

        conditions: List[str] = []
        crossed_up = check(conditions, "MACD crossed above 0", previous is not None and previous <= 0 < value)
        crossed_down = check(conditions, "MACD crossed below 0", previous is not None and previous >= 0 > value)

        if crossed_up:
            signal, confidence = SignalType.BUY, 70
        elif crossed_down:
            signal, confidence = SignalType.SELL, 70
        elif value > 0:
            signal, confidence = SignalType.WEAK_BUY, 35
        elif value < 0:
            signal, confidence = SignalType.WEAK_SELL, 35
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"macd": value, "previous_macd": previous},
            notes="MACD zero line",
        )
