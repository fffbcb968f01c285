"""
Volume strategies.

- volume_surge: price move backed by volume well above its average
- obv_trend: On-Balance Volume direction against price direction
"""

from __future__ import annotations

from typing import List

from ..data.candle_series import CandleSeries
from ..indicators.suite import IndicatorSpec, IndicatorSuite
from ..models import SignalType
from .base import Strategy, Verdict, check
from .registry import register_strategy


@register_strategy
class VolumeSurgeStrategy(Strategy):
    """
    Rising close on surging volume.

    BUY when close is up and volume/MA >= surge_ratio; WEAK_SELL when the
    surge comes with a falling close; WEAK_BUY for a rising close on
    moderately elevated volume (ratio > 1.5).
    """

    type_name = "volume_surge"
    description = "Price move confirmed by volume surge"
    _default_params = {"period": 20, "surge_ratio": 2.0}

    def _spec(self) -> IndicatorSpec:
        return IndicatorSpec.of("volume", period=self.params["period"], surge_ratio=self.params["surge_ratio"])

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return [self._spec()]

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        volume = indicators.get_spec(self._spec()).unwrap()
        ratio = volume.latest("ratio")
        obv = volume.latest("obv")
        price_change = series.last.close - series.previous.close

        conditions: List[str] = []
        surge = check(conditions, f"volume ratio >= {self.params['surge_ratio']:g}", ratio >= self.params["surge_ratio"])
        price_up = check(conditions, "close up", price_change > 0)

        if surge and price_up:
            signal = SignalType.BUY
            confidence = min(65 + (ratio - 2) * 10, 90) + (10 if obv > 0 else 0)
        elif surge and price_change < 0:
            signal, confidence = SignalType.WEAK_SELL, 45
        elif price_up and ratio > 1.5:
            signal, confidence = SignalType.WEAK_BUY, 35
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"volume_ratio": ratio, "obv": obv, "price_change": price_change},
            notes="volume surge",
        )


@register_strategy
class OBVTrendStrategy(Strategy):
    """
    OBV and price direction over `lookback` candles.

    Both rising is BUY, both falling SELL. OBV rising against a falling
    price is WEAK_BUY (accumulation), the reverse WEAK_SELL (distribution).
    """

    type_name = "obv_trend"
    description = "On-Balance Volume trend vs price trend"
    _default_params = {"period": 20, "lookback": 5}

    def _validate(self) -> None:
        if self.params["lookback"] < 1:
            raise ValueError(f"obv_trend: lookback must be >= 1, got {self.params['lookback']}")

    def _spec(self) -> IndicatorSpec:
        return IndicatorSpec.of("volume", period=self.params["period"])

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return [self._spec()]

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        lookback = self.params["lookback"]
        obv = indicators.get_spec(self._spec()).unwrap().column("obv")
        closes = series.closes()
        span = min(lookback, len(obv) - 1, len(closes) - 1)

        if span < 1:
            return Verdict(SignalType.NEUTRAL, 0, notes="OBV history too short")

        obv_change = float(obv[-1] - obv[-1 - span])
        price_change = float(closes[-1] - closes[-1 - span])

        conditions: List[str] = []
        obv_up = check(conditions, f"OBV up over {span} candles", obv_change > 0)
        obv_down = check(conditions, f"OBV down over {span} candles", obv_change < 0)
        price_up = check(conditions, f"close up over {span} candles", price_change > 0)
        price_down = price_change < 0

        if obv_up and price_up:
            signal, confidence = SignalType.BUY, 60
        elif obv_down and price_down:
            signal, confidence = SignalType.SELL, 60
        elif obv_up and price_down:
            signal, confidence = SignalType.WEAK_BUY, 40
        elif obv_down and price_up:
            signal, confidence = SignalType.WEAK_SELL, 40
        else:
            signal, confidence = SignalType.NEUTRAL, 0

        return Verdict(
            signal=signal,
            confidence=confidence,
            conditions=conditions,
            snapshot={"obv": float(obv[-1]), "obv_change": obv_change, "price_change": price_change},
            notes="OBV trend",
        )
