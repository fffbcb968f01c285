"""
CandleAnomalyDetector - Flags unusual closed candles.

Checks every closed higher-timeframe candle against the candles that closed
before it:

- high_volume: volume above `volume_multiplier` x the mean of the previous
  `volume_lookback` candles
- price_spike: |close - open| / open at or above `spike_percent`
- gap: |open - previous close| / previous close at or above `gap_percent`

Anomalies are informational; they never influence strategy evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Sequence

from src.utils.logging_setup import get_logger

from .candle import Candle, CandleKey, Timeframe

logger = get_logger(__name__)


class AnomalyKind(Enum):
    HIGH_VOLUME = "high_volume"
    PRICE_SPIKE = "price_spike"
    GAP = "gap"


@dataclass(frozen=True)
class CandleAnomaly:
    """One detected anomaly on a closed candle."""

    kind: AnomalyKind
    instrument: str
    market: str
    timeframe: str
    timestamp: int
    direction: str  # "UP" or "DOWN"
    magnitude: float  # ratio for volume, percent for spike/gap
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "instrument": self.instrument,
            "market": self.market,
            "timeframe": self.timeframe,
            "timestamp": self.timestamp,
            "direction": self.direction,
            "magnitude": self.magnitude,
            "details": self.details,
        }


@dataclass
class AnomalyThresholds:
    volume_multiplier: float = 3.0
    volume_lookback: int = 10
    spike_percent: float = 3.0
    gap_percent: float = 1.0


class CandleAnomalyDetector:
    """Stateless detector; history is passed in on every call."""

    def __init__(self, thresholds: AnomalyThresholds | None = None) -> None:
        self._thresholds = thresholds or AnomalyThresholds()

    def detect(
        self,
        key: CandleKey,
        timeframe: Timeframe,
        candle: Candle,
        history: Sequence[Candle],
    ) -> List[CandleAnomaly]:
        """
        Check one closed candle.

        Args:
            key: Stream the candle belongs to.
            timeframe: Timeframe of the candle.
            candle: The candle that just closed.
            history: Closed candles strictly before `candle`, oldest first.
        """
        t = self._thresholds
        found: List[CandleAnomaly] = []

        def make(kind: AnomalyKind, direction: str, magnitude: float, **details: Any) -> CandleAnomaly:
            return CandleAnomaly(
                kind=kind,
                instrument=key.instrument,
                market=key.market,
                timeframe=timeframe.value,
                timestamp=candle.open_time,
                direction=direction,
                magnitude=magnitude,
                details=details,
            )

        if len(history) >= t.volume_lookback:
            recent = history[-t.volume_lookback:]
            avg_volume = sum(c.volume for c in recent) / len(recent)
            if avg_volume > 0 and candle.volume > avg_volume * t.volume_multiplier:
                ratio = candle.volume / avg_volume
                found.append(make(
                    AnomalyKind.HIGH_VOLUME,
                    "UP" if candle.close >= candle.open else "DOWN",
                    ratio,
                    current_volume=candle.volume,
                    average_volume=avg_volume,
                ))

        change = candle.body_percent
        if abs(change) >= t.spike_percent:
            found.append(make(AnomalyKind.PRICE_SPIKE, "UP" if change > 0 else "DOWN", abs(change)))

        if history and history[-1].close > 0:
            prev_close = history[-1].close
            gap = (candle.open - prev_close) / prev_close * 100
            if abs(gap) >= t.gap_percent:
                found.append(make(
                    AnomalyKind.GAP,
                    "UP" if gap > 0 else "DOWN",
                    abs(gap),
                    prev_close=prev_close,
                    current_open=candle.open,
                ))

        for anomaly in found:
            logger.info(
                f"{anomaly.kind.value} on {key} {timeframe.value}: "
                f"{anomaly.direction} {anomaly.magnitude:.2f}",
                extra={"data": anomaly.to_dict()},
            )
        return found
