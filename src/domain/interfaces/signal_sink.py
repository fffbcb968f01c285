"""Downstream collaborator protocols: signal sink, error channel, anomaly sink."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol, runtime_checkable

from ..signals.data.anomaly_detector import CandleAnomaly
from ..signals.models import MultiStrategyResult


@dataclass(frozen=True)
class ErrorReport:
    """A trigger that could not produce a meaningful result."""

    instrument: str
    error: str
    timestamp: int  # openTime (ms) of the triggering candle

    def to_dict(self) -> Dict[str, Any]:
        return {"instrument": self.instrument, "error": self.error, "timestamp": self.timestamp}


@runtime_checkable
class SignalSink(Protocol):
    """
    Receives each MultiStrategyResult once per trigger.

    Delivery is at-least-once; consumers de-duplicate on result.dedup_key
    (instrument, market, timeframe, timestamp).
    """

    async def publish(self, result: MultiStrategyResult) -> None:
        ...


@runtime_checkable
class ErrorChannel(Protocol):
    """Receives reports for FAILED triggers."""

    async def report(self, report: ErrorReport) -> None:
        ...


@runtime_checkable
class AnomalySink(Protocol):
    """Receives anomalies detected on closed candles."""

    async def on_anomaly(self, anomaly: CandleAnomaly) -> None:
        ...
