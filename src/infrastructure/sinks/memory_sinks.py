"""
In-memory sinks.

Collect everything they receive; used by tests and by CSV replay to
summarize a run. InMemorySignalSink de-duplicates on dedup_key the way an
at-least-once consumer must.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

from ...domain.interfaces import ErrorReport
from ...domain.signals.data import CandleAnomaly
from ...domain.signals.models import MultiStrategyResult, SignalType


class InMemorySignalSink:
    """
    Keeps results in publish order.

    A result whose dedup_key was already seen is counted in `duplicates`
    and not stored again.
    """

    def __init__(self) -> None:
        self._results: List[MultiStrategyResult] = []
        self._seen: Dict[Tuple[str, str, str, int], MultiStrategyResult] = {}
        self._event = asyncio.Event()
        self.duplicates = 0

    async def publish(self, result: MultiStrategyResult) -> None:
        if result.dedup_key in self._seen:
            self.duplicates += 1
            return
        self._seen[result.dedup_key] = result
        self._results.append(result)
        self._event.set()

    @property
    def results(self) -> List[MultiStrategyResult]:
        return list(self._results)

    def get(
        self, instrument: str, timeframe: str, timestamp: int, market: str = "FUTURES"
    ) -> Optional[MultiStrategyResult]:
        return self._seen.get((instrument, market, timeframe, timestamp))

    def by_signal(self, signal: SignalType) -> List[MultiStrategyResult]:
        return [r for r in self._results if r.overall_signal is signal]

    async def wait_for(self, count: int, timeout: float = 5.0) -> List[MultiStrategyResult]:
        """Wait until at least `count` results arrived."""

        async def _wait() -> None:
            while len(self._results) < count:
                self._event.clear()
                await self._event.wait()

        await asyncio.wait_for(_wait(), timeout)
        return self.results

    def __len__(self) -> int:
        return len(self._results)


class InMemoryErrorChannel:
    def __init__(self) -> None:
        self.reports: List[ErrorReport] = []

    async def report(self, report: ErrorReport) -> None:
        self.reports.append(report)


class InMemoryAnomalySink:
    def __init__(self) -> None:
        self.anomalies: List[CandleAnomaly] = []

    async def on_anomaly(self, anomaly: CandleAnomaly) -> None:
        self.anomalies.append(anomaly)
