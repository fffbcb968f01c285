"""Sinks that write to the category logs."""

from __future__ import annotations

from ...domain.interfaces import ErrorReport
from ...domain.signals.data import CandleAnomaly
from ...domain.signals.models import EvaluationState, MultiStrategyResult
from ...utils.logging_setup import get_logger

logger = get_logger(__name__)


class LoggingSignalSink:
    """Logs every published result; the full payload goes into extra data."""

    def __init__(self, include_neutral: bool = True) -> None:
        self._include_neutral = include_neutral

    async def publish(self, result: MultiStrategyResult) -> None:
        if not self._include_neutral and result.overall_signal.weight == 0 and result.state is EvaluationState.PUBLISHED:
            return
        logger.info(f"Signal {result}", extra={"data": result.to_dict()})


class LoggingErrorChannel:
    async def report(self, report: ErrorReport) -> None:
        logger.error(
            f"Evaluation failed for {report.instrument}@{report.timestamp}: {report.error}",
            extra={"data": report.to_dict()},
        )


class LoggingAnomalySink:
    async def on_anomaly(self, anomaly: CandleAnomaly) -> None:
        logger.warning(
            f"Anomaly {anomaly.kind.value} {anomaly.direction} on {anomaly.instrument} "
            f"{anomaly.timeframe}@{anomaly.timestamp}: {anomaly.magnitude:.2f}",
            extra={"data": anomaly.to_dict()},
        )
