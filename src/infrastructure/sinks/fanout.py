"""Fan-out sink: forwards each result to several sinks in order."""

from __future__ import annotations

from typing import List

from ...domain.interfaces import SignalSink
from ...domain.signals.models import MultiStrategyResult
from ...utils.logging_setup import get_logger

logger = get_logger(__name__)


class FanOutSignalSink:
    """
    Publishes to every wrapped sink.

    A failing sink is logged and does not stop delivery to the others.
    """

    def __init__(self, *sinks: SignalSink) -> None:
        self._sinks: List[SignalSink] = list(sinks)

    def add(self, sink: SignalSink) -> None:
        self._sinks.append(sink)

    async def publish(self, result: MultiStrategyResult) -> None:
        for sink in self._sinks:
            try:
                await sink.publish(result)
            except Exception as e:
                logger.error(f"Sink {type(sink).__name__} failed for {result}: {e}", exc_info=True)
