"""Signal, error and anomaly sinks."""

from .logging_sinks import LoggingAnomalySink, LoggingErrorChannel, LoggingSignalSink
from .memory_sinks import InMemoryAnomalySink, InMemoryErrorChannel, InMemorySignalSink
from .fanout import FanOutSignalSink
from .jsonl_sink import JsonLinesSignalSink

__all__ = [
    "FanOutSignalSink",
    "InMemoryAnomalySink",
    "InMemoryErrorChannel",
    "InMemorySignalSink",
    "JsonLinesSignalSink",
    "LoggingAnomalySink",
    "LoggingErrorChannel",
    "LoggingSignalSink",
]
