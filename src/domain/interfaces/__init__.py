"""Domain interfaces for dependency injection."""

from .candle_feed import CandleEvent
from .candle_repository import CandleRepository
from .signal_sink import AnomalySink, ErrorChannel, ErrorReport, SignalSink

__all__ = [
    "AnomalySink",
    "CandleEvent",
    "CandleRepository",
    "ErrorChannel",
    "ErrorReport",
    "SignalSink",
]
