"""
Domain exceptions for the signal pipeline.

Implements a hierarchy distinguishing between recoverable runtime errors
(malformed candles, replayed or missing minutes, a strategy that blows up)
and fatal errors (configuration issues, resource exhaustion) that require
the process to stop.

Nothing recoverable is allowed to escape the Pipeline Coordinator: these
errors degrade a single (instrument, timeframe) result and are recorded as
evidence on it.
"""

from __future__ import annotations

from typing import Any, Optional


class SignalCoreError(Exception):
    """Base class for all signal pipeline exceptions."""
    pass


class RecoverableError(SignalCoreError):
    """
    Errors that the pipeline can recover from without restarting.

    Examples:
    - A candle violating the OHLC invariants
    - A replayed candle older than the buffered history
    - A missing one-minute candle inside a higher-timeframe bucket
    - A single strategy raising during evaluation
    """
    pass


class FatalError(SignalCoreError):
    """
    Critical errors requiring shutdown or operator intervention.

    Examples:
    - Invalid configuration
    - Buffer allocation failure
    """
    pass


class InvalidCandle(RecoverableError):
    """A candle violates the OHLC / volume / time invariants."""

    def __init__(self, message: str, candle: Optional[Any] = None) -> None:
        super().__init__(message)
        self.candle = candle


class OutOfOrderCandle(RecoverableError):
    """A candle arrived with an openTime older than the buffered history."""

    def __init__(self, open_time: int, last_open_time: int) -> None:
        super().__init__(
            f"Candle openTime {open_time} is older than last buffered {last_open_time}"
        )
        self.open_time = open_time
        self.last_open_time = last_open_time


class AggregationGapError(RecoverableError):
    """A higher-timeframe bucket was closed with one-minute candles missing."""

    def __init__(self, bucket_start: int, timeframe: str, expected: int, actual: int) -> None:
        super().__init__(
            f"{timeframe} bucket {bucket_start} closed with {actual}/{expected} minutes"
        )
        self.bucket_start = bucket_start
        self.timeframe = timeframe
        self.expected = expected
        self.actual = actual


class StrategyExecutionError(RecoverableError):
    """A strategy raised while being evaluated."""

    def __init__(self, strategy_id: str, cause: BaseException) -> None:
        super().__init__(f"Strategy '{strategy_id}' failed: {type(cause).__name__}: {cause}")
        self.strategy_id = strategy_id
        self.cause = cause


class ConfigurationError(FatalError):
    """Invalid system configuration."""
    pass


class ResourceExhaustedError(FatalError):
    """A bounded resource (buffer, queue) could not be allocated."""
    pass
