"""
Performance logging utilities.

Provides timing context managers and decorators for automatic
performance logging. All timing logs include the current trigger ID
for correlation.

Usage:
    # Context manager
    with log_timing("strategy_fanout"):
        results = run_strategies(...)

    # Async context manager
    async with log_timing_async("evaluation"):
        result = await engine.evaluate(...)

    # Decorator
    @timed("warm_start")
    async def warm_start(...):
        ...

Guidelines:
    Use for trigger-level operations (one evaluation, a warm start).
    Do NOT use per candle update or inside indicator loops; the overhead
    accumulates on the hot path.

    Threshold guidelines:
    - Evaluation (fan-out + reduce): warn=250ms, error=1000ms
    - Warm start: warn=1000ms, error=5000ms
"""

from __future__ import annotations

import asyncio
import time
import logging
import functools
from contextlib import contextmanager, asynccontextmanager
from typing import Optional, Callable, Any, Generator, AsyncGenerator

from .trace_context import get_trigger_id

# Performance logger - uses 'signalcore.perf' category
_perf_logger: Optional[logging.Logger] = None


def get_perf_logger() -> logging.Logger:
    """Get or create the performance logger."""
    global _perf_logger
    if _perf_logger is None:
        _perf_logger = logging.getLogger("signalcore.perf")
    return _perf_logger


def set_perf_logger(logger: logging.Logger) -> None:
    """Set the performance logger (for testing or custom configuration)."""
    global _perf_logger
    _perf_logger = logger


def _emit(operation: str, duration_ms: float, context: dict, warn_ms: float, error_ms: float) -> None:
    logger = get_perf_logger()
    trigger_id = get_trigger_id()
    log_data = {
        "trigger": trigger_id,
        "operation": operation,
        "duration_ms": round(duration_ms, 2),
        **context,
    }

    if duration_ms >= error_ms:
        logger.error(f"[{trigger_id}] SLOW {operation}: {duration_ms:.1f}ms", extra={"data": log_data})
    elif duration_ms >= warn_ms:
        logger.warning(f"[{trigger_id}] {operation}: {duration_ms:.1f}ms (slow)", extra={"data": log_data})
    else:
        logger.debug(f"[{trigger_id}] {operation}: {duration_ms:.1f}ms", extra={"data": log_data})


@contextmanager
def log_timing(
    operation: str,
    warn_threshold_ms: float = 500.0,
    error_threshold_ms: float = 2000.0,
    extra: Optional[dict] = None,
) -> Generator[dict, None, None]:
    """
    Context manager to log operation timing.

    Logs timing to the perf category with trigger ID. Automatically
    escalates log level based on duration thresholds.

    Args:
        operation: Name of the operation being timed.
        warn_threshold_ms: Duration above which to log as WARNING.
        error_threshold_ms: Duration above which to log as ERROR.
        extra: Additional data to include in the log.

    Yields:
        Dict that can be updated with additional context during execution.

    Example:
        with log_timing("indicator_prefetch", warn_threshold_ms=100) as ctx:
            ctx["specs"] = len(specs)
            suite.prefetch(specs)
    """
    context = extra.copy() if extra else {}
    start_time = time.perf_counter()

    try:
        yield context
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        _emit(operation, duration_ms, context, warn_threshold_ms, error_threshold_ms)


@asynccontextmanager
async def log_timing_async(
    operation: str,
    warn_threshold_ms: float = 500.0,
    error_threshold_ms: float = 2000.0,
    extra: Optional[dict] = None,
) -> AsyncGenerator[dict, None]:
    """
    Async context manager to log operation timing.

    Same as log_timing but for async operations.
    """
    context = extra.copy() if extra else {}
    start_time = time.perf_counter()

    try:
        yield context
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        _emit(operation, duration_ms, context, warn_threshold_ms, error_threshold_ms)


def timed(
    operation: Optional[str] = None,
    warn_threshold_ms: float = 500.0,
    error_threshold_ms: float = 2000.0,
) -> Callable:
    """
    Decorator to log function timing.

    Args:
        operation: Name of the operation. Defaults to function name.
        warn_threshold_ms: Duration above which to log as WARNING.
        error_threshold_ms: Duration above which to log as ERROR.

    Returns:
        Decorated function.
    """
    def decorator(func: Callable) -> Callable:
        op_name = operation or func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with log_timing(op_name, warn_threshold_ms, error_threshold_ms):
                return func(*args, **kwargs)

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            async with log_timing_async(op_name, warn_threshold_ms, error_threshold_ms):
                return await func(*args, **kwargs)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return wrapper

    return decorator


def log_evaluation_timing(extra: Optional[dict] = None):
    """Pre-configured timing for one trigger evaluation."""
    return log_timing_async("evaluation", warn_threshold_ms=250, error_threshold_ms=1000, extra=extra)
