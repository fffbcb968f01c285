"""Utility modules."""

from .logging_setup import (
    setup_category_logging,
    setup_from_config,
    flush_all_loggers,
    shutdown_logging,
    reset_session_run_number,
    set_log_timezone,
    get_log_timezone,
    get_current_timestamp,
    get_logger,
    set_verbose_mode,
    set_console_enabled,
    is_verbose_mode,
    is_console_enabled,
)
from .trace_context import (
    get_trigger_id,
    set_trigger_id,
    clear_trigger_id,
    new_trigger,
    generate_trigger_id,
)
from .perf_logger import (
    log_timing,
    log_timing_async,
    log_evaluation_timing,
    timed,
)
from .result import (
    Result,
    Ok,
    Err,
    UnwrapError,
    partition,
)

__all__ = [
    # Logging setup
    "setup_category_logging",
    "setup_from_config",
    "flush_all_loggers",
    "shutdown_logging",
    "reset_session_run_number",
    "set_log_timezone",
    "get_log_timezone",
    "get_current_timestamp",
    "get_logger",
    "set_verbose_mode",
    "set_console_enabled",
    "is_verbose_mode",
    "is_console_enabled",
    # Trace context
    "get_trigger_id",
    "set_trigger_id",
    "clear_trigger_id",
    "new_trigger",
    "generate_trigger_id",
    # Performance logging
    "log_timing",
    "log_timing_async",
    "log_evaluation_timing",
    "timed",
    # Result type
    "Result",
    "Ok",
    "Err",
    "UnwrapError",
    "partition",
]
