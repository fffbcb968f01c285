"""
Logging setup with categories and trigger ID support.

Provides:
- 4 log categories: system, data, signal, perf
- Automatic module → category routing
- Trigger ID correlation in all logs
- JSON-lines file logging through a QueueHandler/QueueListener pair
- Console output (optional, colored)
- Configurable timezone for log timestamps

Categories:
- system: Startup, shutdown, config, pipeline coordination
- data: Candle buffering, aggregation, anomalies, repositories
- signal: Indicators, strategies, reducer
- perf: Timing, latency, performance diagnostics
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import os
import re
import json
from queue import Queue
from pathlib import Path
from typing import Optional, Dict, List, TYPE_CHECKING
from datetime import datetime
from zoneinfo import ZoneInfo

# Import trace context for trigger ID
from .trace_context import get_trigger_id

if TYPE_CHECKING:
    from config.models import LoggingConfig

# =============================================================================
# GLOBAL STATE
# =============================================================================

# Global run number for this session (determined at startup)
_session_run_number: Optional[int] = None

# Global timezone setting for log timestamps (None = local time)
_log_timezone: Optional[ZoneInfo] = None

# Global verbose flag (set via --verbose CLI flag)
_verbose_mode: bool = False

# Global console output flag
_console_enabled: bool = False

# Global log level override (set via --log-level CLI flag)
_log_level_override: Optional[str] = None

# Configured category loggers
_category_loggers: Dict[str, logging.Logger] = {}

# Queue listeners for async file logging (one per category)
_queue_listeners: List[logging.handlers.QueueListener] = []

# =============================================================================
# LOG CATEGORIES AND ROUTING
# =============================================================================

LOGGER_PREFIX = "signalcore"

# Available log categories
CATEGORIES = ["system", "data", "signal", "perf"]

# Category file suffixes
CATEGORY_SUFFIXES = {
    "system": "sys",
    "data": "dat",
    "signal": "sig",
    "perf": "prf",
}

# Module path → category routing
# More specific paths should come first
MODULE_ROUTING: List[tuple[str, str]] = [
    # Candle data
    ("src.domain.signals.data", "data"),
    ("src.infrastructure.repositories", "data"),
    ("src.infrastructure.loaders", "data"),

    # Signal domain (indicators, strategies, reducer, engine)
    ("src.domain.signals", "signal"),
    ("src.infrastructure.sinks", "signal"),

    # Application layer
    ("src.application", "system"),

    # Default fallback
    ("src", "system"),
]


def get_category_for_module(module_name: str) -> str:
    """
    Determine the log category for a given module name.

    Args:
        module_name: Full module path (e.g., "src.domain.signals.data.candle_buffer").

    Returns:
        Category name (system, data, signal, or perf).
    """
    for prefix, category in MODULE_ROUTING:
        if module_name.startswith(prefix):
            return category
    return "system"  # Default fallback


# =============================================================================
# TIMEZONE SUPPORT
# =============================================================================

def set_log_timezone(tz: Optional[str] = None) -> None:
    """
    Set the timezone for log timestamps.

    Args:
        tz: Timezone name (e.g., "UTC", "Asia/Hong_Kong").
            If None or "local", uses local system time.
    """
    global _log_timezone
    if tz is None or tz == "local":
        _log_timezone = None
    else:
        _log_timezone = ZoneInfo(tz)


def get_log_timezone() -> Optional[ZoneInfo]:
    """Get the current log timezone setting."""
    return _log_timezone


def get_current_timestamp() -> str:
    """
    Get the current timestamp formatted for logging.

    Returns:
        ISO format timestamp with timezone info.
    """
    if _log_timezone is not None:
        return datetime.now(_log_timezone).isoformat()
    return datetime.now().isoformat()


# =============================================================================
# GLOBAL CONFIGURATION
# =============================================================================

def set_verbose_mode(enabled: bool) -> None:
    """Enable or disable verbose mode (DEBUG level logging)."""
    global _verbose_mode
    _verbose_mode = enabled


def is_verbose_mode() -> bool:
    return _verbose_mode


def set_console_enabled(enabled: bool) -> None:
    """Enable or disable console output."""
    global _console_enabled
    _console_enabled = enabled


def is_console_enabled() -> bool:
    return _console_enabled


def set_log_level_override(level: Optional[str]) -> None:
    """Set a global log level override."""
    global _log_level_override
    _log_level_override = level.upper() if level else None


def get_effective_log_level() -> str:
    """Get the effective log level (considering verbose mode and overrides)."""
    if _verbose_mode:
        return "DEBUG"
    if _log_level_override:
        return _log_level_override
    return "INFO"


# =============================================================================
# JSON FORMATTER WITH TRIGGER ID
# =============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging with trigger ID support.

    Formats log records as single-line JSON with:
    - Timestamp (with timezone)
    - Level
    - Category (derived from logger name)
    - Trigger ID (for correlation)
    - Message
    - Extra data (extra={"data": {...}})
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_entry = {
            "ts": get_current_timestamp(),
            "level": record.levelname,
            "cat": self._get_category(record.name),
            "trigger": get_trigger_id(),
            "msg": record.getMessage(),
        }

        if hasattr(record, "data") and record.data:
            log_entry["data"] = record.data

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)

    def _get_category(self, logger_name: str) -> str:
        """Extract category from logger name."""
        if logger_name.startswith(f"{LOGGER_PREFIX}."):
            parts = logger_name.split(".")
            if len(parts) >= 2 and parts[1] in CATEGORIES:
                return parts[1]
        return "system"


class ConsoleFormatter(logging.Formatter):
    """
    Console formatter with trigger ID and color support.

    Format: [LEVEL] [trigger] message
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        trigger_id = get_trigger_id()
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            return f"{color}[{level:7}]{self.RESET} [{trigger_id}] {record.getMessage()}"
        return f"[{level:7}] [{trigger_id}] {record.getMessage()}"


# =============================================================================
# LOGGER FACTORY
# =============================================================================

def get_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for the given module, automatically routed to the correct category.

    Args:
        module_name: Module name (typically __name__).

    Returns:
        Logger instance that routes to the appropriate category.

    Example:
        from src.utils.logging_setup import get_logger
        logger = get_logger(__name__)
        logger.info("Processing...")
    """
    category = get_category_for_module(module_name)
    category_logger_name = f"{LOGGER_PREFIX}.{category}"

    logger = logging.getLogger(category_logger_name)

    # If category loggers haven't been set up yet, ensure basic config
    if not logger.handlers and category_logger_name not in _category_loggers:
        # Temporary setup - will be replaced by setup_category_logging
        logger.setLevel(logging.DEBUG)

    return logger


# =============================================================================
# RUN NUMBER MANAGEMENT
# =============================================================================

def _get_next_run_number(log_dir: str, env: str, date_str: str) -> int:
    """Find the next available run number for today's date."""
    log_path = Path(log_dir) / date_str
    if not log_path.exists():
        return 1

    # Pattern: signalcore_{env}_{category}_{date}_{N}.log
    suffixes = "|".join(CATEGORY_SUFFIXES.values())
    pattern = re.compile(
        rf'^{LOGGER_PREFIX}_{re.escape(env)}_(?:{suffixes})_{re.escape(date_str)}_(\d+)\.log$'
    )

    max_num = 0
    for filename in os.listdir(log_path):
        match = pattern.match(filename)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return max_num + 1


def _get_session_run_number(log_dir: str, env: str) -> int:
    """Get or initialize the session run number."""
    global _session_run_number

    if _session_run_number is None:
        date_str = datetime.now().strftime('%Y-%m-%d')
        _session_run_number = _get_next_run_number(log_dir, env, date_str)

    return _session_run_number


def reset_session_run_number() -> None:
    """Reset the session run number (for testing)."""
    global _session_run_number
    _session_run_number = None


# =============================================================================
# CATEGORY LOGGING SETUP
# =============================================================================

def setup_category_logging(
    env: str,
    log_dir: str = "./logs",
    level: str = "INFO",
    console: bool = False,
    verbose: bool = False,
) -> Dict[str, logging.Logger]:
    """
    Set up separate log files for each category.

    Creates log files in date-specific subdirectory:
    - logs/{date}/signalcore_{env}_sys_{date}_{run}.log - System events
    - logs/{date}/signalcore_{env}_dat_{date}_{run}.log - Candle data events
    - logs/{date}/signalcore_{env}_sig_{date}_{run}.log - Signal events
    - logs/{date}/signalcore_{env}_prf_{date}_{run}.log - Performance events

    Args:
        env: Environment name (dev/prod/demo).
        log_dir: Base directory for log files.
        level: Default logging level.
        console: Enable console output.
        verbose: Enable verbose (DEBUG) mode.

    Returns:
        Dict mapping category name to logger.
    """
    global _category_loggers, _queue_listeners

    # Clean up existing handlers and listeners before reconfiguration
    for listener in _queue_listeners:
        listener.stop()
    _queue_listeners.clear()

    for category in CATEGORIES:
        logger = logging.getLogger(f"{LOGGER_PREFIX}.{category}")
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    set_verbose_mode(verbose)
    set_console_enabled(console)
    if not verbose:
        set_log_level_override(level)

    date_str = datetime.now().strftime('%Y-%m-%d')
    log_path = Path(log_dir) / date_str
    log_path.mkdir(parents=True, exist_ok=True)

    run_number = _get_session_run_number(log_dir, env)
    effective_level = getattr(logging, get_effective_log_level(), logging.INFO)

    for category in CATEGORIES:
        suffix = CATEGORY_SUFFIXES[category]
        filename = f"{LOGGER_PREFIX}_{env}_{suffix}_{date_str}_{run_number}.log"

        logger = logging.getLogger(f"{LOGGER_PREFIX}.{category}")
        logger.setLevel(effective_level)
        logger.propagate = False

        file_handler = logging.FileHandler(
            filename=str(log_path / filename),
            mode='a',
            encoding='utf-8'
        )
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(effective_level)

        # Use QueueHandler for async file logging (non-blocking writes)
        log_queue: Queue = Queue(-1)
        logger.addHandler(logging.handlers.QueueHandler(log_queue))

        listener = logging.handlers.QueueListener(
            log_queue, file_handler, respect_handler_level=True
        )
        listener.start()
        _queue_listeners.append(listener)

        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(ConsoleFormatter(use_colors=sys.stderr.isatty()))
            console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
            logger.addHandler(console_handler)

        _category_loggers[category] = logger

    return _category_loggers


def setup_from_config(
    config: "LoggingConfig",
    env: str,
    verbose: bool = False,
    console: Optional[bool] = None,
) -> Dict[str, logging.Logger]:
    """
    Apply a LoggingConfig section.

    Args:
        config: Logging section of the application config.
        env: Environment name used in log file names.
        verbose: Enable verbose (DEBUG) mode.
        console: Override config.console when given.
    """
    set_log_timezone(config.timezone)
    return setup_category_logging(
        env=env,
        log_dir=config.log_dir,
        level=config.level,
        console=config.console if console is None else console,
        verbose=verbose,
    )


def get_category_loggers() -> Dict[str, logging.Logger]:
    """Get all configured category loggers."""
    return _category_loggers


def flush_all_loggers() -> None:
    """Flush all handlers to ensure logs are written to disk."""
    for category in CATEGORIES:
        for handler in logging.getLogger(f"{LOGGER_PREFIX}.{category}").handlers:
            handler.flush()


def shutdown_logging() -> None:
    """Shutdown all queue listeners (call during application shutdown)."""
    for listener in _queue_listeners:
        listener.stop()
    _queue_listeners.clear()
