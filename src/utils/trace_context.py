"""
Trace context for correlating logs across a single evaluation trigger.

Provides:
- Unique trigger IDs (6-char hex) for each closed-candle evaluation
- Context propagation via contextvars (async-safe)
- Easy access to current trigger ID from any module

Usage:
    # In the key worker (start of an evaluation)
    with new_trigger():
        result = await engine.evaluate(...)

    # In any module
    from src.utils.trace_context import get_trigger_id
    logger.info(f"[{get_trigger_id()}] Evaluating...")
"""

from __future__ import annotations

import secrets
from contextvars import ContextVar
from contextlib import contextmanager
from typing import Optional, Generator

# Context variable for the current trigger ID (async-safe)
_trigger_id: ContextVar[Optional[str]] = ContextVar("trigger_id", default=None)

# Counter for triggers within a session (for debugging)
_trigger_counter: int = 0


def generate_trigger_id() -> str:
    """
    Generate a new unique trigger ID.

    Returns:
        6-character hex string (e.g., "a7f3b2").
    """
    return secrets.token_hex(3)


def get_trigger_id() -> str:
    """
    Get the current trigger ID.

    Returns:
        Current trigger ID, or "------" if no evaluation is active.
    """
    trigger_id = _trigger_id.get()
    return trigger_id if trigger_id else "------"


def set_trigger_id(trigger_id: str) -> None:
    _trigger_id.set(trigger_id)


def clear_trigger_id() -> None:
    _trigger_id.set(None)


@contextmanager
def new_trigger() -> Generator[str, None, None]:
    """
    Context manager to open a new trigger with a unique ID.

    The ID is visible to every log record emitted inside the block,
    including records from executor threads started with a copied context.

    Yields:
        The new trigger ID.
    """
    global _trigger_counter
    _trigger_counter += 1

    trigger_id = generate_trigger_id()
    token = _trigger_id.set(trigger_id)

    try:
        yield trigger_id
    finally:
        _trigger_id.reset(token)


def get_trigger_counter() -> int:
    """Total number of triggers opened in this session."""
    return _trigger_counter


def reset_trigger_counter() -> None:
    """Reset the trigger counter (for testing)."""
    global _trigger_counter
    _trigger_counter = 0
