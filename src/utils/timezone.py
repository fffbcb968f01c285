"""
Timezone utilities for candle timestamps.

Conventions:
- Candle open/close times are epoch milliseconds, always UTC
- datetime objects handed out by the system are timezone-aware UTC
"""

from __future__ import annotations
from datetime import datetime, timezone


UTC = timezone.utc


def from_millis(millis: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(millis / 1000, tz=UTC)
