"""
CandleBuffer - Bounded one-minute candle history for a single stream.

One buffer per (instrument, market) key, owned by that key's worker.
Updates are O(1):

- same openTime as the last candle -> replace in place (candle still forming)
- greater openTime                 -> append (previous candle is now immutable)
- smaller openTime                 -> rejected as out of order

A candle becomes immutable ("closed") either when the feed marks an update
final, or when a candle with a strictly greater openTime supersedes it.
Each candle is reported closed exactly once; redelivery of a sealed candle
is ignored so replays are idempotent by timestamp.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Iterable, Optional, Tuple

from src.domain.exceptions import InvalidCandle, OutOfOrderCandle, RecoverableError
from src.utils.logging_setup import get_logger

from .candle import Candle, CandleKey, validate_candle

logger = get_logger(__name__)

DEFAULT_CAPACITY = 1440  # 24h of one-minute candles


class UpdateAction(Enum):
    """What a buffer update did."""

    APPENDED = "appended"
    REPLACED = "replaced"
    IGNORED = "ignored"
    REJECTED = "rejected"


@dataclass(frozen=True)
class BufferUpdate:
    """
    Outcome of CandleBuffer.update().

    closed lists the candles that became immutable because of this update,
    oldest first. It is the only signal downstream should recompute on.
    """

    action: UpdateAction
    candle: Candle
    closed: Tuple[Candle, ...] = ()
    error: Optional[RecoverableError] = None

    @property
    def accepted(self) -> bool:
        return self.action in (UpdateAction.APPENDED, UpdateAction.REPLACED)


class CandleBuffer:
    """
    Ordered, capped one-minute candle series for one key.

    Example:
        buffer = CandleBuffer(CandleKey("BTCUSDT"), capacity=1440)
        update = buffer.update(candle, is_final=True)
        for closed in update.closed:
            aggregator.update(buffer.sealed())
    """

    def __init__(self, key: CandleKey, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"Buffer capacity must be positive, got {capacity}")
        self._key = key
        self._capacity = capacity
        self._candles: Deque[Candle] = deque(maxlen=capacity)
        self._last_sealed = False
        self._rejected = 0

    @property
    def key(self) -> CandleKey:
        return self._key

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def rejected_count(self) -> int:
        """Number of invalid or out-of-order candles rejected so far."""
        return self._rejected

    @property
    def last(self) -> Optional[Candle]:
        return self._candles[-1] if self._candles else None

    @property
    def last_is_sealed(self) -> bool:
        return bool(self._candles) and self._last_sealed

    def __len__(self) -> int:
        return len(self._candles)

    def update(self, candle: Candle, is_final: bool = False) -> BufferUpdate:
        """
        Apply one feed update.

        Args:
            candle: The one-minute candle as currently known.
            is_final: True when the feed marks the candle as closed.

        Returns:
            BufferUpdate describing the action and any candles closed by it.
            Invalid and out-of-order candles are logged and reported as
            REJECTED; the buffer keeps its last good state.
        """
        try:
            validate_candle(candle)
        except InvalidCandle as e:
            return self._reject(candle, e)

        last = self.last
        if last is None:
            return self._append(candle, is_final, superseded=None)

        if candle.open_time == last.open_time:
            if self._last_sealed:
                logger.debug(
                    f"Ignoring redelivered sealed candle for {self._key}: open_time={candle.open_time}"
                )
                return BufferUpdate(action=UpdateAction.IGNORED, candle=candle)
            self._candles[-1] = candle
            self._last_sealed = is_final
            closed = (candle,) if is_final else ()
            return BufferUpdate(action=UpdateAction.REPLACED, candle=candle, closed=closed)

        if candle.open_time > last.open_time:
            superseded = None if self._last_sealed else last
            return self._append(candle, is_final, superseded=superseded)

        return self._reject(candle, OutOfOrderCandle(candle.open_time, last.open_time))

    def seed(self, candles: Iterable[Candle]) -> int:
        """
        Warm-start the buffer with historical candles.

        Historical candles are treated as sealed. Candles at or before the
        current last openTime, invalid candles and duplicates are skipped.

        Returns:
            Number of candles added.
        """
        added = 0
        for candle in sorted(candles, key=lambda c: c.open_time):
            last = self.last
            if last is not None and candle.open_time <= last.open_time:
                continue
            try:
                validate_candle(candle)
            except InvalidCandle as e:
                self._reject(candle, e)
                continue
            self._candles.append(candle)
            self._last_sealed = True
            added += 1
        if added:
            logger.info(f"Seeded {added} candles for {self._key} (buffer={len(self._candles)})")
        return added

    def snapshot(self) -> Tuple[Candle, ...]:
        """All buffered candles, including a still-forming last candle."""
        return tuple(self._candles)

    def sealed(self) -> Tuple[Candle, ...]:
        """Buffered candles that can no longer change."""
        if self._candles and not self._last_sealed:
            return tuple(self._candles)[:-1]
        return tuple(self._candles)

    def clear(self) -> None:
        self._candles.clear()
        self._last_sealed = False

    def _append(
        self,
        candle: Candle,
        is_final: bool,
        superseded: Optional[Candle],
    ) -> BufferUpdate:
        self._candles.append(candle)
        self._last_sealed = is_final
        closed = tuple(c for c in (superseded, candle if is_final else None) if c is not None)
        return BufferUpdate(action=UpdateAction.APPENDED, candle=candle, closed=closed)

    def _reject(self, candle: Candle, error: RecoverableError) -> BufferUpdate:
        self._rejected += 1
        logger.warning(
            f"Rejected candle for {self._key}: {error}",
            extra={"data": {"key": str(self._key), "open_time": candle.open_time}},
        )
        return BufferUpdate(action=UpdateAction.REJECTED, candle=candle, error=error)
