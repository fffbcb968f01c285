"""
TimeframeAggregator - Derives higher-timeframe candles from one-minute candles.

Buckets are aligned on the epoch:

    bucket_start = (open_time // interval_ms) * interval_ms

so a 1d bucket starts at midnight UTC and a 15m bucket at :00/:15/:30/:45.

A bucket is *closed* once a one-minute candle with a strictly greater
bucket start has been sealed. A sealed last minute (:14 for 15m, :59 for
1h) already proves the window has elapsed, so the bucket closes on that
minute instead of waiting for the next one; the candle is identical either
way and the next bucket's first minute does not close it again. Closing
never looks at the wall clock, so a replay or backfill produces exactly
the candles live operation produced.
The trailing bucket that is still filling is exposed through current() for
display but never reported as closed.

Closed buckets are immutable and kept in a per-timeframe ring (default 250),
independent of how much one-minute history the buffer still retains.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple

from src.domain.exceptions import AggregationGapError
from src.utils.logging_setup import get_logger

from .candle import Candle, CandleKey, Timeframe

logger = get_logger(__name__)

DEFAULT_SERIES_CAPACITY = 250


@dataclass(frozen=True)
class AggregatedCandle:
    """A higher-timeframe candle plus how it was assembled."""

    candle: Candle
    timeframe: Timeframe
    source_count: int
    is_closed: bool
    gap: Optional[AggregationGapError] = None

    @property
    def bucket_start(self) -> int:
        return self.candle.open_time

    @property
    def expected_count(self) -> int:
        return self.timeframe.minutes

    @property
    def is_complete(self) -> bool:
        """False when one-minute candles were missing from the bucket."""
        return self.gap is None


def aggregate_bucket(
    candles: Sequence[Candle],
    timeframe: Timeframe,
    is_closed: bool,
) -> AggregatedCandle:
    """
    Reduce the one-minute candles of a single bucket.

    open = first open, close = last close, high = max, low = min,
    volumes and trade counts are summed.

    Args:
        candles: Time-ascending candles that all share one bucket start.
        timeframe: Target timeframe.
        is_closed: Whether the bucket window has fully elapsed.

    Raises:
        ValueError: If candles is empty.
    """
    if not candles:
        raise ValueError("Cannot aggregate an empty bucket")

    bucket_start = timeframe.bucket_start(candles[0].open_time)
    candle = Candle(
        open_time=bucket_start,
        close_time=bucket_start + timeframe.millis - 1,
        open=candles[0].open,
        high=max(c.high for c in candles),
        low=min(c.low for c in candles),
        close=candles[-1].close,
        volume=sum(c.volume for c in candles),
        quote_volume=sum(c.quote_volume for c in candles),
        trades=sum(c.trades for c in candles),
        taker_buy_base_volume=sum(c.taker_buy_base_volume for c in candles),
        taker_buy_quote_volume=sum(c.taker_buy_quote_volume for c in candles),
    )

    gap = None
    expected = timeframe.minutes
    if is_closed and len(candles) < expected:
        gap = AggregationGapError(bucket_start, timeframe.value, expected, len(candles))

    return AggregatedCandle(
        candle=candle,
        timeframe=timeframe,
        source_count=len(candles),
        is_closed=is_closed,
        gap=gap,
    )


def group_by_bucket(
    candles: Iterable[Candle],
    timeframe: Timeframe,
) -> List[Tuple[int, List[Candle]]]:
    """Split a time-ascending series into contiguous (bucket_start, candles) groups."""
    groups: List[Tuple[int, List[Candle]]] = []
    for candle in candles:
        start = timeframe.bucket_start(candle.open_time)
        if groups and groups[-1][0] == start:
            groups[-1][1].append(candle)
        else:
            groups.append((start, [candle]))
    return groups


class TimeframeAggregator:
    """
    Maintains closed higher-timeframe series for one key.

    Call update() with the sealed one-minute candles every time the buffer
    reports a close. Returns the buckets that closed because of it.

    Example:
        aggregator = TimeframeAggregator(key, [Timeframe.M15, Timeframe.H1])
        closed = aggregator.update(buffer.sealed())
        for tf, candles in closed.items():
            ...
    """

    def __init__(
        self,
        key: CandleKey,
        timeframes: Iterable[Timeframe],
        capacity: int = DEFAULT_SERIES_CAPACITY,
    ) -> None:
        self._key = key
        self._timeframes = tuple(dict.fromkeys(timeframes))
        self._capacity = capacity
        self._closed: Dict[Timeframe, Deque[AggregatedCandle]] = {
            tf: deque(maxlen=capacity) for tf in self._timeframes
        }
        self._open_groups: Dict[Timeframe, List[Candle]] = {tf: [] for tf in self._timeframes}
        self._gaps = 0

    @property
    def timeframes(self) -> Tuple[Timeframe, ...]:
        return self._timeframes

    @property
    def gap_count(self) -> int:
        """Number of buckets closed with missing minutes."""
        return self._gaps

    def update(self, sealed: Sequence[Candle]) -> Dict[Timeframe, List[AggregatedCandle]]:
        """
        Fold newly sealed one-minute candles into every timeframe.

        Only candles after the last closed bucket are considered, so calling
        this again with the same (or a longer) history is idempotent.

        Args:
            sealed: Time-ascending sealed one-minute candles.

        Returns:
            Newly closed buckets per timeframe (timeframes with none omitted).
        """
        newly_closed: Dict[Timeframe, List[AggregatedCandle]] = {}
        for tf in self._timeframes:
            closed = self._update_timeframe(tf, sealed)
            if closed:
                newly_closed[tf] = closed
        return newly_closed

    def series(self, timeframe: Timeframe) -> Tuple[Candle, ...]:
        """Closed candles of a timeframe, oldest first."""
        return tuple(ac.candle for ac in self._closed[timeframe])

    def closed(self, timeframe: Timeframe) -> Tuple[AggregatedCandle, ...]:
        return tuple(self._closed[timeframe])

    def current(self, timeframe: Timeframe, live: Optional[Candle] = None) -> Optional[AggregatedCandle]:
        """
        The still-open trailing bucket, for display only.

        Args:
            timeframe: Timeframe to preview.
            live: Optional still-forming one-minute candle to fold in.
        """
        group = list(self._open_groups[timeframe])
        if live is not None:
            if group and timeframe.bucket_start(live.open_time) != timeframe.bucket_start(group[0].open_time):
                group = []
            if not group or live.open_time > group[-1].open_time:
                group.append(live)
        if not group or timeframe is Timeframe.M1 and live is None:
            return None
        return aggregate_bucket(group, timeframe, is_closed=False)

    def _update_timeframe(self, tf: Timeframe, sealed: Sequence[Candle]) -> List[AggregatedCandle]:
        ring = self._closed[tf]
        horizon = ring[-1].bucket_start + tf.millis if ring else None
        pending = [c for c in sealed if horizon is None or c.open_time >= horizon]

        if tf is Timeframe.M1:
            # Every sealed minute is its own closed bucket
            self._open_groups[tf] = []
            result = [aggregate_bucket([c], tf, is_closed=True) for c in pending]
            ring.extend(result)
            return result

        groups = group_by_bucket(pending, tf)
        if not groups:
            self._open_groups[tf] = []
            return []

        last_start, last_members = groups[-1]
        trailing_done = last_members[-1].open_time >= last_start + tf.millis - Timeframe.M1.millis
        to_close = groups if trailing_done else groups[:-1]

        result: List[AggregatedCandle] = []
        for _, members in to_close:
            aggregated = aggregate_bucket(members, tf, is_closed=True)
            if aggregated.gap is not None:
                self._gaps += 1
                logger.warning(
                    f"Closing incomplete bucket for {self._key}: {aggregated.gap}",
                    extra={"data": {"key": str(self._key), "timeframe": tf.value}},
                )
            ring.append(aggregated)
            result.append(aggregated)

        self._open_groups[tf] = [] if trailing_done else last_members

        for aggregated in result:
            logger.debug(
                f"{tf.value} candle closed for {self._key}",
                extra={
                    "data": {
                        "key": str(self._key),
                        "timeframe": tf.value,
                        "bucket_start": aggregated.bucket_start,
                        "close": aggregated.candle.close,
                        "source_count": aggregated.source_count,
                    }
                },
            )
        return result
