"""
KeyWorker - Owns all state of one (instrument, market) stream.

Each worker holds the one-minute CandleBuffer, the TimeframeAggregator and
an asyncio.Queue of feed events. Events are processed strictly in arrival
order by a single consumer task, so aggregation and indicator history
always see candles in time order. Evaluations are guarded by a per-key
lock (single-flight): a trigger never interleaves with another trigger of
the same key.

Flow per event:
1. CandleBuffer.update() (invalid / out-of-order candles are rejected here)
2. If a minute closed: TimeframeAggregator.update() with the sealed minutes
3. Anomaly detection on every closed higher-timeframe candle
4. Every closed trigger-timeframe bucket starts one evaluation, which is
   published exactly once (PUBLISHED or FAILED)
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ...domain.exceptions import FatalError, ResourceExhaustedError
from ...domain.interfaces import AnomalySink, CandleEvent, ErrorChannel, ErrorReport, SignalSink
from ...domain.signals.data import (
    AggregatedCandle,
    Candle,
    CandleAnomalyDetector,
    CandleBuffer,
    CandleKey,
    CandleSeries,
    DEFAULT_SERIES_CAPACITY,
    Timeframe,
    TimeframeAggregator,
)
from ...domain.signals.models import EvaluationState, MultiStrategyResult
from ...domain.signals.strategy_engine import StrategyEngine
from ...utils.logging_setup import get_logger
from ...utils.trace_context import new_trigger

logger = get_logger(__name__)


@dataclass
class WorkerStats:
    """Counters for one key."""

    received: int = 0
    processed: int = 0
    rejected: int = 0
    ignored: int = 0
    triggers: int = 0
    published: int = 0
    failed: int = 0
    anomalies: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return dataclasses.asdict(self)


class KeyWorker:
    """
    Sequential processor for one (instrument, market) key.

    Usage:
        worker = KeyWorker(key, engine, sink, timeframes=[Timeframe.M15])
        worker.start()
        worker.enqueue(event)
        await worker.stop()   # drains the queue first
    """

    def __init__(
        self,
        key: CandleKey,
        engine: StrategyEngine,
        sink: SignalSink,
        timeframes: Sequence[Timeframe] = (Timeframe.M15, Timeframe.H1, Timeframe.D1),
        trigger_timeframe: Timeframe = Timeframe.M15,
        buffer_capacity: int = 1440,
        series_capacity: int = DEFAULT_SERIES_CAPACITY,
        max_queue_size: int = 10_000,
        error_channel: Optional[ErrorChannel] = None,
        anomaly_detector: Optional[CandleAnomalyDetector] = None,
        anomaly_sink: Optional[AnomalySink] = None,
    ) -> None:
        """
        Initialize key worker.

        Args:
            key: Stream this worker owns
            engine: Shared strategy engine
            sink: Receives every MultiStrategyResult
            timeframes: Timeframes evaluated on each trigger
            trigger_timeframe: Timeframe whose bucket close starts an evaluation
            buffer_capacity: One-minute candles retained
            series_capacity: Closed candles retained per timeframe
            max_queue_size: Pending events before enqueue() fails
            error_channel: Receives reports for FAILED results
            anomaly_detector: Checks closed higher-timeframe candles (None disables)
            anomaly_sink: Receives detected anomalies
        """
        self._key = key
        self._engine = engine
        self._sink = sink
        self._timeframes = tuple(dict.fromkeys(timeframes))
        self._trigger = trigger_timeframe
        self._error_channel = error_channel
        self._anomaly_detector = anomaly_detector
        self._anomaly_sink = anomaly_sink

        self._buffer = CandleBuffer(key, capacity=buffer_capacity)
        self._aggregator = TimeframeAggregator(
            key,
            [*self._timeframes, trigger_timeframe],
            capacity=series_capacity,
        )

        self._max_queue_size = max_queue_size
        self._queue: asyncio.Queue[CandleEvent] = asyncio.Queue(maxsize=max_queue_size)
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._state = EvaluationState.IDLE
        self._last_published: Optional[int] = None
        self._stats = WorkerStats()

    @property
    def key(self) -> CandleKey:
        return self._key

    @property
    def state(self) -> EvaluationState:
        return self._state

    @property
    def buffer(self) -> CandleBuffer:
        return self._buffer

    @property
    def aggregator(self) -> TimeframeAggregator:
        return self._aggregator

    @property
    def stats(self) -> WorkerStats:
        return self._stats

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the consumer task (requires a running loop)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"key-worker-{self._key}")

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Drain queued events, then stop the consumer task.

        In-flight evaluations always complete; nothing is published partially.

        Raises:
            FatalError: If the consumer task died with one
        """
        if self._task is None:
            return
        drained = asyncio.ensure_future(self._queue.join())
        done, _ = await asyncio.wait(
            {drained, self._task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
        if drained not in done:
            drained.cancel()
            if self._task not in done:
                logger.warning(f"Drain timed out for {self._key} with {self._queue.qsize()} events pending")

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def enqueue(self, event: CandleEvent) -> None:
        """
        Queue a feed event (non-blocking).

        Raises:
            ResourceExhaustedError: If the queue is full
        """
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as e:
            raise ResourceExhaustedError(
                f"Event queue for {self._key} is full ({self._max_queue_size} pending)"
            ) from e
        self._stats.received += 1

    def seed(self, candles: Sequence[Candle]) -> int:
        """
        Warm-start from persisted one-minute history.

        Buckets completed by the history are folded into the aggregated
        series without triggering evaluations.

        Returns:
            Number of candles added to the buffer
        """
        added = self._buffer.seed(candles)
        if added:
            self._aggregator.update(self._buffer.sealed())
        return added

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.process(event)
            except FatalError as e:
                logger.critical(f"Fatal error in worker {self._key}: {e}", exc_info=True)
                raise
            except Exception as e:
                self._stats.errors += 1
                logger.error(f"Error processing event for {self._key}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def process(self, event: CandleEvent) -> List[MultiStrategyResult]:
        """
        Apply one feed event and run any evaluations it triggers.

        Returns:
            Results published because of this event, in trigger order
        """
        update = self._buffer.update(event.candle, event.is_final)
        if update.error is not None:
            self._stats.rejected += 1
            return []
        if not update.accepted:
            self._stats.ignored += 1
            return []
        self._stats.processed += 1

        if not update.closed:
            return []

        newly_closed = self._aggregator.update(self._buffer.sealed())
        await self._detect_anomalies(newly_closed)

        published = []
        for bucket in newly_closed.get(self._trigger, []):
            published.append(await self._evaluate(bucket))
        return published

    async def _detect_anomalies(self, newly_closed: Dict[Timeframe, List[AggregatedCandle]]) -> None:
        if self._anomaly_detector is None:
            return
        for tf, buckets in newly_closed.items():
            if tf is Timeframe.M1:
                continue
            for bucket in buckets:
                history = [c for c in self._aggregator.series(tf) if c.open_time < bucket.bucket_start]
                for anomaly in self._anomaly_detector.detect(self._key, tf, bucket.candle, history):
                    self._stats.anomalies += 1
                    if self._anomaly_sink is not None:
                        await self._anomaly_sink.on_anomaly(anomaly)

    def _series_until(self, timeframe: Timeframe, cutoff: int) -> CandleSeries:
        """Closed candles of a timeframe that ended no later than cutoff."""
        candles = [c for c in self._aggregator.series(timeframe) if c.close_time <= cutoff]
        return CandleSeries.of(self._key, timeframe, candles)

    async def _evaluate(self, bucket: AggregatedCandle) -> MultiStrategyResult:
        async with self._lock:
            with new_trigger() as trigger_id:
                self._state = EvaluationState.EVALUATING
                self._stats.triggers += 1
                timestamp = bucket.bucket_start
                cutoff = bucket.candle.close_time

                logger.debug(
                    f"[{trigger_id}] Evaluating {self._key} {self._trigger.value}@{timestamp}",
                    extra={"data": {"key": str(self._key), "timestamp": timestamp}},
                )

                series = {tf: self._series_until(tf, cutoff) for tf in self._timeframes}
                result = await self._engine.evaluate(self._key, self._trigger, timestamp, series)
                if bucket.gap is not None:
                    result = dataclasses.replace(result, errors=result.errors + (str(bucket.gap),))

                await self._publish(result)
                return result

    async def _publish(self, result: MultiStrategyResult) -> None:
        if self._last_published is not None and result.timestamp <= self._last_published:
            logger.warning(
                f"Publishing {self._key} result at {result.timestamp} after {self._last_published}",
                extra={"data": {"key": str(self._key)}},
            )
        self._last_published = result.timestamp
        self._state = result.state

        await self._sink.publish(result)

        if result.state is EvaluationState.FAILED:
            self._stats.failed += 1
            if self._error_channel is not None:
                await self._error_channel.report(ErrorReport(
                    instrument=result.instrument,
                    error="; ".join(result.errors),
                    timestamp=result.timestamp,
                ))
        else:
            self._stats.published += 1

    def snapshot(self) -> Dict[str, Any]:
        """Current state for diagnostics."""
        last = self._buffer.last
        return {
            "key": str(self._key),
            "state": self._state.value,
            "pending": self.pending,
            "buffered": len(self._buffer),
            "last_open_time": last.open_time if last else None,
            "closed": {tf.value: len(self._aggregator.series(tf)) for tf in self._aggregator.timeframes},
            "gaps": self._aggregator.gap_count,
            **self._stats.to_dict(),
        }
