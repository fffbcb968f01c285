"""
Tests for KeyWorker.

Most tests call process() directly so every event's effect can be checked
in isolation; the queue/task lifecycle is covered separately.
"""

from dataclasses import replace
from typing import Dict, Iterator, List

import numpy as np
import pytest

from src.domain.exceptions import ResourceExhaustedError
from src.domain.interfaces import CandleEvent
from src.domain.signals.data import (
    AnomalyKind,
    CandleAnomalyDetector,
    CandleKey,
    CandleSeries,
    Timeframe,
)
from src.domain.signals.indicators import IndicatorSpec, IndicatorSuite
from src.domain.signals.models import EvaluationState, SignalType
from src.domain.signals.strategies import Strategy, StrategyRegistry, Verdict, create_strategy
from src.domain.signals.strategy_engine import StrategyEngine
from src.infrastructure.sinks import InMemoryAnomalySink, InMemoryErrorChannel, InMemorySignalSink
from src.application.pipeline.key_worker import KeyWorker
from tests.factories import BASE_TIME, MINUTE, candles_from_closes, final_events, make_candle


class SeriesRecorder(Strategy):
    """Records the length of every series it is evaluated on."""

    type_name = "series_recorder"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.lengths: Dict[str, List[int]] = {}

    def requirements(self, series: CandleSeries) -> List[IndicatorSpec]:
        return []

    def _evaluate(self, series: CandleSeries, indicators: IndicatorSuite) -> Verdict:
        return Verdict(SignalType.NEUTRAL)

    def evaluate(self, series: CandleSeries, indicators: IndicatorSuite):
        self.lengths.setdefault(series.timeframe.value, []).append(len(series))
        return super().evaluate(series, indicators)


def make_engine(*strategies: Strategy) -> StrategyEngine:
    registry = StrategyRegistry()
    registry.add(list(strategies) or [create_strategy("ma_breakout", period=20)])
    return StrategyEngine(registry)


@pytest.fixture
def engine() -> Iterator[StrategyEngine]:
    engine = make_engine()
    yield engine
    engine.close()


@pytest.fixture
def sink() -> InMemorySignalSink:
    return InMemorySignalSink()


@pytest.fixture
def errors() -> InMemoryErrorChannel:
    return InMemoryErrorChannel()


def minute_worker(key, engine, sink, errors=None, **kwargs) -> KeyWorker:
    return KeyWorker(
        key, engine, sink,
        timeframes=[Timeframe.M1],
        trigger_timeframe=Timeframe.M1,
        error_channel=errors,
        **kwargs,
    )


def quarter_worker(key, engine, sink, **kwargs) -> KeyWorker:
    return KeyWorker(
        key, engine, sink,
        timeframes=[Timeframe.M15],
        trigger_timeframe=Timeframe.M15,
        **kwargs,
    )


# =============================================================================
# Triggers
# =============================================================================


class TestTriggers:
    """Which events start an evaluation."""

    @pytest.mark.asyncio
    async def test_every_final_minute_triggers(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink,
        errors: InMemoryErrorChannel, linear_closes: np.ndarray,
    ) -> None:
        worker = minute_worker(key, engine, sink, errors)
        published = []
        for event in final_events(candles_from_closes(linear_closes[:25])):
            published.append(await worker.process(event))

        assert [len(p) for p in published] == [1] * 25
        signals = [p[0].strategy_results[0].signal for p in published]
        assert signals[19] == SignalType.BUY
        assert signals[20:] == [SignalType.WEAK_BUY] * 5
        assert all(p[0].state == EvaluationState.FAILED for p in published[:19])

        assert len(sink) == 25
        assert len(errors.reports) == 19
        assert worker.stats.triggers == 25
        assert worker.stats.failed == 19
        assert worker.stats.published == 6
        assert worker.state == EvaluationState.PUBLISHED

    @pytest.mark.asyncio
    async def test_trigger_timestamp_is_bucket_open_time(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink
    ) -> None:
        worker = minute_worker(key, engine, sink)
        candle = make_candle(7, 100.0)

        result = (await worker.process(CandleEvent("BTCUSDT", "FUTURES", True, candle)))[0]

        assert result.timestamp == BASE_TIME + 7 * MINUTE
        assert result.timeframe == "1m"
        assert result.dedup_key == ("BTCUSDT", "FUTURES", "1m", BASE_TIME + 7 * MINUTE)

    @pytest.mark.asyncio
    async def test_live_update_does_not_trigger(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink
    ) -> None:
        worker = minute_worker(key, engine, sink)
        forming = make_candle(0, 100.0)

        assert await worker.process(CandleEvent("BTCUSDT", "FUTURES", False, forming)) == []
        assert await worker.process(CandleEvent("BTCUSDT", "FUTURES", False, replace(forming, close=100.2, high=100.7))) == []
        assert len(sink) == 0
        assert worker.stats.processed == 2

        closed = await worker.process(CandleEvent("BTCUSDT", "FUTURES", True, replace(forming, close=100.3, high=100.8)))
        assert len(closed) == 1
        assert worker.buffer.last.close == 100.3

    @pytest.mark.asyncio
    async def test_next_minute_closes_unsealed_one(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink
    ) -> None:
        """A final minute supersedes a forming one that never got its final update."""
        worker = minute_worker(key, engine, sink)

        await worker.process(CandleEvent("BTCUSDT", "FUTURES", False, make_candle(0, 100.0)))
        published = await worker.process(CandleEvent("BTCUSDT", "FUTURES", True, make_candle(1, 101.0)))

        assert [r.timestamp for r in published] == [BASE_TIME, BASE_TIME + MINUTE]

    @pytest.mark.asyncio
    async def test_quarter_hour_trigger(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink, linear_closes: np.ndarray
    ) -> None:
        worker = quarter_worker(key, engine, sink)
        for event in final_events(candles_from_closes(linear_closes[:30])):
            await worker.process(event)

        assert [r.timestamp for r in sink.results] == [BASE_TIME, BASE_TIME + 15 * MINUTE]
        assert len(worker.aggregator.series(Timeframe.M15)) == 2


# =============================================================================
# Rejected and ignored events
# =============================================================================


class TestRejections:
    """Invalid, replayed and out-of-order candles."""

    @pytest.mark.asyncio
    async def test_redelivered_sealed_candle_is_ignored(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink
    ) -> None:
        worker = minute_worker(key, engine, sink)
        event = CandleEvent("BTCUSDT", "FUTURES", True, make_candle(0, 100.0))

        await worker.process(event)
        assert await worker.process(event) == []

        assert worker.stats.ignored == 1
        assert len(sink) == 1

    @pytest.mark.asyncio
    async def test_out_of_order_candle_is_rejected(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink
    ) -> None:
        worker = minute_worker(key, engine, sink)
        await worker.process(CandleEvent("BTCUSDT", "FUTURES", True, make_candle(5, 100.0)))

        assert await worker.process(CandleEvent("BTCUSDT", "FUTURES", True, make_candle(3, 100.0))) == []
        assert worker.stats.rejected == 1
        assert worker.buffer.last.open_time == BASE_TIME + 5 * MINUTE

    @pytest.mark.asyncio
    async def test_invalid_candle_is_rejected(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink
    ) -> None:
        worker = minute_worker(key, engine, sink)
        bad = replace(make_candle(0, 100.0), high=90.0)

        assert await worker.process(CandleEvent("BTCUSDT", "FUTURES", True, bad)) == []
        assert worker.stats.rejected == 1
        assert len(worker.buffer) == 0


# =============================================================================
# Aggregation effects
# =============================================================================


class TestAggregation:
    """Gaps, series cut-off and anomalies."""

    @pytest.mark.asyncio
    async def test_gap_is_recorded_on_result(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink, errors: InMemoryErrorChannel
    ) -> None:
        worker = quarter_worker(key, engine, sink, error_channel=errors)
        candles = candles_from_closes([100.0 + i for i in range(30)])
        del candles[14]

        for event in final_events(candles):
            await worker.process(event)

        first, second = sink.results
        assert first.timestamp == BASE_TIME
        assert "14/15 minutes" in first.errors[-1]
        assert not any("minutes" in e for e in second.errors)
        assert worker.aggregator.gap_count == 1
        assert "14/15 minutes" in errors.reports[0].error

    @pytest.mark.asyncio
    async def test_series_cut_at_trigger_close(self, key: CandleKey, sink: InMemorySignalSink) -> None:
        recorder = SeriesRecorder()
        engine = make_engine(recorder)
        worker = KeyWorker(
            key, engine, sink,
            timeframes=[Timeframe.M15, Timeframe.H1],
            trigger_timeframe=Timeframe.M15,
        )
        try:
            for event in final_events(candles_from_closes([100.0] * 75)):
                await worker.process(event)
        finally:
            engine.close()

        # Five quarter-hour triggers; the hour closes together with the fourth
        assert recorder.lengths["15m"] == [1, 2, 3, 4, 5]
        assert recorder.lengths["1h"] == [0, 0, 0, 1, 1]

    @pytest.mark.asyncio
    async def test_anomaly_reported(self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink) -> None:
        anomalies = InMemoryAnomalySink()
        worker = quarter_worker(
            key, engine, sink,
            anomaly_detector=CandleAnomalyDetector(),
            anomaly_sink=anomalies,
        )
        closes = [100.0] * 15 + list(np.linspace(100.0 + 5.0 / 15, 105.0, 15))
        for event in final_events(candles_from_closes(closes)):
            await worker.process(event)

        assert len(anomalies.anomalies) == 1
        anomaly = anomalies.anomalies[0]
        assert anomaly.kind == AnomalyKind.PRICE_SPIKE
        assert anomaly.direction == "UP"
        assert anomaly.timeframe == "15m"
        assert anomaly.timestamp == BASE_TIME + 15 * MINUTE
        assert worker.stats.anomalies == 1


# =============================================================================
# Warm start
# =============================================================================


class TestSeed:
    @pytest.mark.asyncio
    async def test_seed_folds_history_without_triggering(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink, linear_closes: np.ndarray
    ) -> None:
        worker = quarter_worker(key, engine, sink)
        candles = candles_from_closes(linear_closes[:45])

        assert worker.seed(candles[:30]) == 30
        assert len(sink) == 0
        assert len(worker.aggregator.series(Timeframe.M15)) == 2

        for event in final_events(candles[30:]):
            await worker.process(event)

        assert [r.timestamp for r in sink.results] == [BASE_TIME + 30 * MINUTE]
        assert len(worker.aggregator.series(Timeframe.M15)) == 3

    def test_seed_empty_history(self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink) -> None:
        worker = quarter_worker(key, engine, sink)
        assert worker.seed([]) == 0


# =============================================================================
# Replay determinism
# =============================================================================


def with_live_updates(events: List[CandleEvent]) -> List[CandleEvent]:
    """Precede every final event with in-progress versions of the same minute."""
    replayed = []
    for event in events:
        c = event.candle
        replayed.append(replace(event, is_final=False, candle=replace(c, close=c.open, volume=c.volume / 3)))
        replayed.append(replace(event, is_final=False, candle=replace(c, close=c.high, volume=c.volume / 2)))
        replayed.append(event)
        # Redelivery of an already sealed minute
        replayed.append(event)
    return replayed


class TestReplayDeterminism:
    """Identical one-minute history gives identical output however it is delivered."""

    SPECS = [
        IndicatorSpec.of("sma", period=5),
        IndicatorSpec.of("rsi", period=14),
        IndicatorSpec.of("bollinger", period=10, std_dev=2.0),
        IndicatorSpec.of("volume", period=5),
    ]

    @staticmethod
    def replay_worker(key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink) -> KeyWorker:
        return KeyWorker(
            key, engine, sink,
            timeframes=[Timeframe.M15, Timeframe.H1],
            trigger_timeframe=Timeframe.M15,
        )

    @pytest.mark.asyncio
    async def test_live_updates_do_not_change_output(
        self, key: CandleKey, random_walk_closes: np.ndarray
    ) -> None:
        engine = make_engine(
            create_strategy("ma_breakout", period=5),
            create_strategy("rsi_oversold_bounce"),
            create_strategy("bollinger_upper_break", period=10),
        )
        finals = final_events(candles_from_closes(random_walk_closes))
        first_sink, second_sink = InMemorySignalSink(), InMemorySignalSink()
        first = self.replay_worker(key, engine, first_sink)
        second = self.replay_worker(key, engine, second_sink)

        for event in finals:
            await first.process(event)
        for event in with_live_updates(finals):
            await second.process(event)
        engine.close()

        assert second.stats.ignored == len(finals)
        for tf in (Timeframe.M15, Timeframe.H1):
            assert first.aggregator.closed(tf) == second.aggregator.closed(tf)
            assert len(first.aggregator.series(tf)) == 300 // tf.minutes

            first_suite = IndicatorSuite(CandleSeries.of(key, tf, first.aggregator.series(tf)))
            second_suite = IndicatorSuite(CandleSeries.of(key, tf, second.aggregator.series(tf)))
            for spec in self.SPECS:
                a, b = first_suite.get_spec(spec), second_suite.get_spec(spec)
                assert a.is_ok() == b.is_ok()
                if a.is_ok():
                    assert a.unwrap().equals(b.unwrap())

        assert [r.to_dict() for r in first_sink.results] == [r.to_dict() for r in second_sink.results]
        assert len(first_sink) == 20


# =============================================================================
# Queue lifecycle
# =============================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_stop_drains_queue(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink, linear_closes: np.ndarray
    ) -> None:
        worker = minute_worker(key, engine, sink)
        for event in final_events(candles_from_closes(linear_closes[:20])):
            worker.enqueue(event)
        assert worker.pending == 20

        worker.start()
        await worker.stop(timeout=10)

        assert not worker.running
        assert worker.pending == 0
        assert len(sink) == 20
        assert worker.stats.received == 20

    @pytest.mark.asyncio
    async def test_results_arrive_while_running(
        self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink
    ) -> None:
        worker = minute_worker(key, engine, sink)
        worker.start()
        try:
            worker.enqueue(CandleEvent("BTCUSDT", "FUTURES", True, make_candle(0, 100.0)))
            results = await sink.wait_for(1, timeout=5)
        finally:
            await worker.stop()

        assert results[0].timestamp == BASE_TIME

    @pytest.mark.asyncio
    async def test_full_queue_raises(self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink) -> None:
        worker = minute_worker(key, engine, sink, max_queue_size=2)
        events = final_events([make_candle(i, 100.0) for i in range(3)])

        worker.enqueue(events[0])
        worker.enqueue(events[1])
        with pytest.raises(ResourceExhaustedError):
            worker.enqueue(events[2])

    @pytest.mark.asyncio
    async def test_snapshot(self, key: CandleKey, engine: StrategyEngine, sink: InMemorySignalSink) -> None:
        worker = minute_worker(key, engine, sink)
        await worker.process(CandleEvent("BTCUSDT", "FUTURES", True, make_candle(0, 100.0)))

        snapshot = worker.snapshot()
        assert snapshot["key"] == "BTCUSDT:FUTURES"
        assert snapshot["buffered"] == 1
        assert snapshot["last_open_time"] == BASE_TIME
        assert snapshot["closed"] == {"1m": 1}
        assert snapshot["triggers"] == 1
