"""Tests for SignalReducer."""

from typing import Optional

import pytest

from src.domain.signals.models import (
    EvaluationState,
    SignalType,
    StrategyResult,
)
from src.domain.signals.reducer import SignalReducer
from tests.factories import BASE_TIME


def result(
    signal: SignalType,
    strategy_id: str = "s",
    timeframe: str = "15m",
    confidence: float = 50.0,
) -> StrategyResult:
    return StrategyResult(
        strategy_id=strategy_id,
        instrument="BTCUSDT",
        timeframe=timeframe,
        signal=signal,
        timestamp=BASE_TIME,
        confidence=confidence,
    )


def skipped(strategy_id: str = "skipped", timeframe: str = "15m", error: Optional[str] = "sma needs 20 candles, got 3") -> StrategyResult:
    return StrategyResult.neutral(strategy_id, "BTCUSDT", timeframe, BASE_TIME, error=error)


@pytest.fixture
def reducer() -> SignalReducer:
    return SignalReducer()


class TestSignalBands:
    """SignalType weights and from_score bands."""

    def test_weights(self) -> None:
        assert [s.weight for s in SignalType] == [3, 2, 1, 0, -1, -2, -3]

    @pytest.mark.parametrize(
        "score,expected",
        [
            (3.0, SignalType.STRONG_BUY),
            (2.0, SignalType.STRONG_BUY),
            (1.99, SignalType.BUY),
            (1.0, SignalType.BUY),
            (0.5, SignalType.WEAK_BUY),
            (0.49, SignalType.NEUTRAL),
            (0.0, SignalType.NEUTRAL),
            (-0.49, SignalType.NEUTRAL),
            (-0.5, SignalType.WEAK_SELL),
            (-1.0, SignalType.SELL),
            (-1.99, SignalType.SELL),
            (-2.0, SignalType.STRONG_SELL),
        ],
    )
    def test_from_score(self, score: float, expected: SignalType) -> None:
        assert SignalType.from_score(score) == expected


class TestReduce:
    """Consensus over one trigger's results."""

    def test_mixed_votes_cancel(self, reducer: SignalReducer) -> None:
        results = [
            result(SignalType.STRONG_BUY, "a"),
            result(SignalType.SELL, "b"),
            result(SignalType.NEUTRAL, "c"),
        ]
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, results)

        # mean (3 - 2 + 0) / 3 = 0.33
        assert reduced.overall_signal == SignalType.NEUTRAL
        assert reduced.consensus == 0.33
        assert reduced.mean_score == pytest.approx(0.3333)
        assert reduced.state == EvaluationState.PUBLISHED

    def test_unanimous_buy(self, reducer: SignalReducer) -> None:
        results = [result(SignalType.BUY, "a"), result(SignalType.WEAK_BUY, "b")]
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, results)

        assert reduced.overall_signal == SignalType.BUY
        assert reduced.consensus == 1.0

    def test_single_buy_maps_to_strong_buy(self, reducer: SignalReducer) -> None:
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "1m", BASE_TIME, [result(SignalType.BUY)])
        assert reduced.overall_signal == SignalType.STRONG_BUY

    def test_skipped_results_do_not_vote(self, reducer: SignalReducer) -> None:
        results = [result(SignalType.SELL, "a"), skipped("b"), skipped("c")]
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, results)

        assert reduced.overall_signal == SignalType.STRONG_SELL
        assert reduced.consensus == 1.0
        assert reduced.evaluated_count == 1
        assert len(reduced.strategy_results) == 3
        assert reduced.errors == (
            "b[15m]: sma needs 20 candles, got 3",
            "c[15m]: sma needs 20 candles, got 3",
        )

    def test_confidence_is_mean_of_voters(self, reducer: SignalReducer) -> None:
        results = [
            result(SignalType.BUY, "a", confidence=80.0),
            result(SignalType.BUY, "b", confidence=40.0),
            skipped("c"),
        ]
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, results)
        assert reduced.overall_confidence == 60.0

    def test_preserves_result_order(self, reducer: SignalReducer) -> None:
        results = [result(SignalType.BUY, "z"), result(SignalType.SELL, "a")]
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, results)
        assert [r.strategy_id for r in reduced.strategy_results] == ["z", "a"]

    def test_identity_and_dedup_key(self, reducer: SignalReducer) -> None:
        reduced = reducer.reduce("ETHUSDT", "SPOT", "1h", BASE_TIME, [result(SignalType.BUY)])

        assert reduced.instrument == "ETHUSDT"
        assert reduced.market == "SPOT"
        assert reduced.dedup_key == ("ETHUSDT", "SPOT", "1h", BASE_TIME)


class TestPerTimeframeSummary:
    """Same reduction applied per timeframe."""

    def test_summaries(self, reducer: SignalReducer) -> None:
        results = [
            result(SignalType.STRONG_BUY, "a", timeframe="15m"),
            result(SignalType.BUY, "b", timeframe="15m"),
            result(SignalType.SELL, "a", timeframe="1h"),
            skipped("b", timeframe="1h"),
        ]
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, results)

        m15 = reduced.per_timeframe_summary["15m"]
        assert m15.signal == SignalType.STRONG_BUY
        assert m15.strategy_count == 2
        assert m15.mean_score == 2.5
        assert m15.consensus == 1.0

        h1 = reduced.per_timeframe_summary["1h"]
        assert h1.signal == SignalType.STRONG_SELL
        assert h1.strategy_count == 1

        # Overall: (3 + 2 - 2) / 3 = 1.0
        assert reduced.overall_signal == SignalType.BUY
        assert reduced.consensus == 0.67

    def test_timeframe_with_only_skipped(self, reducer: SignalReducer) -> None:
        summary = reducer.summarize([skipped()])
        assert summary.signal == SignalType.NEUTRAL
        assert summary.strategy_count == 0
        assert summary.consensus == 0.0


class TestFailed:
    """Nothing voted."""

    def test_all_skipped_is_failed(self, reducer: SignalReducer) -> None:
        results = [skipped("a"), skipped("b")]
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, results)

        assert reduced.state == EvaluationState.FAILED
        assert reduced.overall_signal == SignalType.NEUTRAL
        assert reduced.consensus == 0.0
        assert reduced.per_timeframe_summary == {}
        assert len(reduced.errors) == 2
        assert len(reduced.strategy_results) == 2

    def test_empty_results_is_failed_with_reason(self, reducer: SignalReducer) -> None:
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, [])

        assert reduced.state == EvaluationState.FAILED
        assert reduced.errors == ("no strategy produced a signal",)

    def test_to_dict(self, reducer: SignalReducer) -> None:
        reduced = reducer.reduce("BTCUSDT", "FUTURES", "15m", BASE_TIME, [result(SignalType.BUY)])
        data = reduced.to_dict()

        assert data["overall_signal"] == "STRONG_BUY"
        assert data["state"] == "published"
        assert data["strategy_results"][0]["signal"] == "BUY"
        assert data["per_timeframe_summary"]["15m"]["strategy_count"] == 1
