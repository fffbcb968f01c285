"""
SignalReducer - Collapses strategy results into one consensus verdict.

Algorithm:
- Each non-skipped StrategyResult contributes its signal weight
  (STRONG_BUY +3 ... STRONG_SELL -3).
- The unweighted arithmetic mean is mapped back to a signal with fixed
  inclusive bands (SignalType.from_score).
- consensus = max(bullish count, bearish count) / non-skipped count.
- The same reduction is applied per timeframe for per_timeframe_summary.

Skipped results (insufficient history, strategy failure) never vote. When
nothing voted the result is FAILED: NEUTRAL, zero consensus and the
collected error texts, still published so every trigger yields one result.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from src.utils.logging_setup import get_logger

from .models import (
    EvaluationState,
    MultiStrategyResult,
    SignalType,
    StrategyResult,
    TimeframeSummary,
)

logger = get_logger(__name__)


def _score(results: Sequence[StrategyResult]) -> Tuple[float, float]:
    """(mean weight, consensus) over voting results; (0, 0) when empty."""
    if not results:
        return 0.0, 0.0
    weights = [r.signal.weight for r in results]
    bullish = sum(1 for w in weights if w > 0)
    bearish = sum(1 for w in weights if w < 0)
    mean = sum(weights) / len(weights)
    return mean, round(max(bullish, bearish) / len(weights), 2)


class SignalReducer:
    """
    Stateless reducer; safe to share between key workers.

    Usage:
        reducer = SignalReducer()
        result = reducer.reduce("BTCUSDT", "FUTURES", "15m", ts, results)
    """

    def summarize(self, results: Sequence[StrategyResult]) -> TimeframeSummary:
        """Reduce one timeframe's results."""
        voting = [r for r in results if not r.skipped]
        mean, consensus = _score(voting)
        return TimeframeSummary(
            signal=SignalType.from_score(mean),
            strategy_count=len(voting),
            mean_score=round(mean, 4),
            consensus=consensus,
        )

    def reduce(
        self,
        instrument: str,
        market: str,
        timeframe: str,
        timestamp: int,
        results: Sequence[StrategyResult],
    ) -> MultiStrategyResult:
        """
        Reduce all results of one trigger.

        Args:
            instrument: Instrument symbol
            market: Market segment (e.g. FUTURES)
            timeframe: Timeframe whose close triggered the evaluation
            timestamp: openTime (ms) of the triggering candle
            results: Strategy results for every evaluated timeframe

        Returns:
            PUBLISHED result, or FAILED when no strategy could vote
        """
        voting = [r for r in results if not r.skipped]
        errors = tuple(
            f"{r.strategy_id}[{r.timeframe}]: {r.evidence.error}"
            for r in results
            if r.evidence.error
        )

        if not voting:
            reason = "no strategy produced a signal"
            logger.warning(
                f"{instrument} {timeframe}@{timestamp}: {reason}",
                extra={"data": {"instrument": instrument, "timeframe": timeframe, "skipped": len(results)}},
            )
            return self.failed(
                instrument, market, timeframe, timestamp,
                errors=errors or (reason,),
                results=results,
            )

        mean, consensus = _score(voting)

        by_timeframe: Dict[str, List[StrategyResult]] = {}
        for r in results:
            by_timeframe.setdefault(r.timeframe, []).append(r)
        summaries = {tf: self.summarize(group) for tf, group in by_timeframe.items()}

        confidence = sum(r.confidence for r in voting) / len(voting)

        return MultiStrategyResult(
            instrument=instrument,
            market=market,
            timeframe=timeframe,
            timestamp=timestamp,
            strategy_results=tuple(results),
            overall_signal=SignalType.from_score(mean),
            consensus=consensus,
            per_timeframe_summary=summaries,
            mean_score=round(mean, 4),
            overall_confidence=round(confidence, 2),
            state=EvaluationState.PUBLISHED,
            errors=errors,
        )

    def failed(
        self,
        instrument: str,
        market: str,
        timeframe: str,
        timestamp: int,
        errors: Sequence[str],
        results: Sequence[StrategyResult] = (),
    ) -> MultiStrategyResult:
        """NEUTRAL, zero-consensus result for a trigger that could not be reduced."""
        return MultiStrategyResult(
            instrument=instrument,
            market=market,
            timeframe=timeframe,
            timestamp=timestamp,
            strategy_results=tuple(results),
            overall_signal=SignalType.NEUTRAL,
            consensus=0.0,
            per_timeframe_summary={},
            mean_score=0.0,
            overall_confidence=0.0,
            state=EvaluationState.FAILED,
            errors=tuple(errors),
        )
