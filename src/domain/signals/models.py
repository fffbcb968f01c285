"""
Signal domain models.

Closed, tagged result types produced by the strategy engine:

- SignalType: seven-level directional signal with an integer weight
- Evidence: what a strategy looked at and why it decided
- StrategyResult: one strategy's verdict for one (instrument, timeframe)
- TimeframeSummary: reduced verdict for the strategies of one timeframe
- MultiStrategyResult: reduced verdict for one evaluation trigger

All results are immutable. A new evaluation supersedes the previous
result; nothing is ever updated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SignalType(Enum):
    """Directional signal emitted by a strategy or the reducer."""

    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    WEAK_BUY = "WEAK_BUY"
    NEUTRAL = "NEUTRAL"
    WEAK_SELL = "WEAK_SELL"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"

    @property
    def weight(self) -> int:
        """Integer weight used by the reducer (+3 .. -3)."""
        return SIGNAL_WEIGHTS[self]

    @property
    def is_bullish(self) -> bool:
        return self.weight > 0

    @property
    def is_bearish(self) -> bool:
        return self.weight < 0

    @classmethod
    def from_score(cls, score: float) -> "SignalType":
        """
        Map a mean weight back to a signal using fixed inclusive bands.

        A score sitting exactly on a boundary resolves to the higher
        magnitude band (2.0 -> STRONG_BUY, -0.5 -> WEAK_SELL).
        """
        if score >= 2:
            return cls.STRONG_BUY
        if score >= 1:
            return cls.BUY
        if score >= 0.5:
            return cls.WEAK_BUY
        if score <= -2:
            return cls.STRONG_SELL
        if score <= -1:
            return cls.SELL
        if score <= -0.5:
            return cls.WEAK_SELL
        return cls.NEUTRAL


SIGNAL_WEIGHTS: Dict[SignalType, int] = {
    SignalType.STRONG_BUY: 3,
    SignalType.BUY: 2,
    SignalType.WEAK_BUY: 1,
    SignalType.NEUTRAL: 0,
    SignalType.WEAK_SELL: -1,
    SignalType.SELL: -2,
    SignalType.STRONG_SELL: -3,
}


class EvaluationState(Enum):
    """Lifecycle of one (instrument, timeframe) evaluation."""

    IDLE = "idle"
    EVALUATING = "evaluating"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass(frozen=True)
class Evidence:
    """
    Supporting evidence for a strategy verdict.

    indicator_snapshot holds the indicator values the strategy read,
    conditions the human-readable checks in evaluation order.
    """

    indicator_snapshot: Dict[str, Optional[float]] = field(default_factory=dict)
    conditions: Tuple[str, ...] = ()
    notes: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indicator_snapshot": dict(self.indicator_snapshot),
            "conditions": list(self.conditions),
            "notes": self.notes,
            "error": self.error,
        }


@dataclass(frozen=True)
class StrategyResult:
    """
    Verdict of one strategy for one (instrument, timeframe) evaluation.

    A skipped result (insufficient history, strategy failure) is NEUTRAL,
    carries the reason in evidence.error, and is left out of the reducer's
    mean.
    """

    strategy_id: str
    instrument: str
    timeframe: str
    signal: SignalType
    timestamp: int  # openTime (ms) of the candle that was evaluated
    evidence: Evidence = field(default_factory=Evidence)
    confidence: float = 0.0  # 0-100
    skipped: bool = False

    @classmethod
    def neutral(
        cls,
        strategy_id: str,
        instrument: str,
        timeframe: str,
        timestamp: int,
        error: str,
        conditions: Tuple[str, ...] = (),
    ) -> "StrategyResult":
        """Zero-weight NEUTRAL result recording why the strategy could not vote."""
        return cls(
            strategy_id=strategy_id,
            instrument=instrument,
            timeframe=timeframe,
            signal=SignalType.NEUTRAL,
            timestamp=timestamp,
            evidence=Evidence(conditions=conditions, error=error),
            confidence=0.0,
            skipped=True,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for logging/sinks."""
        return {
            "strategy_id": self.strategy_id,
            "instrument": self.instrument,
            "timeframe": self.timeframe,
            "signal": self.signal.value,
            "timestamp": self.timestamp,
            "confidence": self.confidence,
            "skipped": self.skipped,
            "evidence": self.evidence.to_dict(),
        }

    def __str__(self) -> str:
        return f"{self.strategy_id}[{self.timeframe}] {self.signal.value} ({self.confidence:.0f}%)"


@dataclass(frozen=True)
class TimeframeSummary:
    """Reduced verdict of the strategies evaluated on one timeframe."""

    signal: SignalType
    strategy_count: int
    mean_score: float = 0.0
    consensus: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal": self.signal.value,
            "strategy_count": self.strategy_count,
            "mean_score": self.mean_score,
            "consensus": self.consensus,
        }


@dataclass(frozen=True)
class MultiStrategyResult:
    """
    Consensus verdict for one evaluation trigger of one instrument.

    Published exactly once per trigger. Downstream consumers de-duplicate
    on dedup_key since delivery is at-least-once.
    """

    instrument: str
    market: str
    timeframe: str  # timeframe whose candle close triggered the evaluation
    timestamp: int  # openTime (ms) of the triggering candle
    strategy_results: Tuple[StrategyResult, ...]
    overall_signal: SignalType
    consensus: float
    per_timeframe_summary: Dict[str, TimeframeSummary] = field(default_factory=dict)
    mean_score: float = 0.0
    overall_confidence: float = 0.0
    state: EvaluationState = EvaluationState.PUBLISHED
    errors: Tuple[str, ...] = ()

    @property
    def dedup_key(self) -> Tuple[str, str, str, int]:
        return (self.instrument, self.market, self.timeframe, self.timestamp)

    @property
    def evaluated_count(self) -> int:
        return sum(1 for r in self.strategy_results if not r.skipped)

    def results_for(self, strategy_id: str) -> Tuple[StrategyResult, ...]:
        """All results produced by one strategy (one per evaluated timeframe)."""
        return tuple(r for r in self.strategy_results if r.strategy_id == strategy_id)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for logging/sinks."""
        return {
            "instrument": self.instrument,
            "market": self.market,
            "timeframe": self.timeframe,
            "timestamp": self.timestamp,
            "overall_signal": self.overall_signal.value,
            "consensus": self.consensus,
            "mean_score": self.mean_score,
            "overall_confidence": self.overall_confidence,
            "state": self.state.value,
            "errors": list(self.errors),
            "per_timeframe_summary": {
                tf: summary.to_dict() for tf, summary in self.per_timeframe_summary.items()
            },
            "strategy_results": [r.to_dict() for r in self.strategy_results],
        }

    def __str__(self) -> str:
        return (
            f"{self.instrument} [{self.timeframe}@{self.timestamp}] "
            f"{self.overall_signal.value} consensus={self.consensus:.2f} "
            f"({self.evaluated_count}/{len(self.strategy_results)} strategies)"
        )
