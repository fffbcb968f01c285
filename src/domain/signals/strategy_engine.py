"""
StrategyEngine - Runs every registered strategy for one evaluation trigger.

Flow per trigger:
1. For each evaluated timeframe, build an IndicatorSuite over the closed
   series and prefetch the union of the strategies' requirements.
2. Fan out (strategy, timeframe) evaluations to a thread pool sized to the
   strategy count and join them with asyncio.gather.
3. Hand every StrategyResult to the SignalReducer.

A strategy that raises is isolated: its failure becomes a skipped NEUTRAL
result whose evidence carries the StrategyExecutionError text. If the
indicator prefetch itself raises, the trigger is reduced to a FAILED
result instead.
"""

from __future__ import annotations

import asyncio
import contextvars
from concurrent.futures import ThreadPoolExecutor
from typing import List, Mapping, Optional, Set, Tuple

from src.domain.exceptions import StrategyExecutionError
from src.utils.logging_setup import get_logger
from src.utils.perf_logger import log_evaluation_timing
from src.utils.trace_context import get_trigger_id

from .data.candle import CandleKey, Timeframe
from .data.candle_series import CandleSeries
from .indicators.registry import IndicatorRegistry, get_indicator_registry
from .indicators.suite import IndicatorSpec, IndicatorSuite
from .models import MultiStrategyResult, StrategyResult
from .reducer import SignalReducer
from .strategies.base import Strategy
from .strategies.registry import StrategyRegistry

logger = get_logger(__name__)


def run_strategy(strategy: Strategy, series: CandleSeries, suite: IndicatorSuite) -> StrategyResult:
    """Evaluate one strategy, converting any exception into a skipped result."""
    try:
        return strategy.evaluate(series, suite)
    except Exception as e:
        error = StrategyExecutionError(strategy.strategy_id, e)
        logger.warning(
            f"[{get_trigger_id()}] {error}",
            extra={"data": {"strategy_id": strategy.strategy_id, "timeframe": series.timeframe.value}},
        )
        return StrategyResult.neutral(
            strategy.strategy_id,
            series.instrument,
            series.timeframe.value,
            series.last_timestamp,
            error=str(error),
        )


class StrategyEngine:
    """
    Concurrent strategy fan-out with per-strategy isolation.

    Usage:
        engine = StrategyEngine(StrategyRegistry.with_defaults())
        result = await engine.evaluate(key, Timeframe.M15, ts, {Timeframe.M15: series})
        engine.close()
    """

    def __init__(
        self,
        strategies: StrategyRegistry,
        reducer: Optional[SignalReducer] = None,
        indicator_registry: Optional[IndicatorRegistry] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        """
        Initialize strategy engine.

        Args:
            strategies: Registered strategy instances
            reducer: Reducer for the joined results (default: SignalReducer())
            indicator_registry: Indicator lookup (default: global registry)
            max_workers: Thread pool size (default: number of strategies)
        """
        self._strategies = strategies
        self._reducer = reducer or SignalReducer()
        self._indicators = indicator_registry or get_indicator_registry()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or max(1, len(strategies)),
            thread_name_prefix="strategy",
        )

    @property
    def strategies(self) -> StrategyRegistry:
        return self._strategies

    def close(self) -> None:
        """Shut down the worker pool, waiting for running evaluations."""
        self._executor.shutdown(wait=True)

    def _prefetch(self, series: CandleSeries, strategies: List[Strategy]) -> IndicatorSuite:
        suite = IndicatorSuite(series, self._indicators)
        specs: Set[IndicatorSpec] = set()
        for strategy in strategies:
            specs.update(strategy.requirements(series))
        suite.prefetch(sorted(specs, key=lambda s: s.label))
        return suite

    async def evaluate(
        self,
        key: CandleKey,
        timeframe: Timeframe,
        timestamp: int,
        series: Mapping[Timeframe, CandleSeries],
    ) -> MultiStrategyResult:
        """
        Evaluate all strategies for one trigger.

        Args:
            key: Instrument/market being evaluated
            timeframe: Timeframe whose candle close triggered the evaluation
            timestamp: openTime (ms) of the triggering candle
            series: Closed candle series per evaluated timeframe

        Returns:
            Reduced MultiStrategyResult (PUBLISHED or FAILED)
        """
        loop = asyncio.get_running_loop()

        async with log_evaluation_timing({"instrument": key.instrument, "timeframe": timeframe.value}) as ctx:
            plan: List[Tuple[Strategy, CandleSeries, IndicatorSuite]] = []
            try:
                for tf, tf_series in series.items():
                    selected = self._strategies.for_timeframe(tf.value)
                    if not selected:
                        continue
                    suite = await loop.run_in_executor(
                        self._executor,
                        contextvars.copy_context().run,
                        self._prefetch,
                        tf_series,
                        selected,
                    )
                    plan.extend((strategy, tf_series, suite) for strategy in selected)
            except Exception as e:
                logger.error(
                    f"[{get_trigger_id()}] Indicator prefetch failed for {key} {timeframe.value}: {e}",
                    extra={"data": {"instrument": key.instrument, "timeframe": timeframe.value}},
                )
                return self._reducer.failed(
                    key.instrument, key.market, timeframe.value, timestamp,
                    errors=(f"indicator computation failed: {type(e).__name__}: {e}",),
                )

            tasks = [
                loop.run_in_executor(
                    self._executor,
                    contextvars.copy_context().run,
                    run_strategy,
                    strategy,
                    tf_series,
                    suite,
                )
                for strategy, tf_series, suite in plan
            ]
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)

            results: List[StrategyResult] = []
            for (strategy, tf_series, _), outcome in zip(plan, outcomes):
                if isinstance(outcome, BaseException):
                    error = StrategyExecutionError(strategy.strategy_id, outcome)
                    logger.error(f"[{get_trigger_id()}] {error}")
                    outcome = StrategyResult.neutral(
                        strategy.strategy_id,
                        key.instrument,
                        tf_series.timeframe.value,
                        tf_series.last_timestamp,
                        error=str(error),
                    )
                results.append(outcome)

            result = self._reducer.reduce(key.instrument, key.market, timeframe.value, timestamp, results)
            ctx["strategies"] = len(results)
            ctx["signal"] = result.overall_signal.value

        logger.info(
            f"[{get_trigger_id()}] {result}",
            extra={"data": {"instrument": key.instrument, "timeframe": timeframe.value, "timestamp": timestamp}},
        )
        return result
