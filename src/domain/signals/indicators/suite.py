"""
IndicatorSuite - All indicator results for one candle series.

Strategies declare the indicator parameterizations they read
(IndicatorSpec). The engine prefetches the union of those specs once per
trigger, before strategies fan out, so concurrent strategies only ever read
finished results.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from src.utils.result import partition

from ..data.candle_series import CandleSeries
from .base import IndicatorOutcome, IndicatorResult, InsufficientData
from .registry import IndicatorRegistry, get_indicator_registry


@dataclass(frozen=True)
class IndicatorSpec:
    """Hashable (indicator name, parameters) pair."""

    name: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, name: str, **params: Any) -> "IndicatorSpec":
        return cls(name=name, params=tuple(sorted(params.items())))

    @property
    def param_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    @property
    def label(self) -> str:
        """Short label, e.g. "sma(period=20)"."""
        if not self.params:
            return self.name
        args = ",".join(f"{k}={v}" for k, v in self.params)
        return f"{self.name}({args})"

    def __str__(self) -> str:
        return self.label


class IndicatorSuite:
    """
    Lazily computed, cached indicator results for one series.

    Example:
        suite = IndicatorSuite(series)
        suite.prefetch([IndicatorSpec.of("sma", period=20)])
        sma20 = suite.result("sma", period=20)   # IndicatorResult
    """

    def __init__(self, series: CandleSeries, registry: Optional[IndicatorRegistry] = None) -> None:
        self._series = series
        self._registry = registry or get_indicator_registry()
        self._cache: Dict[IndicatorSpec, IndicatorOutcome] = {}
        self._lock = threading.Lock()

    @property
    def series(self) -> CandleSeries:
        return self._series

    def prefetch(self, specs: Iterable[IndicatorSpec]) -> None:
        """Compute every spec not yet cached."""
        for spec in specs:
            self.get_spec(spec)

    def get_spec(self, spec: IndicatorSpec) -> IndicatorOutcome:
        with self._lock:
            outcome = self._cache.get(spec)
            if outcome is None:
                outcome = self._registry.compute(spec.name, self._series, **spec.param_dict)
                self._cache[spec] = outcome
            return outcome

    def get(self, name: str, **params: Any) -> IndicatorOutcome:
        """Ok(IndicatorResult) or Err(InsufficientData)."""
        return self.get_spec(IndicatorSpec.of(name, **params))

    def result(self, name: str, **params: Any) -> IndicatorResult:
        """
        Result known to be available.

        Raises:
            UnwrapError: If the indicator reported InsufficientData
        """
        return self.get(name, **params).unwrap()

    def missing(self, specs: Iterable[IndicatorSpec]) -> List[InsufficientData]:
        """InsufficientData errors among the given specs."""
        _, errors = partition(self.get_spec(spec) for spec in specs)
        return errors

    def available(self) -> Dict[str, IndicatorResult]:
        """All successfully computed results keyed by spec label."""
        with self._lock:
            return {
                spec.label: outcome.value
                for spec, outcome in self._cache.items()
                if outcome.is_ok()
            }
