"""
Indicator Registry - Auto-discovery and management of indicators.

Provides:
- Auto-discovery of indicator classes from category packages
- Registration and lookup by name
- Filtering by category
- compute(): one-call calculation by indicator name
"""

from __future__ import annotations

import importlib
import pkgutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import pandas as pd

from src.utils.logging_setup import get_logger

from ..data.candle_series import CandleSeries
from .base import Indicator, IndicatorBase, IndicatorCategory, IndicatorOutcome

logger = get_logger(__name__)


class IndicatorRegistry:
    """
    Registry for indicator discovery and management.

    Auto-discovers indicator classes from category packages (trend/,
    momentum/, volatility/, volume/) and provides lookup by name or category.
    """

    def __init__(self) -> None:
        self._indicators: Dict[str, Indicator] = {}
        self._by_category: Dict[IndicatorCategory, Set[str]] = {
            cat: set() for cat in IndicatorCategory
        }

    def clear(self) -> None:
        """Clear all registered indicators."""
        self._indicators.clear()
        for cat in self._by_category:
            self._by_category[cat].clear()

    def discover(self) -> int:
        """
        Auto-discover indicators from category packages.

        Returns:
            Number of indicators discovered
        """
        base_path = Path(__file__).parent
        discovered = 0
        for category in IndicatorCategory:
            if not (base_path / category.value).exists():
                logger.debug(f"Category package not found: {category.value}")
                continue
            discovered += self._discover_package(category.value)

        logger.info(f"Discovered {discovered} indicators across {len(IndicatorCategory)} categories")
        return discovered

    def _discover_package(self, category: str) -> int:
        package_name = f"src.domain.signals.indicators.{category}"
        try:
            package = importlib.import_module(package_name)
        except ImportError as e:
            logger.warning(f"Failed to import {package_name}: {e}")
            return 0

        discovered = 0
        package_path = Path(package.__file__).parent

        for module_info in pkgutil.iter_modules([str(package_path)]):
            if module_info.name.startswith("_"):
                continue

            module_name = f"{package_name}.{module_info.name}"
            try:
                module = importlib.import_module(module_name)
            except ImportError as e:
                logger.warning(f"Failed to import {module_name}: {e}")
                continue

            for attr_name in dir(module):
                if attr_name.startswith("_"):
                    continue
                attr = getattr(module, attr_name)
                # Only classes defined in this module, not re-exported imports
                if self._is_indicator_class(attr) and attr.__module__ == module_name:
                    self.register(attr())
                    discovered += 1

        return discovered

    def _is_indicator_class(self, obj: object) -> bool:
        """True for concrete IndicatorBase subclasses."""
        if not isinstance(obj, type):
            return False
        return issubclass(obj, IndicatorBase) and obj is not IndicatorBase

    def register(self, indicator: Indicator) -> None:
        """
        Register an indicator instance.

        If an indicator with the same name exists, it is replaced.
        """
        name = indicator.name
        if name in self._indicators:
            self._by_category[self._indicators[name].category].discard(name)
            logger.warning(f"Indicator {name} already registered, overwriting")

        self._indicators[name] = indicator
        self._by_category[indicator.category].add(name)
        logger.debug(f"Registered indicator: {name} ({indicator.category.value})")

    def get(self, name: str) -> Optional[Indicator]:
        return self._indicators.get(name)

    def require(self, name: str) -> Indicator:
        """
        Get indicator by name.

        Raises:
            KeyError: If no indicator is registered under that name
        """
        indicator = self._indicators.get(name)
        if indicator is None:
            raise KeyError(f"Unknown indicator '{name}'. Registered: {sorted(self._indicators)}")
        return indicator

    def get_all(self) -> List[Indicator]:
        return list(self._indicators.values())

    def get_by_category(self, category: IndicatorCategory) -> List[Indicator]:
        names = self._by_category.get(category, set())
        return [self._indicators[n] for n in sorted(names)]

    def get_names(self) -> List[str]:
        return list(self._indicators.keys())

    def compute(
        self,
        name: str,
        series: Union[CandleSeries, pd.DataFrame],
        **params: Any,
    ) -> IndicatorOutcome:
        """Calculate a registered indicator by name."""
        return self.require(name).calculate(series, params)

    def __len__(self) -> int:
        return len(self._indicators)

    def __contains__(self, name: str) -> bool:
        return name in self._indicators


# Global registry instance
_global_registry: Optional[IndicatorRegistry] = None


def get_indicator_registry() -> IndicatorRegistry:
    """
    Get the global indicator registry.

    Creates and initializes the registry on first call.
    """
    global _global_registry
    if _global_registry is None:
        _global_registry = IndicatorRegistry()
        _global_registry.discover()
    return _global_registry
