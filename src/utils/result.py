"""
Result type for explicit error handling.

Indicator computations return Ok(IndicatorResult) or Err(InsufficientData)
instead of raising, so a short series is an expected outcome rather than
an exception.

Usage:
    from src.utils.result import Result, Ok, Err

    def compute(closes: list[float], period: int) -> Result[float, str]:
        if len(closes) < period:
            return Err(f"need {period} candles")
        return Ok(sum(closes[-period:]) / period)

    outcome = compute(closes, 20)
    match outcome:
        case Ok(value):
            ...
        case Err(error):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Tuple, TypeVar, Union

T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Mapped type


class UnwrapError(ValueError):
    """unwrap() was called on an Err."""

    def __init__(self, error: object) -> None:
        super().__init__(f"Called unwrap() on Err: {error}")
        self.error = error


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    @property
    def error(self) -> None:
        return None

    def map(self, f: Callable[[T], U]) -> "Result[U, E]":
        """Apply a function to the value."""
        return Ok(f(self.value))


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed outcome carrying its reason."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> None:
        """
        Raises:
            UnwrapError: Always; the original error is kept on .error
        """
        raise UnwrapError(self.error)

    def unwrap_or(self, default: T) -> T:
        return default

    @property
    def value(self) -> None:
        return None

    def map(self, f: Callable[[T], U]) -> "Result[U, E]":
        return self  # type: ignore


# Result is a union of Ok and Err
Result = Union[Ok[T], Err[E]]


def partition(results: Iterable[Result[T, E]]) -> Tuple[list[T], list[E]]:
    """
    Split outcomes into (values, errors), preserving order.

    Example:
        values, errors = partition([Ok(1), Err("short"), Ok(3)])
        # ([1, 3], ["short"])
    """
    values: list[T] = []
    errors: list[E] = []
    for result in results:
        if result.is_ok():
            values.append(result.value)
        else:
            errors.append(result.error)
    return values, errors
