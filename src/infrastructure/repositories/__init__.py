"""Candle repositories."""

from .memory_candle_repository import InMemoryCandleRepository

__all__ = ["InMemoryCandleRepository"]
