"""Historical candle loaders."""

from .csv_candle_loader import CsvCandleLoader

__all__ = ["CsvCandleLoader"]
