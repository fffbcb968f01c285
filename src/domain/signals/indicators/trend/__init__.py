"""
Trend indicators package.

Indicators:
- SMA: Simple Moving Average
- EMA: Exponential Moving Average
"""

# Indicators are auto-discovered by IndicatorRegistry
