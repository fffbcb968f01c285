"""
Volatility indicators package.

Indicators:
- Bollinger Bands
- ATR: Average True Range
"""

# Indicators are auto-discovered by IndicatorRegistry
