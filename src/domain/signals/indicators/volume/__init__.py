"""
Volume indicators package.

Indicators:
- Volume analysis: volume ratio, surge flag, On-Balance Volume
- VWAP: session Volume Weighted Average Price
"""

# Indicators are auto-discovered by IndicatorRegistry
