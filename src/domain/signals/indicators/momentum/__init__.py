"""
Momentum indicators package.

Indicators:
- RSI: Relative Strength Index (Wilder smoothing)
- MACD: Moving Average Convergence Divergence
"""

# Indicators are auto-discovered by IndicatorRegistry
