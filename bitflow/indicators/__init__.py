"""
Indicators Package - technical indicators used by the signal engine

Usage:
    from bitflow.indicators import compute_snapshot

    snapshot = compute_snapshot(series, rsi_period=14, ma_fast_period=10, ma_slow_period=20)
"""

from .trend import sma, ema, macd
from .oscillators import rsi
from .volatility import atr, bollinger_bands, return_volatility
from .volume import volume_ratio
from .snapshot import IndicatorSnapshot, compute_snapshot

__all__ = [
    # Trend
    'sma',
    'ema',
    'macd',

    # Oscillators
    'rsi',

    # Volatility
    'atr',
    'bollinger_bands',
    'return_volatility',

    # Volume
    'volume_ratio',

    # Snapshot
    'IndicatorSnapshot',
    'compute_snapshot',
]
