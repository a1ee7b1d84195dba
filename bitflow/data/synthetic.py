"""
Synthetic OHLCV generator for offline replay and tests.

Random walk with a small drift; highs/lows wrap open/close so every bar
passes boundary validation.
"""

from datetime import datetime, timedelta
from typing import Optional

import numpy as np

from .bars import Bar, PriceSeries


def generate_synthetic_bars(
    periods: int = 500,
    volatility: float = 0.02,
    start_price: float = 50_000.0,
    trend: float = 0.0001,
    interval_minutes: int = 5,
    seed: Optional[int] = None,
    symbol: str = 'BTC/USD',
) -> PriceSeries:
    """
    Generate a random-walk price series

    Args:
        periods: Number of bars
        volatility: Width of the uniform per-bar return shock
        start_price: First open
        trend: Per-bar drift
        interval_minutes: Spacing between bar timestamps
        seed: Seed for reproducible output
        symbol: Symbol attached to the series

    Returns:
        PriceSeries of ``periods`` bars
    """
    rng = np.random.default_rng(seed)
    start = datetime(2024, 1, 1) - timedelta(minutes=interval_minutes * periods)

    bars = []
    price = start_price
    for i in range(periods):
        open_price = price
        price *= 1 + trend + (rng.random() - 0.5) * volatility
        close = price
        high = max(open_price, close) * (1 + rng.random() * 0.01)
        low = min(open_price, close) * (1 - rng.random() * 0.01)
        bars.append(Bar(
            timestamp=start + timedelta(minutes=interval_minutes * i),
            open=open_price,
            high=high,
            low=low,
            close=close,
            volume=1000 + rng.random() * 5000,
        ))

    return PriceSeries(bars, symbol=symbol, timeframe=f'{interval_minutes}Min')
