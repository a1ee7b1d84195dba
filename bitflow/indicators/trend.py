"""
Trend Indicators - moving averages and MACD.

Includes:
- SMA (Simple Moving Average)
- EMA (Exponential Moving Average)
- MACD (Moving Average Convergence Divergence)
"""

import pandas as pd


def sma(close: pd.Series, period: int) -> pd.Series:
    """Simple moving average; NaN until ``period`` values are available"""
    return close.rolling(window=period).mean()


def ema(close: pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average

    Recursive form (``adjust=False``) so every value depends only on past
    closes; NaN until ``period`` values are available.
    """
    return close.ewm(span=period, adjust=False, min_periods=period).mean()


def macd(
    close: pd.Series,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9
) -> pd.DataFrame:
    """
    MACD line, signal line and histogram

    Returns:
        DataFrame with ``MACD``, ``MACD_SIGNAL`` and ``MACD_HIST`` columns
    """
    fast = close.ewm(span=fast_period, adjust=False).mean()
    slow = close.ewm(span=slow_period, adjust=False).mean()

    line = fast - slow
    line.iloc[: slow_period - 1] = float('nan')
    signal = line.ewm(span=signal_period, adjust=False, min_periods=signal_period).mean()

    return pd.DataFrame({
        'MACD': line,
        'MACD_SIGNAL': signal,
        'MACD_HIST': line - signal,
    }, index=close.index)
