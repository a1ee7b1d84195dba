"""
Volatility Indicators.

Includes:
- ATR (Average True Range)
- Bollinger Bands
- Return volatility (RMS of log returns)
"""

import numpy as np
import pandas as pd


def atr(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Average True Range with Wilder smoothing

    True Range = max(High-Low, |High-PrevClose|, |Low-PrevClose|)
    """
    high = df['High']
    low = df['Low']
    prev_close = df['Close'].shift(1)

    tr1 = high - low
    tr2 = (high - prev_close).abs()
    tr3 = (low - prev_close).abs()

    true_range = pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)

    return true_range.ewm(alpha=1 / period, adjust=False, min_periods=period).mean()


def bollinger_bands(close: pd.Series, period: int = 20, std_mult: float = 2.0) -> pd.DataFrame:
    """Bollinger Bands (population std, as most charting packages)"""
    middle = close.rolling(window=period).mean()
    std = close.rolling(window=period).std(ddof=0)
    return pd.DataFrame({
        'BB_MIDDLE': middle,
        'BB_UPPER': middle + std_mult * std,
        'BB_LOWER': middle - std_mult * std,
    }, index=close.index)


def return_volatility(close: np.ndarray, window: int = 20) -> float:
    """
    Root-mean-square of the log returns inside the last ``window`` closes

    The first element of the window contributes a zero return, so a window
    of ``n`` closes always averages over ``n`` terms.
    """
    closes = np.asarray(close, dtype=float)[-window:]
    if len(closes) < 2:
        return 0.0
    returns = np.concatenate([[0.0], np.log(closes[1:] / closes[:-1])])
    return float(np.sqrt(np.mean(returns ** 2)))
