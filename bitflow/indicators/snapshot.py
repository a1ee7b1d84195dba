"""
Indicator snapshot - the last two values of every indicator the scorer reads.
"""

import math
from dataclasses import dataclass, asdict
from typing import Dict

import pandas as pd

from config.settings import (
    DEFAULT_MA_FAST,
    DEFAULT_MA_SLOW,
    DEFAULT_RSI_PERIOD,
    MACD_FAST,
    MACD_SIGNAL,
    MACD_SLOW,
    VOLUME_LOOKBACK,
)
from bitflow.data.bars import PriceSeries
from .oscillators import rsi
from .trend import ema, macd, sma


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator read-out at the current (and previous) closed bar"""
    close: float
    ma_fast: float
    ma_fast_prev: float
    ma_slow: float
    ma_slow_prev: float
    rsi: float
    macd: float
    macd_prev: float
    macd_signal: float
    macd_signal_prev: float
    volume: float
    avg_volume: float

    # Periods the snapshot was computed with
    rsi_period: int = DEFAULT_RSI_PERIOD
    ma_fast_period: int = DEFAULT_MA_FAST
    ma_slow_period: int = DEFAULT_MA_SLOW

    @property
    def has_crossover_data(self) -> bool:
        """True when both MA and MACD crossings can be evaluated"""
        values = (
            self.ma_fast, self.ma_fast_prev, self.ma_slow, self.ma_slow_prev,
            self.macd, self.macd_prev, self.macd_signal, self.macd_signal_prev,
        )
        return all(math.isfinite(v) for v in values)

    def to_dict(self) -> Dict:
        return asdict(self)


def compute_snapshot(
    series: PriceSeries,
    rsi_period: int = DEFAULT_RSI_PERIOD,
    ma_fast_period: int = DEFAULT_MA_FAST,
    ma_slow_period: int = DEFAULT_MA_SLOW,
    volume_lookback: int = VOLUME_LOOKBACK,
) -> IndicatorSnapshot:
    """
    Compute the indicator snapshot for the most recent bar

    Fast MA is a simple average, slow MA an exponential one. Values that
    are not yet defined (short series) come back as NaN.
    """
    close = pd.Series(series.closes)
    volumes = series.volumes

    fast = sma(close, ma_fast_period)
    slow = ema(close, ma_slow_period)
    rsi_values = rsi(close, rsi_period)
    macd_df = macd(close, MACD_FAST, MACD_SLOW, MACD_SIGNAL)

    def last(s: pd.Series, offset: int = 1) -> float:
        if len(s) < offset:
            return float('nan')
        return float(s.iloc[-offset])

    avg_volume = float(volumes[-volume_lookback:].sum() / volume_lookback) if len(volumes) else 0.0

    return IndicatorSnapshot(
        close=last(close),
        ma_fast=last(fast),
        ma_fast_prev=last(fast, 2),
        ma_slow=last(slow),
        ma_slow_prev=last(slow, 2),
        rsi=last(rsi_values),
        macd=last(macd_df['MACD']),
        macd_prev=last(macd_df['MACD'], 2),
        macd_signal=last(macd_df['MACD_SIGNAL']),
        macd_signal_prev=last(macd_df['MACD_SIGNAL'], 2),
        volume=float(volumes[-1]) if len(volumes) else 0.0,
        avg_volume=avg_volume,
        rsi_period=rsi_period,
        ma_fast_period=ma_fast_period,
        ma_slow_period=ma_slow_period,
    )
