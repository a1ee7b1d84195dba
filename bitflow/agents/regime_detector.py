"""
Market Regime Detector
Labels the recent window as trending / volatile / sideways
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np
import pandas as pd

from config.settings import (
    REGIME_SLOPE_LOOKBACK,
    REGIME_SMA_PERIOD,
    REGIME_TREND_THRESHOLD,
    REGIME_VOLATILITY_THRESHOLD,
    REGIME_VOLATILITY_WINDOW,
)
from bitflow.data.bars import PriceSeries
from bitflow.indicators.trend import sma
from bitflow.indicators.volatility import return_volatility

logger = logging.getLogger(__name__)


class MarketRegime(str, Enum):
    TRENDING = "trending"
    VOLATILE = "volatile"
    SIDEWAYS = "sideways"


@dataclass
class RegimeReading:
    """Regime label with the statistics it was derived from"""
    regime: MarketRegime
    trend: float        # SMA drift over the slope lookback
    volatility: float   # RMS log return over the volatility window
    sufficient_data: bool = True


class RegimeDetector:
    """
    Classifies the recent price window.

    Directional persistence (drift of the SMA across the slope lookback)
    wins over dispersion: a window that drifts more than the trend
    threshold is trending even when it is also noisy.
    """

    def __init__(
        self,
        sma_period: int = REGIME_SMA_PERIOD,
        slope_lookback: int = REGIME_SLOPE_LOOKBACK,
        trend_threshold: float = REGIME_TREND_THRESHOLD,
        volatility_window: int = REGIME_VOLATILITY_WINDOW,
        volatility_threshold: float = REGIME_VOLATILITY_THRESHOLD,
    ):
        self.sma_period = sma_period
        self.slope_lookback = slope_lookback
        self.trend_threshold = trend_threshold
        self.volatility_window = volatility_window
        self.volatility_threshold = volatility_threshold

    @property
    def min_bars(self) -> int:
        return self.sma_period + self.slope_lookback - 1

    def analyze(self, prices: Union[PriceSeries, np.ndarray]) -> RegimeReading:
        """Classify the window and return the underlying statistics"""
        closes = prices.closes if isinstance(prices, PriceSeries) else np.asarray(prices, dtype=float)

        if len(closes) < self.min_bars:
            logger.debug(f"[REGIME] {len(closes)} bars < {self.min_bars}, defaulting to SIDEWAYS")
            return RegimeReading(MarketRegime.SIDEWAYS, 0.0, 0.0, sufficient_data=False)

        sma_values = sma(pd.Series(closes[-self.min_bars:]), self.sma_period).dropna().to_numpy()
        recent = sma_values[-self.slope_lookback:]
        trend = float((recent[-1] - recent[0]) / recent[0])
        volatility = return_volatility(closes, self.volatility_window)

        if abs(trend) > self.trend_threshold:
            regime = MarketRegime.TRENDING
        elif volatility > self.volatility_threshold:
            regime = MarketRegime.VOLATILE
        else:
            regime = MarketRegime.SIDEWAYS

        logger.debug(f"[REGIME] {regime.value.upper()} | trend={trend:+.4f}, vol={volatility:.4f}")
        return RegimeReading(regime, trend, volatility)

    def detect(self, prices: Union[PriceSeries, np.ndarray]) -> MarketRegime:
        """Regime label for the most recent window"""
        return self.analyze(prices).regime
