"""
Risk Assessor - scores current market conditions into a risk level.

Factors:
- Volatility (RMS log return)
- RSI extremes and Bollinger band extremes
- Volume (thin market)
- Trend clarity (higher highs vs lower lows)
- Distance to recent resistance / support
- Optional news tone (keyword scan) or pre-computed sentiment score
"""

import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np
import pandas as pd

from config.settings import MIN_BARS_FOR_SIGNAL, VOLUME_LOOKBACK
from bitflow.data.bars import PriceSeries
from bitflow.indicators.oscillators import rsi
from bitflow.indicators.volatility import bollinger_bands, return_volatility
from bitflow.indicators.volume import volume_ratio

logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


POSITIVE_WORDS = {
    'rise', 'rises', 'rising', 'bull', 'bullish', 'up', 'gain', 'gains', 'profit', 'profits',
    'buy', 'strong', 'growth', 'positive', 'surge', 'surges', 'rally', 'rallies',
}
NEGATIVE_WORDS = {
    'fall', 'falls', 'falling', 'bear', 'bearish', 'down', 'loss', 'losses', 'sell', 'weak',
    'decline', 'declines', 'negative', 'crash', 'crashes', 'drop', 'drops',
}

_WORD_RE = re.compile(r"[a-z]+")


def scan_news_tone(text: Optional[str]) -> float:
    """
    Keyword tone of a news blob in [-1, 1]

    (positive hits - negative hits) / total hits; 0.0 for empty text or
    text without any keyword.
    """
    if not text:
        return 0.0
    words = _WORD_RE.findall(text.lower())
    positive = sum(1 for w in words if w in POSITIVE_WORDS)
    negative = sum(1 for w in words if w in NEGATIVE_WORDS)
    total = positive + negative
    if total == 0:
        return 0.0
    return (positive - negative) / total


@dataclass
class RiskAssessment:
    """Risk level with confidence and the factors that contributed"""
    level: RiskLevel
    confidence: float
    score: float = 0.5                     # Normalised risk score 0-1
    factors: List[str] = field(default_factory=list)


class RiskAssessor:
    """Scores volatility, momentum extremes, volume, trend clarity and news tone"""

    def __init__(
        self,
        min_bars: int = MIN_BARS_FOR_SIGNAL,
        high_volatility: float = 0.05,
        low_volatility: float = 0.02,
        thin_volume_ratio: float = 0.5,
        news_threshold: float = 0.3,
    ):
        self.min_bars = min_bars
        self.high_volatility = high_volatility
        self.low_volatility = low_volatility
        self.thin_volume_ratio = thin_volume_ratio
        self.news_threshold = news_threshold

    def assess(
        self,
        series: PriceSeries,
        news_text: Optional[str] = None,
        sentiment_score: Optional[float] = None,
    ) -> RiskAssessment:
        """
        Assess risk for the most recent bar

        Args:
            series: Price window (most recent bar last)
            news_text: Optional news blob scanned for tone keywords
            sentiment_score: Optional pre-computed sentiment in [-1, 1];
                takes precedence over the keyword scan

        Returns:
            RiskAssessment; HIGH with confidence 0.5 when the window is too short
        """
        if len(series) < self.min_bars:
            return RiskAssessment(RiskLevel.HIGH, 0.5, 1.0, ['insufficient data'])

        closes = series.closes
        highs = series.highs
        lows = series.lows
        current = closes[-1]
        factors = []
        risk_score = 0.0

        # Volatility risk
        volatility = return_volatility(closes, 20)
        if volatility > self.high_volatility:
            risk_score += 0.3
            factors.append(f"High volatility ({volatility:.2%})")
        elif volatility < self.low_volatility:
            risk_score -= 0.1
            factors.append(f"Low volatility ({volatility:.2%})")

        # Technical extremes
        close_series = pd.Series(closes)
        rsi_value = rsi(close_series, 14).iloc[-1]
        if math.isfinite(rsi_value) and (rsi_value > 80 or rsi_value < 20):
            risk_score += 0.2
            factors.append(f"RSI extreme ({rsi_value:.1f})")

        bands = bollinger_bands(close_series, 20, 2.0).iloc[-1]
        width = bands['BB_UPPER'] - bands['BB_LOWER']
        bb_position = (current - bands['BB_LOWER']) / width if width > 0 else 0.5
        if bb_position > 0.9 or bb_position < 0.1:
            risk_score += 0.1
            factors.append(f"Price at Bollinger extreme ({bb_position:.2f})")

        # Thin market
        volumes = series.volumes
        if volumes.any():
            ratio = volume_ratio(volumes, VOLUME_LOOKBACK)
            if ratio < self.thin_volume_ratio:
                risk_score += 0.1
                factors.append(f"Thin volume ({ratio:.2f}x avg)")

        # Trend clarity
        trend_strength = self._trend_strength(highs[-10:], lows[-10:])
        if abs(trend_strength) < 0.2:
            risk_score += 0.2
            factors.append("Weak trend")

        # Support / resistance
        resistance_distance = (highs[-20:].max() - current) / current
        support_distance = (current - lows[-20:].min()) / current
        if resistance_distance < 0.01:
            risk_score += 0.2
            factors.append("Near resistance")
        if support_distance < 0.01:
            risk_score -= 0.1
            factors.append("Near support")

        # News tone
        tone = sentiment_score if sentiment_score is not None and math.isfinite(sentiment_score) \
            else scan_news_tone(news_text)
        if tone < -self.news_threshold:
            risk_score += 0.2
            factors.append(f"Negative news tone ({tone:+.2f})")
        elif tone > self.news_threshold:
            risk_score -= 0.1
            factors.append(f"Positive news tone ({tone:+.2f})")

        normalized = float(np.clip(risk_score + 0.5, 0.0, 1.0))
        if normalized < 0.3:
            level = RiskLevel.LOW
        elif normalized < 0.7:
            level = RiskLevel.MEDIUM
        else:
            level = RiskLevel.HIGH

        confidence = 1 - abs(normalized - 0.5) * 2
        logger.debug(f"[RISK] {level.value.upper()} score={normalized:.2f} conf={confidence:.2f} | {', '.join(factors)}")
        return RiskAssessment(level, confidence, normalized, factors)

    @staticmethod
    def _trend_strength(highs: np.ndarray, lows: np.ndarray) -> float:
        """(higher highs - lower lows) / 10 over the given window"""
        higher_highs = int(np.sum(np.diff(highs) > 0))
        lower_lows = int(np.sum(np.diff(lows) < 0))
        return (higher_highs - lower_lows) / 10
