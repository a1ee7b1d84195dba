"""
Signal Scoring Engine - weighted fusion of directional evidence.

Each factor adds at most its weight to the buy or sell side:
- External directional signal (ML / sentiment provider)   0.40
- Fast/slow moving-average crossover                       0.20
- RSI recovery / exhaustion bands                          0.15
- MACD line / signal crossover                             0.15
- Volume confirmation of the leading side                  0.10

The raw sides are then modulated by market regime and risk level, and a
decision is emitted only when the net score clears the adaptive
confidence threshold.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from config.settings import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    EXTERNAL_SIGNAL_MIN,
    EXTERNAL_SIGNAL_WEIGHT,
    HIGH_RISK_PENALTY,
    LOW_RISK_BONUS,
    MA_CROSSOVER_WEIGHT,
    MACD_WEIGHT,
    MIN_BARS_FOR_SIGNAL,
    MIN_SIGNAL_CONFIDENCE,
    RSI_BUY_BAND,
    RSI_SELL_BAND,
    RSI_WEIGHT,
    SIDEWAYS_PENALTY,
    TRENDING_BOOST,
    VOLUME_CONFIRMATION_RATIO,
    VOLUME_WEIGHT,
)
from bitflow.data.bars import PriceSeries
from bitflow.indicators.snapshot import IndicatorSnapshot, compute_snapshot
from .regime_detector import MarketRegime
from .risk_assessor import RiskAssessment, RiskLevel

logger = logging.getLogger(__name__)


class Signal(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class SignalResult:
    """Scored decision with its rationale trail"""
    signal: Optional[Signal]
    confidence: float
    buy_score: float = 0.0
    sell_score: float = 0.0
    net_score: float = 0.0
    reasons: List[str] = field(default_factory=list)
    market_regime: Optional[MarketRegime] = None
    risk_level: Optional[RiskLevel] = None
    external_signal: Optional[float] = None

    @property
    def is_actionable(self) -> bool:
        return self.signal is not None

    def to_dict(self) -> Dict:
        return {
            'signal': self.signal.value if self.signal else None,
            'confidence': round(self.confidence, 4),
            'buy_score': round(self.buy_score, 4),
            'sell_score': round(self.sell_score, 4),
            'net_score': round(self.net_score, 4),
            'reasons': list(self.reasons),
            'market_regime': self.market_regime.value if self.market_regime else None,
            'risk_level': self.risk_level.value if self.risk_level else None,
            'external_signal': self.external_signal,
        }


def clamp_external_signal(value: Optional[float]) -> Optional[float]:
    """Clamp a provider signal to [-1, 1]; None / NaN become None (neutral)"""
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return max(-1.0, min(1.0, value))


def _crossing(prev_diff: float, cur_diff: float) -> int:
    """+1 for an upward zero crossing, -1 for a downward one, else 0"""
    if prev_diff <= 0 < cur_diff:
        return 1
    if prev_diff >= 0 > cur_diff:
        return -1
    return 0


class SignalScorer:
    """Fuses indicator evidence and an optional external signal into a decision"""

    def __init__(self, min_bars: int = MIN_BARS_FOR_SIGNAL):
        self.min_bars = min_bars

    def evaluate(
        self,
        series: PriceSeries,
        snapshot: Optional[IndicatorSnapshot],
        regime: MarketRegime,
        risk: RiskAssessment,
        external_signal: Optional[float] = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ) -> SignalResult:
        """
        Score the most recent bar

        Args:
            series: Price window, most recent bar last
            snapshot: Indicator read-out for the window (computed with
                default periods when None)
            regime: Current market regime
            risk: Current risk assessment
            external_signal: Optional directional signal in [-1, 1]
            confidence_threshold: |net| must exceed this to emit a signal

        Returns:
            SignalResult; ``signal`` is None when nothing clears the bar
        """
        external = clamp_external_signal(external_signal)

        if len(series) < self.min_bars:
            return SignalResult(
                None, 0.0, reasons=['insufficient data'],
                market_regime=regime, risk_level=risk.level, external_signal=external,
            )

        if snapshot is None:
            snapshot = compute_snapshot(series)

        if not snapshot.has_crossover_data:
            return SignalResult(
                None, 0.0, reasons=['insufficient indicator data'],
                market_regime=regime, risk_level=risk.level, external_signal=external,
            )

        buy_score = 0.0
        sell_score = 0.0
        reasons = []

        # 1. External directional signal
        if external is not None and abs(external) > EXTERNAL_SIGNAL_MIN:
            contribution = EXTERNAL_SIGNAL_WEIGHT * abs(external)
            if external > 0:
                buy_score += contribution
                reasons.append(f"External signal bullish ({external:.0%})")
            else:
                sell_score += contribution
                reasons.append(f"External signal bearish ({abs(external):.0%})")

        # 2. MA crossover
        ma_cross = _crossing(
            snapshot.ma_fast_prev - snapshot.ma_slow_prev,
            snapshot.ma_fast - snapshot.ma_slow,
        )
        if ma_cross > 0:
            buy_score += MA_CROSSOVER_WEIGHT
            reasons.append("MA bullish crossover")
        elif ma_cross < 0:
            sell_score += MA_CROSSOVER_WEIGHT
            reasons.append("MA bearish crossover")

        # 3. RSI bands
        rsi_value = snapshot.rsi
        if math.isfinite(rsi_value):
            if RSI_BUY_BAND[0] < rsi_value < RSI_BUY_BAND[1]:
                buy_score += RSI_WEIGHT
                reasons.append(f"RSI oversold recovery ({rsi_value:.1f})")
            elif RSI_SELL_BAND[0] < rsi_value < RSI_SELL_BAND[1]:
                sell_score += RSI_WEIGHT
                reasons.append(f"RSI overbought ({rsi_value:.1f})")

        # 4. MACD crossover
        macd_cross = _crossing(
            snapshot.macd_prev - snapshot.macd_signal_prev,
            snapshot.macd - snapshot.macd_signal,
        )
        if macd_cross > 0:
            buy_score += MACD_WEIGHT
            reasons.append("MACD bullish crossover")
        elif macd_cross < 0:
            sell_score += MACD_WEIGHT
            reasons.append("MACD bearish crossover")

        # 5. Volume confirmation (leading side only)
        if snapshot.avg_volume > 0 and snapshot.volume > VOLUME_CONFIRMATION_RATIO * snapshot.avg_volume:
            if buy_score > sell_score:
                buy_score += VOLUME_WEIGHT
                reasons.append("Volume confirmation")
            elif sell_score > buy_score:
                sell_score += VOLUME_WEIGHT
                reasons.append("Volume confirmation")

        # Regime modulation
        if regime == MarketRegime.TRENDING:
            if buy_score > sell_score:
                buy_score *= TRENDING_BOOST
                reasons.append("Trending market boost")
            elif sell_score > buy_score:
                sell_score *= TRENDING_BOOST
                reasons.append("Trending market boost")
        elif regime == MarketRegime.SIDEWAYS:
            buy_score *= SIDEWAYS_PENALTY
            sell_score *= SIDEWAYS_PENALTY
            reasons.append("Sideways market penalty")

        # Risk modulation
        if risk.level == RiskLevel.HIGH:
            buy_score *= HIGH_RISK_PENALTY
            sell_score *= HIGH_RISK_PENALTY
            reasons.append("High risk penalty")
        elif risk.level == RiskLevel.LOW:
            buy_score *= LOW_RISK_BONUS
            sell_score *= LOW_RISK_BONUS
            reasons.append("Low risk bonus")

        net_score = buy_score - sell_score
        confidence = min(1.0, max(abs(net_score), risk.confidence))

        signal = None
        if abs(net_score) > confidence_threshold and confidence > MIN_SIGNAL_CONFIDENCE:
            signal = Signal.BUY if net_score > 0 else Signal.SELL

        logger.debug(
            f"[SCORER] {signal.value if signal else 'HOLD'} | buy={buy_score:.3f} sell={sell_score:.3f} "
            f"net={net_score:+.3f} conf={confidence:.2f} thr={confidence_threshold:.2f}"
        )

        return SignalResult(
            signal=signal,
            confidence=confidence,
            buy_score=buy_score,
            sell_score=sell_score,
            net_score=net_score,
            reasons=reasons,
            market_regime=regime,
            risk_level=risk.level,
            external_signal=external,
        )
