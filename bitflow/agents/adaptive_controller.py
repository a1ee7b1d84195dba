"""
Adaptive Parameter Controller

Nudges the indicator periods and the confidence threshold from recent
trade outcomes. One bounded step per call; parameters are clamped on
construction so they can never drift outside their ranges.
"""

import logging
from dataclasses import dataclass, asdict, replace
from typing import Dict, Iterable, Optional

from config.settings import (
    ADAPTIVE_MIN_TRADES,
    ADAPTIVE_WINDOW,
    CONFIDENCE_THRESHOLD_BOUNDS,
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_MA_FAST,
    DEFAULT_MA_SLOW,
    DEFAULT_RSI_PERIOD,
    MA_FAST_MAX,
    MA_SLOW_MAX,
    RSI_PERIOD_BOUNDS,
)
from bitflow.utils.trade_tracker import TradeRecord

logger = logging.getLogger(__name__)

MA_FAST_MIN = 2


def _clamp(value, low, high):
    return max(low, min(high, value))


@dataclass(frozen=True)
class AdaptiveParameters:
    """Indicator periods and decision threshold used by the scorer"""
    rsi_period: int = DEFAULT_RSI_PERIOD
    ma_fast_period: int = DEFAULT_MA_FAST
    ma_slow_period: int = DEFAULT_MA_SLOW
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD

    def __post_init__(self):
        fast = _clamp(int(self.ma_fast_period), MA_FAST_MIN, MA_FAST_MAX)
        slow = _clamp(int(self.ma_slow_period), fast + 1, MA_SLOW_MAX)
        object.__setattr__(self, 'rsi_period', _clamp(int(self.rsi_period), *RSI_PERIOD_BOUNDS))
        object.__setattr__(self, 'ma_fast_period', fast)
        object.__setattr__(self, 'ma_slow_period', slow)
        object.__setattr__(
            self, 'confidence_threshold',
            round(_clamp(float(self.confidence_threshold), *CONFIDENCE_THRESHOLD_BOUNDS), 2),
        )

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class PerformanceAlert:
    """Win-rate alert over the most recent trades"""
    level: str          # 'critical', 'warning' or 'info'
    message: str
    win_rate: float


class AdaptiveParameterController:
    """
    Adapts AdaptiveParameters from the trailing trade window.

    - win rate < 0.4: slower RSI, slower MAs
    - win rate > 0.6: faster RSI
    - win rate < 0.3: stricter threshold
    - win rate > 0.7: looser threshold
    """

    def __init__(
        self,
        parameters: Optional[AdaptiveParameters] = None,
        window: int = ADAPTIVE_WINDOW,
        min_trades: int = ADAPTIVE_MIN_TRADES,
        alert_window: int = 10,
        alert_min_trades: int = 5,
    ):
        self.parameters = parameters or AdaptiveParameters()
        self.window = window
        self.min_trades = min_trades
        self.alert_window = alert_window
        self.alert_min_trades = alert_min_trades

    @staticmethod
    def _win_rate(trades) -> float:
        return sum(1 for t in trades if t.pnl > 0) / len(trades)

    def adapt(self, history: Iterable[TradeRecord]) -> AdaptiveParameters:
        """
        Take one adaptation step from the last ``window`` trades

        No-op (returns the current parameters) with fewer than
        ``min_trades`` trades in the window.
        """
        recent = list(history)[-self.window:]
        if len(recent) < self.min_trades:
            return self.parameters

        win_rate = self._win_rate(recent)
        current = self.parameters
        rsi_period = current.rsi_period
        fast = current.ma_fast_period
        slow = current.ma_slow_period
        threshold = current.confidence_threshold

        if win_rate < 0.4:
            rsi_period = min(RSI_PERIOD_BOUNDS[1], rsi_period + 1)
            fast = min(MA_FAST_MAX, fast + 1)
            slow = min(MA_SLOW_MAX, slow + 2)
        elif win_rate > 0.6:
            rsi_period = max(RSI_PERIOD_BOUNDS[0], rsi_period - 1)

        if win_rate < 0.3:
            threshold = min(CONFIDENCE_THRESHOLD_BOUNDS[1], round(threshold + 0.05, 2))
        elif win_rate > 0.7:
            threshold = max(CONFIDENCE_THRESHOLD_BOUNDS[0], round(threshold - 0.05, 2))

        updated = replace(
            current,
            rsi_period=rsi_period,
            ma_fast_period=fast,
            ma_slow_period=slow,
            confidence_threshold=threshold,
        )
        if updated != current:
            logger.info(
                f"[ADAPTIVE] win_rate={win_rate:.2f} -> RSI {updated.rsi_period}, "
                f"MA {updated.ma_fast_period}/{updated.ma_slow_period}, "
                f"threshold {updated.confidence_threshold:.2f}"
            )
        self.parameters = updated
        return updated

    def performance_alert(self, history: Iterable[TradeRecord]) -> Optional[PerformanceAlert]:
        """Alert on unusually poor (or strong) recent win rates"""
        recent = list(history)[-self.alert_window:]
        if len(recent) < self.alert_min_trades:
            return None

        win_rate = self._win_rate(recent)
        if win_rate < 0.2:
            alert = PerformanceAlert('critical', f"Win rate collapsed to {win_rate:.0%} over last {len(recent)} trades", win_rate)
        elif win_rate < 0.3:
            alert = PerformanceAlert('warning', f"Low win rate {win_rate:.0%} over last {len(recent)} trades", win_rate)
        elif win_rate > 0.8:
            alert = PerformanceAlert('info', f"Strong win rate {win_rate:.0%} over last {len(recent)} trades", win_rate)
        else:
            return None

        log = logger.warning if alert.level in ('critical', 'warning') else logger.info
        log(f"[ADAPTIVE] {alert.level.upper()}: {alert.message}")
        return alert

    def reset(self) -> AdaptiveParameters:
        """Back to default parameters"""
        self.parameters = AdaptiveParameters()
        logger.info("[ADAPTIVE] Parameters reset to defaults")
        return self.parameters
