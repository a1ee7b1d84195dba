"""
Dynamic take-profit / stop-loss levels.

Base distance is the ATR(14) as a percent of the entry price, scaled per
market regime, then adjusted by recent performance and clamped.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from config.settings import (
    EXIT_ATR_PERIOD,
    FALLBACK_STOP_LOSS_PCT,
    FALLBACK_TAKE_PROFIT_PCT,
    STOP_LOSS_BOUNDS,
    TAKE_PROFIT_BOUNDS,
)
from bitflow.data.bars import PriceSeries
from bitflow.indicators.volatility import atr

logger = logging.getLogger(__name__)

# (take profit, stop loss) multipliers of the base volatility, keyed by regime value
REGIME_MULTIPLIERS = {
    'trending': (3.0, 1.5),   # let trends run
    'volatile': (1.5, 2.0),   # wider stops, smaller targets
    'sideways': (1.2, 0.8),   # tight range trading
}
DEFAULT_MULTIPLIERS = (2.0, 1.0)


@dataclass
class ExitLevels:
    take_profit_percent: float
    stop_loss_percent: float
    reasoning: str

    def prices(self, entry_price: float) -> tuple:
        """(take profit price, stop loss price) for a long entry"""
        return (
            entry_price * (1 + self.take_profit_percent / 100),
            entry_price * (1 - self.stop_loss_percent / 100),
        )


def fallback_exit_levels(reason: str) -> ExitLevels:
    logger.warning(f"[EXITS] Falling back to TP {FALLBACK_TAKE_PROFIT_PCT}% / SL {FALLBACK_STOP_LOSS_PCT}%: {reason}")
    return ExitLevels(
        take_profit_percent=FALLBACK_TAKE_PROFIT_PCT,
        stop_loss_percent=FALLBACK_STOP_LOSS_PCT,
        reasoning=f"Fallback levels: {reason}",
    )


def base_volatility_percent(series: PriceSeries, entry_price: float, period: int = EXIT_ATR_PERIOD) -> float:
    """
    ATR as a percent of the entry price

    Windows too short for the ATR use the standard deviation of
    close-to-close returns (in percent) instead. NaN when neither can be
    computed.
    """
    if len(series) > period:
        atr_value = atr(series.to_frame(), period).iloc[-1]
        return float(atr_value / entry_price * 100)

    closes = series.closes
    if len(closes) < 2:
        return float('nan')
    returns = np.diff(closes) / closes[:-1]
    return float(np.std(returns) * 100)


def _clamp(value: float, bounds: tuple) -> float:
    return max(bounds[0], min(bounds[1], value))


def compute_exit_levels(
    series: PriceSeries,
    entry_price: float,
    regime: Optional[Any] = None,
    win_rate: Optional[float] = None,
) -> ExitLevels:
    """
    Take-profit and stop-loss percentages for a long entry

    Args:
        series: Recent price window ending at the entry bar
        entry_price: Entry price
        regime: MarketRegime (or its string value) of the window
        win_rate: Recent win rate (0-1); None skips the performance adjustment

    Returns:
        ExitLevels with TP in [0.5, 5.0] % and SL in [0.3, 3.0] %; never raises
    """
    try:
        entry_price = float(entry_price)
    except (TypeError, ValueError):
        return fallback_exit_levels(f"invalid entry price {entry_price!r}")
    if not math.isfinite(entry_price) or entry_price <= 0:
        return fallback_exit_levels(f"invalid entry price {entry_price}")
    if len(series) == 0:
        return fallback_exit_levels("empty price window")

    volatility = base_volatility_percent(series, entry_price)
    if not math.isfinite(volatility) or volatility <= 0:
        return fallback_exit_levels(f"unusable volatility {volatility}")

    regime_name = str(getattr(regime, 'value', regime) or 'default').lower()
    tp_mult, sl_mult = REGIME_MULTIPLIERS.get(regime_name, DEFAULT_MULTIPLIERS)

    take_profit = volatility * tp_mult
    stop_loss = volatility * sl_mult
    notes = [f"vol {volatility:.2f}%", f"{regime_name} x{tp_mult}/{sl_mult}"]

    if win_rate is not None and math.isfinite(win_rate):
        if win_rate < 0.4:
            take_profit *= 0.8
            stop_loss *= 1.2
            notes.append("weak edge: TP x0.8, SL x1.2")
        elif win_rate > 0.6:
            take_profit *= 1.2
            stop_loss *= 0.9
            notes.append("strong edge: TP x1.2, SL x0.9")

    take_profit = _clamp(take_profit, TAKE_PROFIT_BOUNDS)
    stop_loss = _clamp(stop_loss, STOP_LOSS_BOUNDS)

    levels = ExitLevels(
        take_profit_percent=take_profit,
        stop_loss_percent=stop_loss,
        reasoning=", ".join(notes),
    )
    logger.debug(f"[EXITS] TP {take_profit:.2f}% / SL {stop_loss:.2f}% ({levels.reasoning})")
    return levels
