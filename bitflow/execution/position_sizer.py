"""
Position Sizer - Kelly sizing with a streak multiplier and a hard cap.

quantity = balance * kelly_fraction / price, scaled by the current
win/loss streak and clamped to [MIN_POSITION_SIZE, 10% of balance].
Any arithmetic fault falls back to a flat 1% risk budget.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Union

from config.settings import FALLBACK_RISK_PCT, MAX_POSITION_PCT, MIN_POSITION_SIZE

logger = logging.getLogger(__name__)


@dataclass
class PositionSizing:
    """Result from position sizing calculation."""
    quantity: float
    risk_amount: float          # Notional committed (quantity * price)
    confidence: float           # Kelly fraction used, 0.0 on fallback
    reasoning: str


def _finite(*values) -> bool:
    try:
        return all(math.isfinite(float(v)) for v in values)
    except (TypeError, ValueError):
        return False


def current_streak(outcomes: Iterable[Union[bool, float]]) -> int:
    """
    Length of the trailing run of identical outcomes

    Positive for a winning streak, negative for a losing one. Outcomes may
    be booleans (True = win) or P&L values (> 0 = win).
    """
    streak = 0
    for outcome in reversed(list(outcomes)):
        won = outcome > 0 if not isinstance(outcome, bool) else outcome
        if streak == 0:
            streak = 1 if won else -1
        elif won and streak > 0:
            streak += 1
        elif not won and streak < 0:
            streak -= 1
        else:
            break
    return streak


def streak_multiplier(outcomes: Iterable[Union[bool, float]]) -> float:
    """0.5 after 3+ losses, 0.7 after 2 losses, 1.2 after 3+ wins, else 1.0"""
    streak = current_streak(outcomes)
    if streak <= -3:
        return 0.5
    if streak <= -2:
        return 0.7
    if streak >= 3:
        return 1.2
    return 1.0


class PositionSizer:
    """Kelly criterion sizing bounded by a concentration cap."""

    def __init__(
        self,
        min_size: float = MIN_POSITION_SIZE,
        max_position_pct: float = MAX_POSITION_PCT,
        fallback_risk_pct: float = FALLBACK_RISK_PCT,
    ):
        self.min_size = min_size
        self.max_position_pct = max_position_pct
        self.fallback_risk_pct = fallback_risk_pct

    def _cap(self, quantity: float, balance: float, price: float) -> float:
        max_quantity = self.max_position_pct * balance / price
        return max(self.min_size, min(quantity, max_quantity))

    def fallback(self, balance: float, price: float, reason: str) -> PositionSizing:
        """Flat risk budget used when Kelly cannot be computed"""
        logger.warning(f"[SIZING] Falling back to {self.fallback_risk_pct:.0%} risk: {reason}")
        if _finite(balance, price) and balance > 0 and price > 0:
            quantity = self._cap(balance * self.fallback_risk_pct / price, balance, price)
            risk_amount = quantity * price
        else:
            quantity = self.min_size
            risk_amount = quantity * price if _finite(price) and price > 0 else 0.0
        return PositionSizing(
            quantity=quantity,
            risk_amount=risk_amount,
            confidence=0.0,
            reasoning=f"Fallback sizing ({self.fallback_risk_pct:.0%} risk): {reason}",
        )

    def size_position(
        self,
        balance: float,
        price: float,
        win_rate: float,
        avg_win: float,
        avg_loss: float,
        recent_outcomes: Iterable[Union[bool, float]] = (),
    ) -> PositionSizing:
        """Calculate position size.

        Args:
            balance: Account balance in quote currency
            price: Entry price
            win_rate: Historical win probability (0-1)
            avg_win: Average winning return (fraction, > 0)
            avg_loss: Average losing return (fraction, > 0)
            recent_outcomes: Chronological win flags or P&L values

        Returns:
            PositionSizing; never raises
        """
        if not _finite(balance) or balance <= 0:
            return self.fallback(balance, price, f"invalid balance {balance}")
        if not _finite(price) or price <= 0:
            return self.fallback(balance, price, f"invalid price {price}")
        if not _finite(win_rate, avg_win, avg_loss):
            return self.fallback(balance, price, "non-finite trade statistics")
        if avg_loss <= 0 or avg_win <= 0:
            return self.fallback(balance, price, f"avg_win={avg_win}, avg_loss={avg_loss}")

        p = min(1.0, max(0.0, win_rate))
        win_loss_ratio = avg_win / avg_loss
        kelly = p - (1 - p) / win_loss_ratio
        kelly = min(1.0, max(0.0, kelly))

        multiplier = streak_multiplier(recent_outcomes)
        raw_quantity = balance * kelly / price * multiplier
        quantity = self._cap(raw_quantity, balance, price)

        reasoning = (
            f"Kelly {kelly:.3f} (p={p:.2f}, R={win_loss_ratio:.2f}), "
            f"streak x{multiplier:.1f}, qty {quantity:.6f}"
        )
        if quantity != raw_quantity:
            reasoning += " (clamped)"
        logger.debug(f"[SIZING] {reasoning}")

        return PositionSizing(
            quantity=quantity,
            risk_amount=quantity * price,
            confidence=kelly,
            reasoning=reasoning,
        )
