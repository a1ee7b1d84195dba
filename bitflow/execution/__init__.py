"""
Execution Module - position sizing and exit levels.
Pure functions; no order routing happens here.
"""

from .position_sizer import (
    PositionSizer,
    PositionSizing,
    current_streak,
    streak_multiplier,
)
from .exit_levels import (
    ExitLevels,
    compute_exit_levels,
    fallback_exit_levels,
    base_volatility_percent,
)

__all__ = [
    'PositionSizer',
    'PositionSizing',
    'current_streak',
    'streak_multiplier',
    'ExitLevels',
    'compute_exit_levels',
    'fallback_exit_levels',
    'base_volatility_percent',
]
