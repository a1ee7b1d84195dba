"""
Utils Package - logging setup and trade history
"""

from .logger import setup_logger
from .trade_tracker import (
    TradeRecord,
    TradeHistory,
    TradeStats,
    summarize_trade_stats,
    validate_trade_record,
)

__all__ = [
    'setup_logger',
    'TradeRecord',
    'TradeHistory',
    'TradeStats',
    'summarize_trade_stats',
    'validate_trade_record',
]
