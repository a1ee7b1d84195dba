"""
Performance Metrics for Backtesting

Calculates trading performance metrics from a closed-trade list:
- Total P&L and win rate
- Average win / loss and profit factor
- Max drawdown over the trade equity curve
- Sharpe ratio (per-trade returns, daily risk-free rate, annualised)
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional, Sequence

import numpy as np

from config.settings import DAILY_RISK_FREE_RATE, INITIAL_BALANCE, TRADING_PERIODS_PER_YEAR
from bitflow.utils.trade_tracker import TradeRecord, profit_factor


@dataclass
class PerformanceMetrics:
    """Trading performance metrics"""
    total_trades: int
    winning_trades: int
    losing_trades: int
    total_pnl: float         # Absolute P&L in quote currency
    win_rate: float          # 0-1

    avg_win: float           # Average winning trade P&L
    avg_loss: float          # Average losing trade P&L (positive)
    profit_factor: float     # Gross profit / Gross loss

    max_drawdown: float          # Largest peak-to-trough drop, in currency
    max_drawdown_percent: float  # Largest peak-to-trough drop, % of peak

    sharpe_ratio: float

    largest_win: float
    largest_loss: float

    initial_capital: float
    final_capital: float

    @property
    def total_return_percent(self) -> float:
        if self.initial_capital <= 0:
            return 0.0
        return self.total_pnl / self.initial_capital * 100

    def to_dict(self) -> Dict:
        return asdict(self)


def equity_curve(trades: Sequence[TradeRecord], initial_capital: float) -> np.ndarray:
    """Equity after each trade, starting with the initial capital"""
    pnl = np.array([t.pnl for t in trades], dtype=float)
    return np.concatenate([[initial_capital], initial_capital + np.cumsum(pnl)])


def calculate_metrics(
    trades: Sequence[TradeRecord],
    initial_capital: float = INITIAL_BALANCE,
    risk_free_rate: float = DAILY_RISK_FREE_RATE,
    last_n: Optional[int] = None,
) -> PerformanceMetrics:
    """
    Calculate performance metrics from trade history

    Args:
        trades: Closed trades in chronological order
        initial_capital: Starting capital of the equity curve
        risk_free_rate: Per-period (daily) risk-free rate
        last_n: Only use the most recent ``last_n`` trades

    Returns:
        PerformanceMetrics with all calculated values
    """
    trades = list(trades)
    if last_n is not None:
        trades = trades[-last_n:] if last_n > 0 else []

    if not trades:
        return _empty_metrics(initial_capital)

    pnls = [t.pnl for t in trades]
    wins = [p for p in pnls if p > 0]
    losses = [abs(p) for p in pnls if p < 0]

    total_trades = len(trades)
    total_pnl = float(sum(pnls))

    equity = equity_curve(trades, initial_capital)
    max_dd, max_dd_pct = _calculate_drawdown(equity)
    sharpe = _calculate_sharpe(equity, risk_free_rate)

    return PerformanceMetrics(
        total_trades=total_trades,
        winning_trades=len(wins),
        losing_trades=len(losses),
        total_pnl=total_pnl,
        win_rate=len(wins) / total_trades,
        avg_win=float(np.mean(wins)) if wins else 0.0,
        avg_loss=float(np.mean(losses)) if losses else 0.0,
        profit_factor=profit_factor(trades),
        max_drawdown=max_dd,
        max_drawdown_percent=max_dd_pct,
        sharpe_ratio=sharpe,
        largest_win=max(wins) if wins else 0.0,
        largest_loss=max(losses) if losses else 0.0,
        initial_capital=initial_capital,
        final_capital=float(equity[-1]),
    )


def _calculate_drawdown(equity: np.ndarray) -> tuple:
    """
    Calculate maximum drawdown

    Returns:
        (max_drawdown, max_drawdown_pct)
    """
    peaks = np.maximum.accumulate(equity)
    drawdowns = peaks - equity
    with np.errstate(divide='ignore', invalid='ignore'):
        drawdown_pct = np.where(peaks > 0, drawdowns / peaks * 100, 0.0)
    return float(drawdowns.max()), float(drawdown_pct.max())


def _calculate_sharpe(equity: np.ndarray, risk_free_rate: float = DAILY_RISK_FREE_RATE) -> float:
    """
    Calculate Sharpe ratio

    Args:
        equity: Equity curve (initial capital first)
        risk_free_rate: Per-period risk-free rate

    Returns:
        Annualized Sharpe ratio; 0 with fewer than two returns or zero dispersion
    """
    if len(equity) < 3:
        return 0.0

    previous = equity[:-1]
    if np.any(previous == 0):
        return 0.0
    returns = np.diff(equity) / previous

    std = returns.std()
    if std == 0 or not np.isfinite(std):
        return 0.0

    return float((returns.mean() - risk_free_rate) / std * np.sqrt(TRADING_PERIODS_PER_YEAR))


def _empty_metrics(initial_capital: float) -> PerformanceMetrics:
    """Return empty metrics when no trades"""
    return PerformanceMetrics(
        total_trades=0,
        winning_trades=0,
        losing_trades=0,
        total_pnl=0.0,
        win_rate=0.0,
        avg_win=0.0,
        avg_loss=0.0,
        profit_factor=0.0,
        max_drawdown=0.0,
        max_drawdown_percent=0.0,
        sharpe_ratio=0.0,
        largest_win=0.0,
        largest_loss=0.0,
        initial_capital=initial_capital,
        final_capital=initial_capital,
    )


def format_metrics_report(metrics: PerformanceMetrics, title: str = 'BACKTEST PERFORMANCE REPORT') -> str:
    """Format metrics as a readable report"""

    report = f"""
================================================================================
                        {title}
================================================================================

CAPITAL
-------
Initial Capital:  ${metrics.initial_capital:,.2f}
Final Capital:    ${metrics.final_capital:,.2f}
Total Return:     {metrics.total_return_percent:+.2f}%
Total P&L:        ${metrics.total_pnl:+,.2f}

TRADE STATISTICS
----------------
Total Trades:     {metrics.total_trades}
Winning Trades:   {metrics.winning_trades} ({metrics.win_rate:.1%})
Losing Trades:    {metrics.losing_trades}

Average Win:      ${metrics.avg_win:+,.2f}
Average Loss:     ${metrics.avg_loss:,.2f}
Profit Factor:    {metrics.profit_factor:.2f}

Largest Win:      ${metrics.largest_win:+,.2f}
Largest Loss:     ${metrics.largest_loss:,.2f}

RISK METRICS
------------
Max Drawdown:     ${metrics.max_drawdown:,.2f} ({metrics.max_drawdown_percent:.2f}%)
Sharpe Ratio:     {metrics.sharpe_ratio:.2f}

================================================================================
"""
    return report
