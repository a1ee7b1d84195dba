"""
Backtesting Module for BitFlow

Provides historical simulation of the momentum strategy:
- FLAT/LONG backtester with dynamic TP/SL and Kelly sizing
- Performance metrics with Sharpe over the trade equity curve
- Transaction costs modeling (optional fee rate)
- Random-search parameter optimizer (seeded, parallel, cancellable)
"""

from .metrics import PerformanceMetrics, calculate_metrics, equity_curve, format_metrics_report
from .backtester import (
    Backtester,
    BacktestConfig,
    BacktestParams,
    BacktestResult,
    as_price_series,
    exit_reason,
    run_backtest,
    EXIT_TAKE_PROFIT,
    EXIT_STOP_LOSS,
    EXIT_MOMENTUM_LOSS,
    EXIT_END_OF_TEST,
)
from .optimizer import (
    OptimizationResult,
    ParameterOptimizer,
    TrialResult,
    optimize,
    sample_params,
    select_best,
)

__all__ = [
    # Metrics
    'PerformanceMetrics',
    'calculate_metrics',
    'equity_curve',
    'format_metrics_report',
    # Backtester
    'Backtester',
    'BacktestConfig',
    'BacktestParams',
    'BacktestResult',
    'as_price_series',
    'exit_reason',
    'run_backtest',
    'EXIT_TAKE_PROFIT',
    'EXIT_STOP_LOSS',
    'EXIT_MOMENTUM_LOSS',
    'EXIT_END_OF_TEST',
    # Optimizer
    'OptimizationResult',
    'ParameterOptimizer',
    'TrialResult',
    'optimize',
    'sample_params',
    'select_best',
]
