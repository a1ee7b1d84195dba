"""Tests for backtest performance metrics."""
import math

import numpy as np
import pytest

from bitflow.backtesting.metrics import (
    calculate_metrics,
    equity_curve,
    format_metrics_report,
)
from tests.fixtures.sample_data import make_trade


@pytest.fixture
def trades():
    return [make_trade(100.0), make_trade(-50.0), make_trade(200.0)]


@pytest.mark.unit
class TestCalculateMetrics:

    def test_empty(self):
        metrics = calculate_metrics([], initial_capital=5_000)
        assert metrics.total_trades == 0
        assert metrics.sharpe_ratio == 0.0
        assert metrics.final_capital == 5_000
        assert metrics.total_return_percent == 0.0

    def test_basic_values(self, trades):
        metrics = calculate_metrics(trades, initial_capital=10_000)

        assert metrics.total_trades == 3
        assert metrics.winning_trades == 2
        assert metrics.losing_trades == 1
        assert metrics.total_pnl == pytest.approx(250.0)
        assert metrics.win_rate == pytest.approx(2 / 3)
        assert metrics.avg_win == pytest.approx(150.0)
        assert metrics.avg_loss == pytest.approx(50.0)
        assert metrics.profit_factor == pytest.approx(6.0)
        assert metrics.largest_win == pytest.approx(200.0)
        assert metrics.largest_loss == pytest.approx(50.0)
        assert metrics.final_capital == pytest.approx(10_250.0)
        assert metrics.total_return_percent == pytest.approx(2.5)

    def test_drawdown(self, trades):
        metrics = calculate_metrics(trades, initial_capital=10_000)
        assert metrics.max_drawdown == pytest.approx(50.0)
        assert metrics.max_drawdown_percent == pytest.approx(50.0 / 10_100 * 100)

    def test_sharpe(self, trades):
        equity = np.array([10_000.0, 10_100.0, 10_050.0, 10_250.0])
        returns = np.diff(equity) / equity[:-1]
        expected = (returns.mean() - 0.0005) / returns.std() * math.sqrt(252)

        metrics = calculate_metrics(trades, initial_capital=10_000, risk_free_rate=0.0005)
        assert metrics.sharpe_ratio == pytest.approx(expected)

    def test_single_trade_sharpe_is_zero(self):
        assert calculate_metrics([make_trade(100.0)]).sharpe_ratio == 0.0

    def test_identical_returns_sharpe_is_zero(self):
        metrics = calculate_metrics([make_trade(0.0), make_trade(0.0)], initial_capital=1_000)
        assert metrics.sharpe_ratio == 0.0

    def test_last_n(self, trades):
        metrics = calculate_metrics(trades, initial_capital=10_000, last_n=2)
        assert metrics.total_trades == 2
        assert metrics.total_pnl == pytest.approx(150.0)
        assert calculate_metrics(trades, last_n=0).total_trades == 0

    def test_profit_factor_without_losses(self):
        metrics = calculate_metrics([make_trade(10.0), make_trade(5.0)])
        assert math.isinf(metrics.profit_factor)
        assert metrics.max_drawdown == 0.0

    def test_breakeven_is_neither_win_nor_loss(self):
        metrics = calculate_metrics([make_trade(10.0), make_trade(0.0)])
        assert metrics.winning_trades == 1
        assert metrics.losing_trades == 0
        assert metrics.win_rate == pytest.approx(0.5)


@pytest.mark.unit
class TestEquityAndReport:

    def test_equity_curve(self, trades):
        np.testing.assert_allclose(equity_curve(trades, 1_000), [1_000, 1_100, 1_050, 1_250])

    def test_report(self, trades):
        report = format_metrics_report(calculate_metrics(trades, initial_capital=10_000), title='TEST')
        assert 'TEST' in report
        assert 'Total Trades:     3' in report
        assert 'Sharpe Ratio:' in report
