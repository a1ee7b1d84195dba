"""Integration tests for the FLAT/LONG backtester."""
import pytest

from bitflow.agents.adaptive_controller import AdaptiveParameters
from bitflow.backtesting import (
    EXIT_END_OF_TEST,
    EXIT_MOMENTUM_LOSS,
    EXIT_STOP_LOSS,
    EXIT_TAKE_PROFIT,
    BacktestConfig,
    BacktestParams,
    Backtester,
    PerformanceMetrics,
    exit_reason,
    run_backtest,
)
from bitflow.exceptions import InvalidInputError

FLAT = [100.0] * 21


@pytest.mark.integration
class TestExitRule:

    def test_take_profit_wins_ties(self):
        # Both thresholds satisfied: TP is reported
        assert exit_reason(100.0, 99.0, 100.0, take_profit_percent=-2.0, stop_loss_percent=0.5) == EXIT_TAKE_PROFIT

    def test_stop_loss_before_momentum(self):
        assert exit_reason(100.0, 98.0, 99.0, 5.0, 1.0) == EXIT_STOP_LOSS

    def test_momentum_loss(self):
        assert exit_reason(100.0, 99.9, 100.2, 5.0, 1.0) == EXIT_MOMENTUM_LOSS

    def test_profitable_down_tick_holds(self):
        assert exit_reason(100.0, 100.3, 100.4, 5.0, 1.0) is None


@pytest.mark.integration
class TestBacktester:

    def test_take_profit_trade(self):
        result = Backtester().run(FLAT + [101.0, 102.01])
        assert len(result.trades) == 1

        trade = result.trades[0]
        assert trade.entry_index == 21
        assert trade.exit_index == 22
        assert trade.exit_reason == EXIT_TAKE_PROFIT
        assert trade.take_profit_percent == pytest.approx(0.5)
        assert trade.stop_loss_percent == pytest.approx(0.3)
        assert trade.market_regime == 'sideways'
        # Kelly 0.125 on defaults is capped at 10% of the balance
        assert trade.quantity == pytest.approx(1_000 / 101.0)
        assert trade.pnl == pytest.approx(1.01 * 1_000 / 101.0)

    def test_stop_loss_trade(self):
        result = Backtester().run(FLAT + [101.0, 100.0])
        assert [t.exit_reason for t in result.trades] == [EXIT_STOP_LOSS]
        assert result.trades[0].pnl < 0

    def test_momentum_loss_trade(self):
        result = Backtester().run(FLAT + [101.0, 101.2, 100.9])
        assert [t.exit_reason for t in result.trades] == [EXIT_MOMENTUM_LOSS]
        assert result.trades[0].exit_index == 23

    def test_open_position_without_close_at_end(self):
        result = Backtester().run(FLAT + [101.0, 101.4, 101.3])
        assert result.trades == []
        assert result.open_position is not None
        assert result.open_position['entry_index'] == 21
        assert result.entries == 1

    def test_close_at_end(self):
        config = BacktestConfig(close_at_end=True)
        result = Backtester(config).run(FLAT + [101.0, 101.4, 101.3])
        assert [t.exit_reason for t in result.trades] == [EXIT_END_OF_TEST]
        assert result.trades[0].exit_index == 23
        assert result.open_position is None

    def test_entry_bar_never_closes(self):
        config = BacktestConfig(close_at_end=True)
        result = Backtester(config).run(FLAT + [101.0])
        assert result.trades == []
        assert result.open_position is not None

    def test_fees_reduce_pnl(self):
        config = BacktestConfig(fee_rate=0.001)
        trade = Backtester(config).run(FLAT + [101.0, 102.01]).trades[0]
        qty = trade.quantity
        expected = 1.01 * qty - qty * 101.0 * 0.001 - qty * 102.01 * 0.001
        assert trade.pnl == pytest.approx(expected)

    def test_warmup_skips_early_bars(self):
        result = Backtester().run([100.0, 101.0, 102.0, 103.0])
        assert result.entries == 0

    def test_rsi_filter_blocks_entries(self, sample_series):
        config = BacktestConfig(use_rsi_filter=True)
        params = BacktestParams(rsi_buy_min=65.0, rsi_buy_max=65.0)
        result = Backtester(config).run(sample_series, params)
        assert result.entries == 0
        assert result.trades == []

    def test_sample_series_invariants(self, sample_series):
        result = Backtester().run(sample_series, BacktestParams(base_length=15, eval_period=12))
        assert result.entries >= len(result.trades) > 0
        assert result.rejected_records == 0

        for trade in result.trades:
            assert trade.exit_index > trade.entry_index
            assert trade.exit_reason in (EXIT_TAKE_PROFIT, EXIT_STOP_LOSS, EXIT_MOMENTUM_LOSS)
            assert 0.5 <= trade.take_profit_percent <= 5.0
            assert 0.3 <= trade.stop_loss_percent <= 3.0
            assert 0 < trade.quantity

        for previous, current in zip(result.trades, result.trades[1:]):
            assert current.entry_index > previous.exit_index

        final = result.metrics.initial_capital + sum(t.pnl for t in result.trades)
        assert result.metrics.final_capital == pytest.approx(final)
        assert result.equity_curve[-1] == pytest.approx(final)
        assert 'BACKTEST PERFORMANCE REPORT' in str(result)

    def test_run_backtest_returns_metrics(self, sample_series):
        metrics = run_backtest(sample_series)
        assert isinstance(metrics, PerformanceMetrics)
        assert metrics.total_trades >= 0


@pytest.mark.integration
class TestBacktestParams:

    @pytest.mark.parametrize('kwargs', [
        {'base_length': 1},
        {'eval_period': 0},
        {'rsi_period': 1},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidInputError):
            BacktestParams(**kwargs)

    def test_to_adaptive_parameters(self):
        current = AdaptiveParameters(confidence_threshold=0.7)

        params = BacktestParams(base_length=12, rsi_period=10).to_adaptive_parameters(current)
        assert (params.rsi_period, params.ma_fast_period, params.ma_slow_period) == (10, 6, 16)
        assert params.confidence_threshold == 0.7

        params = BacktestParams(base_length=28).to_adaptive_parameters(current)
        assert (params.ma_fast_period, params.ma_slow_period) == (14, 28)

        params = BacktestParams(base_length=40).to_adaptive_parameters()
        assert (params.ma_fast_period, params.ma_slow_period) == (15, 30)
        assert params.confidence_threshold == 0.6
