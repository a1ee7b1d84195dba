"""Tests for trade records, the trade history and live statistics."""
import logging
import math

import pytest

from bitflow.agents.regime_detector import MarketRegime
from bitflow.exceptions import InvalidInputError
from bitflow.utils.trade_tracker import (
    TradeHistory,
    TradeStats,
    profit_factor,
    summarize_trade_stats,
    trade_outcomes,
    validate_trade_record,
)
from tests.fixtures.sample_data import SAMPLE_TRADE, make_trade


@pytest.mark.unit
class TestTradeRecord:

    def test_valid_record(self):
        record = validate_trade_record(SAMPLE_TRADE)
        assert record.symbol == 'BTC/USD'
        assert record.is_winner
        assert record.market_regime == 'sideways'

    def test_enum_regime_accepted(self):
        record = validate_trade_record({**SAMPLE_TRADE, 'market_regime': MarketRegime.TRENDING})
        assert record.market_regime == 'trending'

    @pytest.mark.parametrize('field,value', [
        ('pnl', float('nan')),
        ('exit_price', float('inf')),
        ('quantity', 2e8),
        ('pnl_percent', -1e9),
        ('signal_confidence', float('nan')),
    ])
    def test_bad_numbers_rejected(self, field, value):
        with pytest.raises(InvalidInputError):
            validate_trade_record({**SAMPLE_TRADE, field: value})

    @pytest.mark.parametrize('field', ['pnl', 'entry_index', 'exit_index', 'symbol', 'exit_reason'])
    def test_missing_field_rejected(self, field):
        raw = dict(SAMPLE_TRADE)
        del raw[field]
        with pytest.raises(InvalidInputError):
            validate_trade_record(raw)

    @pytest.mark.parametrize('field', ['symbol', 'exit_reason'])
    def test_empty_text_rejected(self, field):
        with pytest.raises(InvalidInputError):
            validate_trade_record({**SAMPLE_TRADE, field: ''})

    @pytest.mark.parametrize('field,value', [
        ('exit_index', 10 ** 12),
        ('entry_index', -(10 ** 9)),
        ('exit_index', 10 ** 400),
    ])
    def test_out_of_range_index_rejected(self, field, value):
        with pytest.raises(InvalidInputError):
            validate_trade_record({**SAMPLE_TRADE, field: value})

    def test_history_skips_incomplete_records(self):
        history = TradeHistory()
        missing_indexes = {k: v for k, v in SAMPLE_TRADE.items() if k not in ('entry_index', 'exit_index')}
        assert history.append(missing_indexes) is False
        assert history.append({**SAMPLE_TRADE, 'symbol': ''}) is False
        assert history.append({**SAMPLE_TRADE, 'exit_index': 10 ** 12}) is False
        assert len(history) == 0

    def test_breakeven_is_not_a_winner(self):
        assert not make_trade(0.0).is_winner


@pytest.mark.unit
class TestTradeHistory:

    def test_append_valid(self):
        history = TradeHistory()
        assert history.append(SAMPLE_TRADE) is True
        assert len(history) == 1
        assert history[0].pnl == pytest.approx(8.4)

    def test_append_invalid_is_logged_and_skipped(self, caplog):
        history = TradeHistory()
        with caplog.at_level(logging.WARNING, logger='bitflow.utils.trade_tracker'):
            assert history.append({**SAMPLE_TRADE, 'pnl': math.nan}) is False
        assert len(history) == 0
        assert '[TRADES] Rejected' in caplog.text

    def test_records_are_read_only(self):
        history = TradeHistory([make_trade(1.0)])
        assert isinstance(history.records, tuple)
        with pytest.raises(AttributeError):
            history.records.append(make_trade(2.0))

    def test_recent(self):
        history = TradeHistory(make_trade(float(i)) for i in range(1, 6))
        assert [t.pnl for t in history.recent(2)] == [4.0, 5.0]
        assert history.recent(0) == ()
        assert len(history.recent(10)) == 5

    def test_sink_called_after_append(self):
        received = []
        history = TradeHistory([make_trade(1.0)], sink=received.append)
        assert received == []

        history.append(make_trade(2.0))
        history.append({**SAMPLE_TRADE, 'pnl': math.inf})
        assert [t.pnl for t in received] == [2.0]

    def test_sink_failure_does_not_lose_record(self, caplog):
        def broken_sink(record):
            raise IOError('disk full')

        history = TradeHistory(sink=broken_sink)
        with caplog.at_level(logging.ERROR, logger='bitflow.utils.trade_tracker'):
            assert history.append(make_trade(3.0)) is True
        assert len(history) == 1
        assert 'disk full' in caplog.text


@pytest.mark.unit
class TestTradeStats:

    def test_defaults_when_empty(self):
        stats = summarize_trade_stats([])
        assert stats == TradeStats()
        assert stats.win_rate == 0.5
        assert stats.avg_win == 0.02
        assert stats.avg_loss == 0.015

    def test_summary(self):
        trades = [make_trade(2.0), make_trade(-1.0), make_trade(4.0), make_trade(0.0)]
        stats = summarize_trade_stats(trades)
        assert stats.total_trades == 4
        assert stats.win_rate == pytest.approx(0.5)
        assert stats.avg_win == pytest.approx(0.03)
        assert stats.avg_loss == pytest.approx(0.01)
        assert stats.profit_factor == pytest.approx(6.0)

    def test_window(self):
        trades = [make_trade(-1.0)] * 5 + [make_trade(2.0)] * 2
        stats = summarize_trade_stats(trades, window=2)
        assert stats.win_rate == 1.0
        assert stats.avg_loss == 0.015

    def test_profit_factor(self):
        assert profit_factor([]) == 0.0
        assert math.isinf(profit_factor([make_trade(1.0)]))
        assert profit_factor([make_trade(3.0), make_trade(-1.5)]) == pytest.approx(2.0)

    def test_outcomes(self):
        trades = [make_trade(1.0), make_trade(-1.0), make_trade(0.0)]
        assert trade_outcomes(trades) == [True, False, False]
