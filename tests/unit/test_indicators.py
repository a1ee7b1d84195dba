"""Tests for the indicator layer."""
import math

import numpy as np
import pandas as pd
import pytest

from bitflow.indicators import (
    atr,
    bollinger_bands,
    compute_snapshot,
    ema,
    macd,
    return_volatility,
    rsi,
    sma,
    volume_ratio,
)
from tests.fixtures.sample_data import create_uptrend_closes, make_series


@pytest.mark.unit
class TestMovingAverages:

    def test_sma_values(self):
        result = sma(pd.Series([1.0, 2.0, 3.0, 4.0, 5.0]), 3)
        assert math.isnan(result.iloc[1])
        assert result.iloc[2] == pytest.approx(2.0)
        assert result.iloc[4] == pytest.approx(4.0)

    def test_ema_undefined_before_period(self):
        result = ema(pd.Series(np.arange(1.0, 11.0)), 5)
        assert result.iloc[:4].isna().all()
        assert not math.isnan(result.iloc[4])

    def test_ema_of_constant_is_constant(self):
        result = ema(pd.Series([50.0] * 30), 10)
        assert result.iloc[-1] == pytest.approx(50.0)

    def test_ema_is_causal(self):
        closes = pd.Series(create_uptrend_closes(60))
        full = ema(closes, 20)
        partial = ema(closes.iloc[:40], 20)
        assert full.iloc[39] == pytest.approx(partial.iloc[-1])


@pytest.mark.unit
class TestRSI:

    def test_all_gains_reads_100(self):
        result = rsi(pd.Series(np.arange(1.0, 40.0)), 14)
        assert result.iloc[-1] == pytest.approx(100.0)

    def test_all_losses_reads_0(self):
        result = rsi(pd.Series(np.arange(40.0, 1.0, -1.0)), 14)
        assert result.iloc[-1] == pytest.approx(0.0)

    def test_flat_reads_50(self):
        result = rsi(pd.Series([10.0] * 30), 14)
        assert result.iloc[-1] == pytest.approx(50.0)

    def test_bounded(self, sample_df):
        result = rsi(sample_df['Close'], 14).dropna()
        assert ((result >= 0) & (result <= 100)).all()


@pytest.mark.unit
class TestMACD:

    def test_columns_and_warmup(self, sample_df):
        result = macd(sample_df['Close'])
        assert list(result.columns) == ['MACD', 'MACD_SIGNAL', 'MACD_HIST']
        assert result['MACD'].iloc[:25].isna().all()
        assert not math.isnan(result['MACD'].iloc[25])
        assert not math.isnan(result['MACD_SIGNAL'].iloc[-1])

    def test_histogram_is_difference(self, sample_df):
        result = macd(sample_df['Close']).dropna()
        np.testing.assert_allclose(result['MACD_HIST'], result['MACD'] - result['MACD_SIGNAL'])

    def test_uptrend_macd_positive(self):
        result = macd(pd.Series(create_uptrend_closes(100)))
        assert result['MACD'].iloc[-1] > 0


@pytest.mark.unit
class TestVolatility:

    def test_atr_flat_candles_constant_price(self):
        series = make_series([100.0] * 30)
        assert atr(series.to_frame(), 14).iloc[-1] == pytest.approx(0.0)

    def test_atr_positive(self, sample_df):
        value = atr(sample_df, 14).iloc[-1]
        assert value > 0

    def test_bollinger_ordering(self, sample_df):
        bands = bollinger_bands(sample_df['Close']).dropna()
        assert (bands['BB_UPPER'] >= bands['BB_MIDDLE']).all()
        assert (bands['BB_MIDDLE'] >= bands['BB_LOWER']).all()

    def test_return_volatility_constant_is_zero(self):
        assert return_volatility(np.array([5.0] * 25), 20) == 0.0

    def test_return_volatility_short_window(self):
        assert return_volatility(np.array([5.0]), 20) == 0.0

    def test_return_volatility_alternating(self):
        closes = np.array([100.0, 110.0] * 15)
        expected = math.sqrt(19 * math.log(1.1) ** 2 / 20)
        assert return_volatility(closes, 20) == pytest.approx(expected)


@pytest.mark.unit
class TestVolume:

    def test_ratio_includes_current_bar(self):
        volumes = np.array([1.0] * 19 + [3.0])
        assert volume_ratio(volumes, 20) == pytest.approx(3.0 / 1.1)

    def test_ratio_no_volume(self):
        assert volume_ratio(np.zeros(20), 20) == 0.0
        assert volume_ratio(np.array([]), 20) == 0.0


@pytest.mark.unit
class TestSnapshot:

    def test_short_series_has_no_crossover_data(self):
        snapshot = compute_snapshot(make_series([100.0] * 10))
        assert not snapshot.has_crossover_data
        assert math.isnan(snapshot.ma_slow)

    def test_full_series(self, sample_series):
        snapshot = compute_snapshot(sample_series, rsi_period=10, ma_fast_period=8, ma_slow_period=21)
        assert snapshot.has_crossover_data
        assert snapshot.rsi_period == 10
        assert snapshot.ma_fast_period == 8
        assert snapshot.close == pytest.approx(sample_series.closes[-1])
        assert snapshot.ma_fast == pytest.approx(sample_series.closes[-8:].mean())

    def test_average_volume_includes_current(self):
        series = make_series([100.0] * 40, volume=10.0)
        snapshot = compute_snapshot(series)
        assert snapshot.avg_volume == pytest.approx(10.0)
        assert snapshot.volume == pytest.approx(10.0)
