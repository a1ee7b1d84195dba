"""
Shared pytest fixtures
"""
import pytest

from bitflow.data.bars import PriceSeries
from tests.fixtures.sample_data import (
    create_oscillating_closes,
    create_sample_price_data,
    make_series,
)


@pytest.fixture
def sample_df():
    return create_sample_price_data()


@pytest.fixture
def sample_series(sample_df):
    return PriceSeries.from_frame(sample_df, symbol='BTC/USD', timeframe='5Min')


@pytest.fixture
def flat_series():
    return make_series([100.0] * 120)


@pytest.fixture
def oscillating_series():
    return make_series(create_oscillating_closes(160))
