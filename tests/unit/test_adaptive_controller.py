"""Tests for the adaptive parameter controller."""
import logging

import pytest

from bitflow.agents.adaptive_controller import AdaptiveParameterController, AdaptiveParameters
from tests.fixtures.sample_data import make_history


@pytest.fixture
def controller():
    return AdaptiveParameterController()


def assert_in_bounds(params: AdaptiveParameters):
    assert 7 <= params.rsi_period <= 21
    assert 2 <= params.ma_fast_period <= 15
    assert params.ma_fast_period < params.ma_slow_period <= 30
    assert 0.4 <= params.confidence_threshold <= 0.8


@pytest.mark.unit
class TestAdaptiveParameters:

    def test_defaults(self):
        params = AdaptiveParameters()
        assert params.to_dict() == {
            'rsi_period': 14,
            'ma_fast_period': 10,
            'ma_slow_period': 20,
            'confidence_threshold': 0.6,
        }

    def test_clamped_on_construction(self):
        params = AdaptiveParameters(rsi_period=3, ma_fast_period=40, ma_slow_period=5, confidence_threshold=0.95)
        assert params.rsi_period == 7
        assert params.ma_fast_period == 15
        assert params.ma_slow_period == 16
        assert params.confidence_threshold == 0.8
        assert_in_bounds(params)

    def test_immutable(self):
        params = AdaptiveParameters()
        with pytest.raises(AttributeError):
            params.rsi_period = 10


@pytest.mark.unit
class TestAdaptation:

    def test_too_few_trades_is_noop(self, controller):
        before = controller.parameters
        assert controller.adapt(make_history([False] * 9)) == before

    def test_losing_streak_step(self, controller):
        params = controller.adapt(make_history([False] * 10))
        assert params.rsi_period == 15
        assert params.ma_fast_period == 11
        assert params.ma_slow_period == 22
        assert params.confidence_threshold == 0.65
        assert controller.parameters == params

    def test_good_win_rate_step(self, controller):
        params = controller.adapt(make_history([True] * 13 + [False] * 7))
        assert params.rsi_period == 13
        assert params.ma_fast_period == 10
        assert params.ma_slow_period == 20
        assert params.confidence_threshold == 0.6

    def test_strong_win_rate_loosens_threshold(self, controller):
        params = controller.adapt(make_history([True] * 16 + [False] * 4))
        assert params.rsi_period == 13
        assert params.confidence_threshold == 0.55

    def test_neutral_win_rate_unchanged(self, controller):
        params = controller.adapt(make_history([True, False] * 10))
        assert params == AdaptiveParameters()

    def test_only_trailing_window_counts(self, controller):
        history = make_history([False] * 30 + [True, False] * 10)
        assert controller.adapt(history) == AdaptiveParameters()

    @pytest.mark.parametrize('outcome', [True, False])
    def test_repeated_adaptation_stays_in_bounds(self, controller, outcome):
        history = make_history([outcome] * 20)
        for _ in range(50):
            assert_in_bounds(controller.adapt(history))

        params = controller.parameters
        if outcome:
            assert params.rsi_period == 7
            assert params.confidence_threshold == 0.4
        else:
            assert params.rsi_period == 21
            assert params.ma_fast_period == 15
            assert params.ma_slow_period == 30
            assert params.confidence_threshold == 0.8

    def test_reset(self, controller):
        controller.adapt(make_history([False] * 10))
        assert controller.reset() == AdaptiveParameters()
        assert controller.parameters == AdaptiveParameters()

    def test_adaptation_logged(self, controller, caplog):
        with caplog.at_level(logging.INFO, logger='bitflow.agents.adaptive_controller'):
            controller.adapt(make_history([False] * 10))
        assert '[ADAPTIVE]' in caplog.text


@pytest.mark.unit
class TestPerformanceAlert:

    def test_needs_minimum_trades(self, controller):
        assert controller.performance_alert(make_history([False] * 4)) is None

    def test_critical(self, controller):
        alert = controller.performance_alert(make_history([True] + [False] * 9))
        assert alert.level == 'critical'
        assert alert.win_rate == pytest.approx(0.1)

    def test_warning(self, controller):
        alert = controller.performance_alert(make_history([True, True] + [False] * 8))
        assert alert.level == 'warning'

    def test_info(self, controller):
        alert = controller.performance_alert(make_history([True] * 9 + [False]))
        assert alert.level == 'info'

    def test_normal_win_rate_no_alert(self, controller):
        assert controller.performance_alert(make_history([True, False] * 5)) is None

    def test_uses_last_ten_trades(self, controller):
        history = make_history([True] * 20 + [False] * 10)
        assert controller.performance_alert(history).level == 'critical'
