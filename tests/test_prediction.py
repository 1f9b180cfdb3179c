"""
Tests for the trend-based price prediction.
"""

import pytest

from market_insight.analysis.prediction import (
    default_prediction,
    generate_prediction,
    linear_regression,
)
from tests.conftest import make_candles


class TestLinearRegression:
    def test_perfect_line(self):
        slope, r2 = linear_regression([1.0, 3.0, 5.0, 7.0])
        assert slope == pytest.approx(2.0)
        assert r2 == pytest.approx(1.0)

    def test_flat_series_has_zero_r_squared(self):
        slope, r2 = linear_regression([5.0] * 10)
        assert slope == 0.0
        assert r2 == 0.0

    def test_single_value(self):
        assert linear_regression([5.0]) == (0.0, 0.0)


class TestDefaultPrediction:
    def test_band_around_price(self):
        pred = default_prediction(100.0)
        assert pred.is_default is True
        assert pred.target_price == 100.0
        assert pred.probability == 0.5
        assert pred.support_levels == [pytest.approx(90.0)]
        assert pred.resistance_levels == [pytest.approx(110.0)]


class TestGeneratePrediction:
    def test_empty_uses_current_price(self):
        pred = generate_prediction([], current_price=50.0)
        assert pred.is_default is True
        assert pred.target_price == 50.0

    def test_single_candle_uses_last_close(self):
        pred = generate_prediction(make_candles([42.0]), current_price=50.0)
        assert pred.is_default is True
        assert pred.target_price == 42.0

    def test_empty_without_price(self):
        pred = generate_prediction([])
        assert pred.target_price == 0.0
        assert pred.support_levels == []

    def test_rising_trend(self, rising_candles):
        pred = generate_prediction(rising_candles)
        last = rising_candles[-1].close
        assert pred.is_default is False
        assert pred.target_price == pytest.approx(last * 1.1)
        assert pred.expected_move_pct == pytest.approx(10.0)
        assert 0.9 < pred.probability <= 1.0
        assert pred.timeframe == "1m"

    def test_flat_series_zero_confidence(self):
        pred = generate_prediction(make_candles([100.0] * 40))
        assert pred.target_price == pytest.approx(100.0)
        assert pred.probability == 0.0

    def test_levels_bracket_last_close(self):
        closes = [100, 104, 108, 104, 100, 96, 100, 104, 110, 104, 98, 102, 106, 103]
        candles = make_candles([float(c) for c in closes])
        pred = generate_prediction(candles)
        last = candles[-1].close
        assert all(lv < last for lv in pred.support_levels)
        assert all(lv > last for lv in pred.resistance_levels)
