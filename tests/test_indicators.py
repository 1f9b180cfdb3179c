"""
Tests for the technical indicator engine.
"""

import pytest

from market_insight.analysis.indicators import (
    bollinger_percent_b,
    ema,
    ema_series,
    generate_technical_indicators,
    macd,
    momentum,
    returns_volatility,
    rsi,
    sma,
    sma_series,
)
from market_insight.data.models import Signal
from tests.conftest import make_candles


class TestSMA:
    def test_mean_of_window(self):
        closes = [1, 2, 3, 4, 5]
        assert sma(closes, 3, 4) == pytest.approx(4.0)
        assert sma(closes, 5, 4) == pytest.approx(3.0)

    def test_sentinel_before_window_fills(self):
        assert sma([1, 2, 3], 5, 2) == 0.0
        assert sma([1, 2, 3], 3, 1) == 0.0

    def test_series_aligned_by_date(self):
        candles = make_candles([float(100 + i) for i in range(60)])
        points = sma_series(candles)
        assert len(points) == 60
        assert [p.date for p in points] == [c.date for c in candles]
        assert points[8].sma10 == 0.0
        assert points[9].sma10 == pytest.approx(104.5)
        assert points[18].sma20 == 0.0
        assert points[19].sma20 == pytest.approx(109.5)
        assert points[48].sma50 == 0.0
        assert points[59].sma50 == pytest.approx(134.5)

    def test_no_lookahead(self):
        closes = [float(100 + i) for i in range(30)]
        before = sma(closes, 10, 15)
        closes[20] = 10_000.0
        assert sma(closes, 10, 15) == before


class TestEMA:
    def test_seeded_with_sma(self):
        series = ema_series([2, 4, 6, 8], 3)
        assert series[0] == pytest.approx(4.0)
        assert series[1] == pytest.approx(6.0)

    def test_too_short(self):
        assert ema_series([1, 2], 5) == []

    def test_latest_value(self):
        assert ema([2, 4, 6, 8], 3) == pytest.approx(6.0)
        assert ema([1, 2], 5) == 0.0


class TestRSI:
    def test_all_gains_is_100(self):
        assert rsi([float(i) for i in range(1, 40)]) == 100.0

    def test_short_series_neutral(self):
        assert rsi([1.0, 2.0, 3.0]) == 50.0

    def test_bounded(self):
        closes = [100, 102, 99, 101, 98, 97, 103, 104, 100, 99, 98, 101, 102, 100, 99, 97]
        value = rsi(closes)
        assert 0.0 <= value <= 100.0

    def test_all_losses_is_zero(self):
        assert rsi([float(i) for i in range(40, 1, -1)]) == pytest.approx(0.0)


class TestMACD:
    def test_rising_series_bullish(self):
        closes = [100 + i * 90 / 89 for i in range(90)]
        value, signal = macd(closes)
        assert value > 0
        assert signal is Signal.BULLISH

    def test_falling_series_bearish(self):
        closes = [190 - i for i in range(90)]
        value, signal = macd(closes)
        assert value < 0
        assert signal is Signal.BEARISH

    def test_too_short_neutral(self):
        assert macd([1.0] * 10) == (0.0, Signal.NEUTRAL)


class TestBollinger:
    def test_flat_series_neutral(self):
        assert bollinger_percent_b([50.0] * 30) == (0.5, Signal.NEUTRAL)

    def test_spike_is_bearish(self):
        closes = [50.0] * 19 + [60.0]
        value, signal = bollinger_percent_b(closes)
        assert value > 0.8
        assert signal is Signal.BEARISH


class TestVolatilityMomentum:
    def test_constant_prices_zero_volatility(self):
        assert returns_volatility([10.0] * 20) == 0.0

    def test_momentum_percent(self):
        closes = [100.0] * 10 + [110.0]
        assert momentum(closes) == pytest.approx(10.0)

    def test_momentum_short(self):
        assert momentum([1.0, 2.0]) == 0.0


class TestGenerateTechnicalIndicators:
    def test_empty_below_minimum(self):
        candles = make_candles([float(100 + i) for i in range(29)])
        assert generate_technical_indicators(candles) == []

    def test_full_set(self, rising_candles):
        indicators = generate_technical_indicators(rising_candles)
        names = [i.name for i in indicators]
        assert names == ["RSI", "MACD", "Bollinger Bands", "Volatility", "Momentum"]

        by_name = {i.name: i for i in indicators}
        assert by_name["RSI"].value == 100.0
        assert by_name["RSI"].signal is Signal.BEARISH
        assert by_name["MACD"].signal is Signal.BULLISH
        assert by_name["Momentum"].signal is Signal.BULLISH
        assert by_name["Volatility"].signal is Signal.NEUTRAL
