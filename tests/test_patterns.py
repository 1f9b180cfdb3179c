"""
Tests for the chart pattern detector.
"""

import math
from unittest.mock import patch

import pytest

from market_insight.analysis import patterns as mod
from market_insight.analysis.patterns import (
    cluster_levels,
    detect_patterns,
    find_peaks,
    find_support_resistance,
    find_troughs,
    level_strength,
)
from market_insight.data.models import PatternType, Signal
from tests.conftest import make_candles, make_hl_candles


def _by_type(patterns, pattern_type):
    return [p for p in patterns if p.pattern_type is pattern_type]


class TestExtrema:
    def test_peaks_strict(self):
        highs = [1, 2, 5, 2, 1, 3, 3, 1]
        assert find_peaks(highs, 1) == [2]

    def test_plateau_is_not_a_trough(self):
        assert find_troughs([100, 100, 90, 90, 100, 100], 1) == []

    def test_troughs(self):
        assert find_troughs([5, 4, 1, 4, 5, 2, 5], 1) == [2, 5]

    def test_cluster_levels(self):
        assert cluster_levels([110, 100, 101]) == pytest.approx([100.5, 110])
        assert cluster_levels([]) == []


class TestSupportResistance:
    @pytest.fixture
    def levels_candles(self):
        highs = [110.0] * 25
        lows = [100.0] * 25
        for i, v in {4: 90.0, 10: 80.0, 16: 95.0, 20: 70.0}.items():
            lows[i] = v
        for i, v in {6: 120.0, 12: 130.0, 18: 125.0, 22: 140.0}.items():
            highs[i] = v
        return make_hl_candles(highs, lows)

    def test_nearest_three_each_side(self, levels_candles):
        support, resistance = find_support_resistance(levels_candles)
        assert levels_candles[-1].close == 105.0
        assert support == pytest.approx([95.0, 90.0, 80.0])
        assert resistance == pytest.approx([120.0, 125.0, 130.0])

    def test_levels_sit_on_correct_side(self, levels_candles):
        support, resistance = find_support_resistance(levels_candles)
        last = levels_candles[-1].close
        assert all(lv < last for lv in support)
        assert all(lv > last for lv in resistance)

    def test_too_short(self):
        assert find_support_resistance(make_candles([1.0, 2.0, 3.0])) == ([], [])

    def test_level_strength_capped(self):
        candles = make_hl_candles([110.0] * 30, [100.0] * 30)
        assert level_strength(100.0, candles, resistance=False) == 0.95
        assert level_strength(50.0, candles, resistance=False) == pytest.approx(0.4)


class TestDetectPatterns:
    def test_empty_below_minimum(self):
        candles = make_candles([float(100 + (i % 3)) for i in range(29)])
        assert detect_patterns(candles) == []

    def test_double_bottom_indices_refer_to_full_series(self):
        lows = [100.0] * 60
        lows[30] = 90.0
        lows[45] = 90.5
        highs = [lv + 5 for lv in lows]
        candles = make_hl_candles(highs, lows)

        matches = _by_type(detect_patterns(candles), PatternType.DOUBLE_BOTTOM)
        assert len(matches) == 1
        m = matches[0]
        assert m.signal is Signal.BULLISH
        assert m.strength == 0.75
        assert (m.start_index, m.end_index) == (30, 45)
        assert m.start_date == candles[30].date
        assert m.end_date == candles[45].date

    def test_head_and_shoulders(self):
        highs = [110.0] * 60
        highs[10], highs[25], highs[40] = 120.0, 130.0, 121.0
        lows = [h - 15 for h in highs]
        candles = make_hl_candles(highs, lows)

        matches = _by_type(detect_patterns(candles), PatternType.HEAD_AND_SHOULDERS)
        assert len(matches) == 1
        assert matches[0].signal is Signal.BEARISH
        assert matches[0].strength == 0.8
        assert (matches[0].start_index, matches[0].end_index) == (10, 40)

    def test_bull_flag(self):
        closes = [100.0] * 21 + [100.0 + 2 * i for i in range(1, 10)] + [120.0, 119.5] * 5
        candles = make_candles(closes)

        matches = _by_type(detect_patterns(candles), PatternType.FLAG)
        assert len(matches) == 1
        assert matches[0].signal is Signal.BULLISH
        assert matches[0].strength == 0.72

    def test_strengths_in_range(self, rising_candles):
        for p in detect_patterns(rising_candles):
            assert 0.0 <= p.strength <= 1.0
            assert 0 <= p.start_index <= p.end_index < len(rising_candles)

    def test_failing_detector_is_skipped(self, rising_candles):
        def boom(candles):
            raise RuntimeError("broken detector")

        sr = dict(mod._DETECTORS)["support/resistance"]
        with patch.object(mod, "_DETECTORS", [("boom", boom), ("support/resistance", sr)]):
            result = detect_patterns(rising_candles)
        assert result == sr(rising_candles)


def _swings(size, base_high, base_low, peaks, troughs, *, pad=10):
    """Flat candles with explicit swing highs/lows at window positions, after *pad* lead-in candles."""
    highs = [base_high] * (pad + size)
    lows = [base_low] * (pad + size)
    for i, v in peaks.items():
        highs[pad + i] = v
    for i, v in troughs.items():
        lows[pad + i] = v
    return make_hl_candles(highs, lows)


_TRIANGLE_PEAKS = (4, 11, 18, 25)
_TRIANGLE_TROUGHS = (3, 10, 17, 24)


class TestTriangles:
    def _candles(self, base_high, base_low, peak_values, trough_values):
        return _swings(
            30, base_high, base_low,
            dict(zip(_TRIANGLE_PEAKS, peak_values)),
            dict(zip(_TRIANGLE_TROUGHS, trough_values)),
        )

    def test_flat_top_rising_lows_is_only_ascending(self):
        candles = self._candles(99.0, 98.5, [100.3] * 4, [96.2, 96.8, 97.4, 98.0])
        matches = mod._detect_triangles(candles)
        assert [m.pattern_type for m in matches] == [PatternType.ASCENDING_TRIANGLE]
        m = matches[0]
        assert m.signal is Signal.BULLISH
        assert m.strength == 0.7
        assert m.level == pytest.approx(100.3)
        assert (m.start_index, m.end_index) == (13, 39)

    def test_flat_bottom_falling_highs_is_descending(self):
        candles = self._candles(98.8, 97.0, [101.0, 100.4, 99.8, 99.2], [96.0] * 4)
        matches = mod._detect_triangles(candles)
        assert [m.pattern_type for m in matches] == [PatternType.DESCENDING_TRIANGLE]
        assert matches[0].signal is Signal.BEARISH
        assert matches[0].strength == 0.7
        assert matches[0].level == pytest.approx(96.0)
        assert (matches[0].start_index, matches[0].end_index) == (13, 39)

    def test_converging_lines_are_symmetrical(self):
        candles = self._candles(97.8, 97.5, [110.0, 106.0, 102.0, 98.0], [86.0, 90.0, 94.0, 97.0])
        matches = mod._detect_triangles(candles)
        assert [m.pattern_type for m in matches] == [PatternType.SYMMETRICAL_TRIANGLE]
        assert matches[0].signal is Signal.NEUTRAL
        assert matches[0].strength == 0.6
        assert matches[0].level is None
        assert (matches[0].start_index, matches[0].end_index) == (13, 39)

    def test_flat_channel_is_not_a_triangle(self):
        candles = self._candles(99.0, 98.5, [100.3] * 4, [96.2] * 4)
        assert mod._detect_triangles(candles) == []


class TestWedge:
    _PEAKS = (10, 25, 40)
    _TROUGHS = (17, 32, 47)

    def _candles(self, base_high, base_low, peak_values, trough_values):
        return _swings(
            60, base_high, base_low,
            dict(zip(self._PEAKS, peak_values)),
            dict(zip(self._TROUGHS, trough_values)),
        )

    def test_rising_wedge_is_bearish(self):
        candles = self._candles(99.0, 98.0, [100.0, 102.0, 103.0], [90.0, 94.0, 97.0])
        matches = mod._detect_wedge(candles)
        assert len(matches) == 1
        m = matches[0]
        assert m.pattern_type is PatternType.WEDGE
        assert m.signal is Signal.BEARISH
        assert m.strength == 0.68
        assert (m.start_index, m.end_index) == (20, 69)
        assert m.description.startswith("Rising Wedge")

    def test_falling_wedge_is_bullish(self):
        candles = self._candles(95.5, 93.0, [103.0, 100.0, 96.0], [92.0, 91.0, 90.0])
        matches = mod._detect_wedge(candles)
        assert len(matches) == 1
        assert matches[0].signal is Signal.BULLISH
        assert matches[0].strength == 0.68
        assert (matches[0].start_index, matches[0].end_index) == (20, 69)
        assert matches[0].description.startswith("Falling Wedge")

    def test_expanding_range_is_not_a_wedge(self):
        candles = self._candles(99.0, 93.0, [100.0, 102.0, 104.0], [92.0, 91.0, 90.0])
        assert mod._detect_wedge(candles) == []


class TestPennant:
    def _candles(self, flag_lows_step):
        highs = [101.0] * 20
        lows = [99.0] * 20
        for i in range(10):
            mid = 100.0 + 2 * i
            highs.append(mid + 1)
            lows.append(mid - 1)
        for i in range(10):
            highs.append(125.0 - 0.5 * i)
            lows.append(115.0 + flag_lows_step * i)
        return make_hl_candles(highs, lows)

    def test_converging_consolidation_after_pole(self):
        candles = self._candles(0.5)
        matches = mod._detect_pennant(candles)
        assert len(matches) == 1
        m = matches[0]
        assert m.pattern_type is PatternType.PENNANT
        assert m.signal is Signal.BULLISH
        assert m.strength == 0.65
        assert (m.start_index, m.end_index) == (20, 39)
        assert "+20.0%" in m.description

    def test_parallel_channel_is_not_a_pennant(self):
        assert mod._detect_pennant(self._candles(-0.5)) == []


class TestDoubleTop:
    def _candles(self, second_peak):
        highs = [100.0] * 60
        highs[30] = 110.0
        highs[45] = second_peak
        return make_hl_candles(highs, [h - 5 for h in highs])

    def test_matching_peaks(self):
        matches = mod._detect_double_top(self._candles(110.5))
        assert len(matches) == 1
        m = matches[0]
        assert m.pattern_type is PatternType.DOUBLE_TOP
        assert m.signal is Signal.BEARISH
        assert m.strength == 0.75
        assert m.level == 110.5
        assert (m.start_index, m.end_index) == (30, 45)

    def test_peaks_too_far_apart_in_price(self):
        assert mod._detect_double_top(self._candles(120.0)) == []


class TestCupAndHandle:
    def _closes(self, rim, depth):
        half = depth / 2
        cup = [rim - half + half * math.cos(2 * math.pi * i / 59) for i in range(60)]
        handle = [99.0 - 0.1 * i for i in range(15)]
        return [100.0] * 10 + cup + handle

    def test_rounded_cup_with_drifting_handle(self):
        candles = make_candles(self._closes(100.0, 20.0))
        matches = mod._detect_cup_and_handle(candles)
        assert len(matches) == 1
        m = matches[0]
        assert m.pattern_type is PatternType.CUP_AND_HANDLE
        assert m.signal is Signal.BULLISH
        assert m.strength == 0.76
        assert m.level == pytest.approx(100.0)
        assert (m.start_index, m.end_index) == (10, 84)

    def test_shallow_cup_rejected(self):
        candles = make_candles(self._closes(100.0, 5.0))
        assert mod._detect_cup_and_handle(candles) == []
