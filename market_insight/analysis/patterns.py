"""
Chart pattern detection over a canonical candle series.

Finds support/resistance levels from local extrema and a set of named
multi-candle formations (head-and-shoulders, double top/bottom, triangles,
flags, pennants, wedges, cup-and-handle).  Each named pattern comes from its
own geometric heuristic over a trailing sub-window and carries a fixed base
strength and a directional signal.  Overlapping matches of different types
are all kept.

Indices on every :class:`PatternMatch` refer to positions in the full series
passed to :func:`detect_patterns`, not to the sub-window.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

import numpy as np

from market_insight.data.models import Candle, PatternMatch, PatternType, Signal

logger = logging.getLogger(__name__)

Detector = Callable[[Sequence[Candle]], list[PatternMatch]]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _window(candles: Sequence[Candle], size: int) -> tuple[int, Sequence[Candle]]:
    """Trailing sub-window and its offset into the full series."""
    sub = candles[-size:]
    return len(candles) - len(sub), sub


def _match(
    candles: Sequence[Candle],
    pattern_type: PatternType,
    signal: Signal,
    strength: float,
    start: int,
    end: int,
    description: str,
    level: float | None = None,
) -> PatternMatch:
    return PatternMatch(
        pattern_type=pattern_type,
        signal=signal,
        strength=strength,
        level=level,
        start_index=start,
        end_index=end,
        start_date=candles[start].date,
        end_date=candles[end].date,
        description=description,
    )


def _slope(values: Sequence[float]) -> float:
    """OLS slope of *values* against their position."""
    if len(values) < 2:
        return 0.0
    return float(np.polyfit(np.arange(len(values)), np.asarray(values, dtype=float), 1)[0])


def _is_horizontal(values: Sequence[float], tolerance: float = 0.02) -> bool:
    if len(values) < 2:
        return False
    mean = float(np.mean(values))
    return max(abs(v - mean) / mean for v in values) < tolerance


def _relative_slope(values: Sequence[float]) -> float:
    """Slope per step as a fraction of the mean level."""
    mean = float(np.mean(values)) if len(values) else 0.0
    return _slope(values) / mean if mean else 0.0


def _is_rising(values: Sequence[float], tolerance: float = 1e-4) -> bool:
    return _relative_slope(values) > tolerance


def _is_falling(values: Sequence[float], tolerance: float = 1e-4) -> bool:
    return _relative_slope(values) < -tolerance


def find_peaks(highs: Sequence[float], distance: int) -> list[int]:
    """Indices whose high is strictly above the *distance* highs on each side."""
    return [
        i for i in range(distance, len(highs) - distance)
        if all(highs[j] < highs[i] for j in range(i - distance, i + distance + 1) if j != i)
    ]


def find_troughs(lows: Sequence[float], distance: int) -> list[int]:
    """Indices whose low is strictly below the *distance* lows on each side."""
    return [
        i for i in range(distance, len(lows) - distance)
        if all(lows[j] > lows[i] for j in range(i - distance, i + distance + 1) if j != i)
    ]


def cluster_levels(levels: Sequence[float], tolerance: float = 0.02) -> list[float]:
    """Merge levels within *tolerance* of their neighbour; returns cluster means."""
    if not levels:
        return []
    ordered = sorted(levels)
    clusters: list[list[float]] = [[ordered[0]]]
    for level in ordered[1:]:
        last = clusters[-1][-1]
        if (level - last) / last < tolerance:
            clusters[-1].append(level)
        else:
            clusters.append([level])
    return [sum(c) / len(c) for c in clusters]


def level_strength(level: float, candles: Sequence[Candle], resistance: bool) -> float:
    """0.4 base plus 0.05 per candle touching the level within 1%, capped at 0.95."""
    threshold = level * 0.01
    touches = sum(
        1 for c in candles
        if abs((c.high if resistance else c.low) - level) < threshold
    )
    return min(0.95, 0.4 + (touches / 10) * 0.5)


def find_support_resistance(
    candles: Sequence[Candle], *, radius: int = 2, max_levels: int = 3,
) -> tuple[list[float], list[float]]:
    """Support levels below and resistance levels above the last close.

    A support candidate's low is strictly below the lows of the *radius*
    candles on each side (symmetric rule on highs for resistance).  Nearby
    candidates are clustered, then the *max_levels* nearest to the last close
    are kept on each side, closest first.
    """
    if len(candles) < 2 * radius + 1:
        return [], []
    lows = [c.low for c in candles]
    highs = [c.high for c in candles]
    last = candles[-1].close

    supports = cluster_levels([lows[i] for i in find_troughs(lows, radius)])
    resistances = cluster_levels([highs[i] for i in find_peaks(highs, radius)])

    below = sorted((lv for lv in supports if lv < last), reverse=True)[:max_levels]
    above = sorted(lv for lv in resistances if lv > last)[:max_levels]
    return below, above


# ---------------------------------------------------------------------------
# Individual detectors
# ---------------------------------------------------------------------------

def _detect_support_resistance(candles: Sequence[Candle], *, window: int = 90) -> list[PatternMatch]:
    offset, recent = _window(candles, window)
    support, resistance = find_support_resistance(recent)
    price = recent[-1].close
    start, end = offset, len(candles) - 1

    results: list[PatternMatch] = []
    for level in resistance:
        near = abs(price - level) / level < 0.03
        results.append(_match(
            candles, PatternType.RESISTANCE,
            Signal.BEARISH if near else Signal.NEUTRAL,
            level_strength(level, recent, resistance=True),
            start, end,
            f"Resistance level detected at ${level:.2f}" + (" (price at resistance)" if near else ""),
            level=level,
        ))
    for level in support:
        near = abs(price - level) / level < 0.03
        results.append(_match(
            candles, PatternType.SUPPORT,
            Signal.BULLISH if near else Signal.NEUTRAL,
            level_strength(level, recent, resistance=False),
            start, end,
            f"Support level detected at ${level:.2f}" + (" (price at support)" if near else ""),
            level=level,
        ))
    return results


def _detect_head_and_shoulders(candles: Sequence[Candle], *, window: int = 60) -> list[PatternMatch]:
    offset, recent = _window(candles, window)
    highs = [c.high for c in recent]
    peaks = find_peaks(highs, 5)

    for left, head, right in zip(peaks, peaks[1:], peaks[2:]):
        if not (highs[head] > highs[left] and highs[head] > highs[right]):
            continue
        if abs(highs[left] - highs[right]) / highs[left] < 0.1:
            return [_match(
                candles, PatternType.HEAD_AND_SHOULDERS, Signal.BEARISH, 0.8,
                offset + left, offset + right,
                "Head and Shoulders pattern detected, suggesting a potential bearish reversal",
            )]
    return []


def _detect_double_top(candles: Sequence[Candle], *, window: int = 40) -> list[PatternMatch]:
    offset, recent = _window(candles, window)
    highs = [c.high for c in recent]
    peaks = find_peaks(highs, 3)

    for first, second in zip(peaks, peaks[1:]):
        if second - first >= 5 and abs(highs[first] - highs[second]) / highs[first] < 0.03:
            return [_match(
                candles, PatternType.DOUBLE_TOP, Signal.BEARISH, 0.75,
                offset + first, offset + second,
                "Double Top pattern detected, suggesting a potential bearish reversal",
                level=max(highs[first], highs[second]),
            )]
    return []


def _detect_double_bottom(candles: Sequence[Candle], *, window: int = 40) -> list[PatternMatch]:
    offset, recent = _window(candles, window)
    lows = [c.low for c in recent]
    troughs = find_troughs(lows, 3)

    for first, second in zip(troughs, troughs[1:]):
        if second - first >= 5 and abs(lows[first] - lows[second]) / lows[first] < 0.03:
            return [_match(
                candles, PatternType.DOUBLE_BOTTOM, Signal.BULLISH, 0.75,
                offset + first, offset + second,
                "Double Bottom pattern detected, suggesting a potential bullish reversal",
                level=min(lows[first], lows[second]),
            )]
    return []


def _detect_triangles(candles: Sequence[Candle], *, window: int = 30) -> list[PatternMatch]:
    offset, recent = _window(candles, window)
    highs = [c.high for c in recent]
    lows = [c.low for c in recent]
    high_idx = find_peaks(highs, 3)[-4:]
    low_idx = find_troughs(lows, 3)[-4:]
    if len(high_idx) < 2 or len(low_idx) < 2:
        return []

    high_vals = [highs[i] for i in high_idx]
    low_vals = [lows[i] for i in low_idx]
    highs_falling = _is_falling(high_vals)
    lows_rising = _is_rising(low_vals)
    start = offset + min(high_idx[0], low_idx[0])
    end = len(candles) - 1

    results: list[PatternMatch] = []
    if _is_horizontal(low_vals) and highs_falling:
        results.append(_match(
            candles, PatternType.DESCENDING_TRIANGLE, Signal.BEARISH, 0.7, start, end,
            "Descending Triangle pattern detected, suggesting a continuation of bearish trend",
            level=float(np.mean(low_vals)),
        ))
    if _is_horizontal(high_vals) and lows_rising:
        results.append(_match(
            candles, PatternType.ASCENDING_TRIANGLE, Signal.BULLISH, 0.7, start, end,
            "Ascending Triangle pattern detected, suggesting a continuation of bullish trend",
            level=float(np.mean(high_vals)),
        ))
    if highs_falling and lows_rising:
        results.append(_match(
            candles, PatternType.SYMMETRICAL_TRIANGLE, Signal.NEUTRAL, 0.6, start, end,
            "Symmetrical Triangle pattern detected, suggesting a potential breakout in either direction",
        ))
    return results


def _pole(candles: Sequence[Candle], pole_bars: int = 10, flag_bars: int = 10):
    """Split the last ``pole_bars + flag_bars`` candles into pole and flag sections.

    Returns ``(pole_change, pole_range, pole, flag)`` or ``None`` if too short.
    """
    if len(candles) < pole_bars + flag_bars:
        return None
    pole = candles[-(pole_bars + flag_bars):-flag_bars]
    flag = candles[-flag_bars:]
    # Pole runs from the first pole close to the first flag close.
    change = (flag[0].close - pole[0].close) / pole[0].close
    pole_range = max(c.high for c in pole) - min(c.low for c in pole)
    return change, pole_range, pole, flag


def _detect_flag(candles: Sequence[Candle]) -> list[PatternMatch]:
    split = _pole(candles)
    if split is None:
        return []
    change, pole_range, _, flag = split
    if pole_range <= 0 or abs(change) <= 0.05:
        return []

    flag_range = max(c.high for c in flag) - min(c.low for c in flag)
    if flag_range >= pole_range * 0.4:
        return []

    bullish = change > 0
    start = len(candles) - 20
    return [_match(
        candles, PatternType.FLAG, Signal.BULLISH if bullish else Signal.BEARISH, 0.72,
        start, len(candles) - 1,
        f"{'Bull' if bullish else 'Bear'} flag detected: {change:+.1%} pole followed by tight consolidation",
    )]


def _detect_pennant(candles: Sequence[Candle]) -> list[PatternMatch]:
    split = _pole(candles)
    if split is None:
        return []
    change, pole_range, _, flag = split
    if pole_range <= 0 or abs(change) <= 0.05:
        return []

    if not (_is_falling([c.high for c in flag]) and _is_rising([c.low for c in flag])):
        return []

    bullish = change > 0
    return [_match(
        candles, PatternType.PENNANT, Signal.BULLISH if bullish else Signal.BEARISH, 0.65,
        len(candles) - 20, len(candles) - 1,
        f"{'Bullish' if bullish else 'Bearish'} pennant detected: {change:+.1%} pole into converging consolidation",
    )]


def _detect_wedge(candles: Sequence[Candle], *, window: int = 60) -> list[PatternMatch]:
    offset, recent = _window(candles, window)
    highs = [c.high for c in recent]
    lows = [c.low for c in recent]
    high_idx = find_peaks(highs, 3)[-3:]
    low_idx = find_troughs(lows, 3)[-3:]
    if len(high_idx) < 2 or len(low_idx) < 2:
        return []

    high_spread = highs[high_idx[-1]] - highs[high_idx[0]]
    low_spread = lows[low_idx[-1]] - lows[low_idx[0]]
    start = offset + min(high_idx[0], low_idx[0])
    end = len(candles) - 1

    if high_spread > 0 and low_spread > 0 and abs(high_spread) < abs(low_spread):
        return [_match(
            candles, PatternType.WEDGE, Signal.BEARISH, 0.68, start, end,
            "Rising Wedge pattern detected, suggesting a potential bearish breakdown",
        )]
    if high_spread < 0 and low_spread < 0 and abs(low_spread) < abs(high_spread):
        return [_match(
            candles, PatternType.WEDGE, Signal.BULLISH, 0.68, start, end,
            "Falling Wedge pattern detected, suggesting a potential bullish breakout",
        )]
    return []


def _detect_cup_and_handle(
    candles: Sequence[Candle],
    *,
    cup_window: int = 60,
    handle_window: int = 15,
    tolerance: float = 0.1,
    min_depth_pct: float = 0.12,
    max_handle_pullback_pct: float = 0.1,
) -> list[PatternMatch]:
    """Rounded cup with similar rims, then a shallow, flat-to-drifting handle."""
    span = cup_window + handle_window
    if len(candles) < span:
        return []
    offset, recent = _window(candles, span)
    closes = np.asarray([c.close for c in recent], dtype=float)
    cup, handle = closes[:cup_window], closes[cup_window:]

    mid = cup_window // 2
    left_peak, right_peak = float(cup[:mid].max()), float(cup[mid:].max())
    rim = (left_peak + right_peak) / 2
    if abs(left_peak - right_peak) / rim > tolerance:
        return []

    depth_pct = (rim - float(cup.min())) / rim
    if depth_pct < min_depth_pct:
        return []

    # Handle drifts sideways or slightly down, relative to the rim price.
    handle_slope = _slope(handle.tolist()) / rim
    if not (-0.01 <= handle_slope <= 0.002):
        return []

    pullback = (rim - float(handle.min())) / rim
    if pullback < 0 or pullback > max_handle_pullback_pct:
        return []
    if float(handle.max()) > rim * (1 + tolerance):
        return []

    return [_match(
        candles, PatternType.CUP_AND_HANDLE, Signal.BULLISH, 0.76,
        offset, len(candles) - 1,
        f"Cup and Handle pattern detected: {depth_pct:.0%} deep cup with rim near ${rim:.2f}",
        level=rim,
    )]


_DETECTORS: list[tuple[str, Detector]] = [
    ("head and shoulders", _detect_head_and_shoulders),
    ("double top", _detect_double_top),
    ("double bottom", _detect_double_bottom),
    ("triangle", _detect_triangles),
    ("flag", _detect_flag),
    ("pennant", _detect_pennant),
    ("wedge", _detect_wedge),
    ("cup and handle", _detect_cup_and_handle),
    ("support/resistance", _detect_support_resistance),
]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def detect_patterns(candles: Sequence[Candle]) -> list[PatternMatch]:
    """Run every detector; returns ``[]`` when there is too little history.

    A detector that fails is logged and skipped; the others still run.
    """
    from market_insight.infra.config import get_settings

    if len(candles) < get_settings().pattern_min_candles:
        return []

    patterns: list[PatternMatch] = []
    for name, detector in _DETECTORS:
        try:
            patterns.extend(detector(candles))
        except Exception as exc:
            logger.warning("%s detection failed: %s", name, exc)
    return patterns
