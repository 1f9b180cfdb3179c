"""
Technical indicators over a closing-price sequence.

Every function looks only at data up to (and including) the point it is
evaluated at; nothing peeks ahead.  Insufficient history yields a neutral
default rather than an error.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np

from market_insight.data.models import Candle, Indicator, SMAPoint, Signal

logger = logging.getLogger(__name__)

SMA_WINDOWS = (10, 20, 50)


# ---------------------------------------------------------------------------
# Moving averages
# ---------------------------------------------------------------------------

def sma(closes: Sequence[float], period: int, index: int) -> float:
    """Mean of the *period* closes ending at *index*, or ``0.0`` before the window fills."""
    if period <= 0 or index < period - 1 or index >= len(closes):
        return 0.0
    window = closes[index - period + 1:index + 1]
    return sum(window) / period


def sma_series(candles: Sequence[Candle]) -> list[SMAPoint]:
    """SMA10 / SMA20 / SMA50 for every candle, aligned by date."""
    closes = [c.close for c in candles]
    short, mid, long_ = SMA_WINDOWS
    return [
        SMAPoint(
            date=c.date,
            close=c.close,
            sma10=sma(closes, short, i),
            sma20=sma(closes, mid, i),
            sma50=sma(closes, long_, i),
        )
        for i, c in enumerate(candles)
    ]


def ema_series(values: Sequence[float], period: int) -> list[float]:
    """EMA seeded with the SMA of the first *period* values.

    Element ``j`` of the result is the EMA at input index ``j + period - 1``.
    """
    if period <= 0 or len(values) < period:
        return []
    k = 2.0 / (period + 1)
    current = sum(values[:period]) / period
    out = [current]
    for price in values[period:]:
        current = (price - current) * k + current
        out.append(current)
    return out


def ema(values: Sequence[float], period: int) -> float:
    series = ema_series(values, period)
    return series[-1] if series else 0.0


# ---------------------------------------------------------------------------
# Oscillators
# ---------------------------------------------------------------------------

def rsi(closes: Sequence[float], period: int = 14) -> float:
    """Simple-average RSI over the trailing *period* deltas, in ``[0, 100]``."""
    if len(closes) < period + 1:
        return 50.0
    deltas = np.diff(np.asarray(closes[-(period + 1):], dtype=float))
    avg_gain = deltas[deltas > 0].sum() / period
    avg_loss = -deltas[deltas < 0].sum() / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100.0 - 100.0 / (1.0 + rs))


def macd_line(closes: Sequence[float], fast: int = 12, slow: int = 26) -> list[float]:
    """MACD values (EMA fast − EMA slow) from index ``slow - 1`` onward."""
    slow_ema = ema_series(closes, slow)
    if not slow_ema:
        return []
    fast_ema = ema_series(closes, fast)[slow - fast:]
    return [f - s for f, s in zip(fast_ema, slow_ema)]


def macd(closes: Sequence[float], window: int = 30) -> tuple[float, Signal]:
    """Current MACD value and its signal.

    A zero-line crossing across the trailing *window* MACD points decides
    first; otherwise the direction versus the previous MACD value.  When the
    line is flat the sign of the MACD itself is used.
    """
    line = macd_line(closes)
    if not line:
        return 0.0, Signal.NEUTRAL

    current = line[-1]
    start = line[-window:][0]
    if start <= 0 < current:
        return current, Signal.BULLISH
    if start >= 0 > current:
        return current, Signal.BEARISH

    if len(line) >= 2 and not math.isclose(current, line[-2], rel_tol=1e-9, abs_tol=1e-9):
        return current, Signal.BULLISH if current > line[-2] else Signal.BEARISH
    if current > 0:
        return current, Signal.BULLISH
    if current < 0:
        return current, Signal.BEARISH
    return current, Signal.NEUTRAL


def bollinger_percent_b(closes: Sequence[float], period: int = 20) -> tuple[float, Signal]:
    """Bollinger %B with 2σ bands (population σ); 0.5 neutral when undefined."""
    if len(closes) < period:
        return 0.5, Signal.NEUTRAL
    window = np.asarray(closes[-period:], dtype=float)
    mean = window.mean()
    sigma = window.std()
    if sigma == 0:
        return 0.5, Signal.NEUTRAL

    lower = mean - 2 * sigma
    percent_b = float((window[-1] - lower) / (4 * sigma))
    if percent_b > 0.8:
        return percent_b, Signal.BEARISH
    if percent_b < 0.2:
        return percent_b, Signal.BULLISH
    return percent_b, Signal.NEUTRAL


def returns_volatility(closes: Sequence[float]) -> float:
    """Population standard deviation of day-over-day returns."""
    if len(closes) < 2:
        return 0.0
    arr = np.asarray(closes, dtype=float)
    returns = np.diff(arr) / arr[:-1]
    return float(returns.std())


def momentum(closes: Sequence[float], period: int = 10) -> float:
    """Rate of change over *period* bars, in percent."""
    if len(closes) <= period or closes[-period - 1] == 0:
        return 0.0
    base = closes[-period - 1]
    return (closes[-1] - base) / base * 100


# ---------------------------------------------------------------------------
# Dashboard summary
# ---------------------------------------------------------------------------

def generate_technical_indicators(candles: Sequence[Candle]) -> list[Indicator]:
    """RSI, MACD, Bollinger, volatility and momentum; empty below 30 candles."""
    from market_insight.infra.config import get_settings

    if len(candles) < get_settings().indicator_min_candles:
        return []

    closes = [c.close for c in candles]

    rsi_value = rsi(closes)
    if rsi_value > 70:
        rsi_signal = Signal.BEARISH
    elif rsi_value < 30:
        rsi_signal = Signal.BULLISH
    else:
        rsi_signal = Signal.NEUTRAL

    macd_value, macd_signal = macd(closes)
    percent_b, bb_signal = bollinger_percent_b(closes)

    vol = returns_volatility(closes)
    mom = momentum(closes)
    if mom > 2:
        mom_signal = Signal.BULLISH
    elif mom < -2:
        mom_signal = Signal.BEARISH
    else:
        mom_signal = Signal.NEUTRAL

    return [
        Indicator(
            name="RSI",
            value=rsi_value,
            signal=rsi_signal,
            description="Relative Strength Index measures momentum and overbought/oversold conditions",
        ),
        Indicator(
            name="MACD",
            value=macd_value,
            signal=macd_signal,
            description="MACD shows the relationship between two moving averages of a security's price",
        ),
        Indicator(
            name="Bollinger Bands",
            value=percent_b,
            signal=bb_signal,
            description="Bollinger Bands measure volatility and relative price levels",
        ),
        Indicator(
            name="Volatility",
            value=vol,
            signal=Signal.NEUTRAL,
            description="Standard deviation of daily returns",
        ),
        Indicator(
            name="Momentum",
            value=mom,
            signal=mom_signal,
            description="10-day rate of change in percent",
        ),
    ]
