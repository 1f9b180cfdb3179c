"""
One-month price projection from a linear trend fit.

Deterministic heuristics, not a trained model: an OLS line through the
closes gives the slope and R², daily-return volatility discounts the
confidence, and support/resistance come from the pattern detector.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from market_insight.analysis.indicators import returns_volatility
from market_insight.analysis.patterns import find_support_resistance
from market_insight.data.models import Candle, Prediction

logger = logging.getLogger(__name__)


def linear_regression(values: Sequence[float]) -> tuple[float, float]:
    """``(slope, r_squared)`` of *values* against their index; R² is 0 for a flat series."""
    y = np.asarray(values, dtype=float)
    x = np.arange(len(y), dtype=float)
    x_dev = x - x.mean()
    denom = float((x_dev ** 2).sum())
    if denom == 0:
        return 0.0, 0.0

    slope = float((x_dev * (y - y.mean())).sum() / denom)
    intercept = y.mean() - slope * x.mean()
    total_ss = float(((y - y.mean()) ** 2).sum())
    if total_ss == 0:
        return slope, 0.0
    residual_ss = float(((y - (intercept + slope * x)) ** 2).sum())
    return slope, 1.0 - residual_ss / total_ss


def default_prediction(current_price: float) -> Prediction:
    """Neutral placeholder used when there is not enough data to fit a trend."""
    return Prediction(
        target_price=current_price,
        probability=0.5,
        expected_move_pct=0.0,
        support_levels=[current_price * 0.9] if current_price else [],
        resistance_levels=[current_price * 1.1] if current_price else [],
        is_default=True,
    )


def generate_prediction(
    candles: Sequence[Candle],
    current_price: float | None = None,
) -> Prediction:
    if len(candles) < 2:
        if candles:
            price = candles[-1].close
        else:
            price = current_price or 0.0
        logger.info("Not enough candles (%d) for a trend fit; returning default prediction", len(candles))
        return default_prediction(price)

    closes = [c.close for c in candles]
    last = closes[-1]
    slope, r_squared = linear_regression(closes)
    volatility = returns_volatility(closes)

    target = last * (1 + slope * 0.1)
    confidence = max(0.0, min(1.0, r_squared * (1 - volatility)))

    support, resistance = find_support_resistance(candles)

    return Prediction(
        target_price=target,
        probability=confidence,
        expected_move_pct=(target - last) / last * 100,
        support_levels=support,
        resistance_levels=resistance,
    )
