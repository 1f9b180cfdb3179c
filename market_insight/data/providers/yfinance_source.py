"""
yfinance-backed history for US equities.

This is the *broadened* stock source: it is only scheduled when the primary
sources leave too few candles.  yfinance is a blocking library, so the call
runs in a worker thread via :func:`asyncio.to_thread`; the shared
``httpx.AsyncClient`` is unused.
"""

from __future__ import annotations

import asyncio
import logging

import httpx
import pandas as pd
import yfinance as yf

from market_insight.data.models import AssetClass, Candle
from market_insight.data.providers.base import HistoryAdapter, build_candle

logger = logging.getLogger(__name__)


def _period_for(days: int) -> str:
    if days <= 30:
        return "1mo"
    if days <= 90:
        return "3mo"
    if days <= 365:
        return "1y"
    return "2y"


def _ticker(symbol: str) -> yf.Ticker:
    return yf.Ticker(symbol.upper())


def frame_to_candles(hist: pd.DataFrame) -> list[Candle]:
    """Convert a yfinance ``history()`` frame (DatetimeIndex, OHLCV columns)."""
    if hist is None or hist.empty:
        return []
    candles: list[Candle] = []
    for ts, row in hist.iterrows():
        candle = build_candle(
            ts.date(), row.get("Open"), row.get("High"), row.get("Low"), row.get("Close"),
            row.get("Volume", 0.0),
        )
        if candle is not None:
            candles.append(candle)
    return candles


class YFinanceHistory(HistoryAdapter):
    source_id = "yfinance"
    reliability = 4
    asset_classes = frozenset({AssetClass.STOCK})

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass, days: int,
    ) -> list[Candle]:
        hist = await asyncio.to_thread(
            lambda: _ticker(symbol).history(period=_period_for(days), interval="1d")
        )
        return frame_to_candles(hist)
