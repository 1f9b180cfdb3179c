"""
Yahoo Finance v8 chart client.

The chart endpoint serves both daily OHLCV history and a ``meta`` block with
the latest market price, so it backs one history adapter and one quote
adapter.  Crypto is requested as ``<SYMBOL>-USD``.

No API key required.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from market_insight.data.models import Asset, AssetClass, Candle
from market_insight.data.providers.base import (
    HistoryAdapter,
    ProviderError,
    QuoteAdapter,
    build_candle,
    epoch_to_date,
    get_with_retry,
    make_asset,
    yahoo_symbol,
)

logger = logging.getLogger(__name__)


def _chart_url(symbol: str) -> str:
    from market_insight.infra.config import get_settings
    return f"{get_settings().yahoo_chart_url}/{symbol}"


def _range_for(days: int) -> str:
    if days <= 30:
        return "1mo"
    if days <= 90:
        return "3mo"
    if days <= 365:
        return "1y"
    return "2y"


def _first_result(payload: dict[str, Any]) -> dict[str, Any]:
    chart = payload.get("chart") or {}
    results = chart.get("result") or []
    if not results:
        error = chart.get("error") or {}
        raise ProviderError(error.get("description") or "empty chart result")
    return results[0]


def _at(values: list[Any], i: int) -> Any:
    return values[i] if i < len(values) else None


def parse_chart(payload: dict[str, Any]) -> list[Candle]:
    """Map a v8 chart payload to candles, skipping rows with null prices."""
    result = _first_result(payload)
    timestamps = result.get("timestamp") or []
    quotes = (result.get("indicators") or {}).get("quote") or [{}]
    q = quotes[0] or {}
    opens = q.get("open") or []
    highs = q.get("high") or []
    lows = q.get("low") or []
    closes = q.get("close") or []
    volumes = q.get("volume") or []

    candles: list[Candle] = []
    for i, ts in enumerate(timestamps):
        candle = build_candle(
            epoch_to_date(ts),
            _at(opens, i), _at(highs, i), _at(lows, i), _at(closes, i), _at(volumes, i),
        )
        if candle is not None:
            candles.append(candle)
    return candles


class YahooHistory(HistoryAdapter):
    source_id = "yahoo"
    reliability = 1

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass, days: int,
    ) -> list[Candle]:
        resp = await get_with_retry(
            client,
            _chart_url(yahoo_symbol(symbol, asset_class)),
            params={"interval": "1d", "range": _range_for(days)},
        )
        return parse_chart(resp.json())


class YahooQuote(QuoteAdapter):
    source_id = "yahoo"

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> Asset | None:
        resp = await get_with_retry(
            client,
            _chart_url(yahoo_symbol(symbol, asset_class)),
            params={"interval": "1d", "range": "5d"},
        )
        meta = _first_result(resp.json()).get("meta") or {}
        price = meta.get("regularMarketPrice")
        prev = meta.get("chartPreviousClose") or meta.get("previousClose")
        change_pct = ((price - prev) / prev * 100) if price and prev else 0.0
        return make_asset(
            symbol, asset_class, price, change_pct, self.source_id,
            name=meta.get("longName") or meta.get("shortName"),
            volume=meta.get("regularMarketVolume"),
        )
