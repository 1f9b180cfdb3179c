"""
CoinGecko public API client.

Used as the *broadened* crypto history source (tried only when the primary
sources leave too few candles) and as a crypto quote fallback.

The ``/ohlc`` endpoint returns sub-daily bars (``[ts_ms, o, h, l, c]``) for
short ranges, so bars are bucketed by UTC day.  When ``/ohlc`` fails the
``/market_chart`` price series is bucketed the same way.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import pandas as pd

from market_insight.data.models import Asset, AssetClass, Candle
from market_insight.data.providers.base import (
    HistoryAdapter,
    ProviderError,
    QuoteAdapter,
    build_candle,
    coingecko_id,
    get_with_retry,
    make_asset,
)

logger = logging.getLogger(__name__)


def _base_url() -> str:
    from market_insight.infra.config import get_settings
    return get_settings().coingecko_base_url


def _bucket_daily(df: pd.DataFrame) -> list[Candle]:
    """Collapse timestamped bars (``ts`` in ms) into one candle per UTC day."""
    if df.empty:
        return []
    df = df.assign(day=pd.to_datetime(df["ts"], unit="ms", utc=True).dt.date)
    daily = df.groupby("day", sort=True).agg(
        open=("open", "first"),
        high=("high", "max"),
        low=("low", "min"),
        close=("close", "last"),
        volume=("volume", "last"),
    )
    candles: list[Candle] = []
    for day, row in daily.iterrows():
        candle = build_candle(day, row["open"], row["high"], row["low"], row["close"], row["volume"])
        if candle is not None:
            candles.append(candle)
    return candles


def parse_ohlc(payload: Any) -> list[Candle]:
    if not isinstance(payload, list) or not payload:
        raise ProviderError("empty OHLC response")
    rows = [r for r in payload if isinstance(r, list) and len(r) >= 5]
    df = pd.DataFrame([r[:5] for r in rows], columns=["ts", "open", "high", "low", "close"])
    df["volume"] = 0.0
    return _bucket_daily(df)


def parse_market_chart(payload: dict[str, Any]) -> list[Candle]:
    prices = payload.get("prices") or []
    if not prices:
        raise ProviderError("empty market_chart response")
    volumes = {int(ts): vol for ts, vol in (payload.get("total_volumes") or [])}
    df = pd.DataFrame(prices, columns=["ts", "close"])
    df["open"] = df["high"] = df["low"] = df["close"]
    df["volume"] = df["ts"].map(lambda ts: volumes.get(int(ts), 0.0))
    return _bucket_daily(df)


class CoinGeckoHistory(HistoryAdapter):
    source_id = "coingecko"
    reliability = 4
    asset_classes = frozenset({AssetClass.CRYPTO})

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass, days: int,
    ) -> list[Candle]:
        coin = coingecko_id(symbol)
        try:
            resp = await get_with_retry(
                client,
                f"{_base_url()}/coins/{coin}/ohlc",
                params={"vs_currency": "usd", "days": days},
            )
            return parse_ohlc(resp.json())
        except Exception as exc:
            logger.info("CoinGecko OHLC failed for %s (%s), trying market_chart", coin, exc)

        resp = await get_with_retry(
            client,
            f"{_base_url()}/coins/{coin}/market_chart",
            params={"vs_currency": "usd", "days": days, "interval": "daily"},
        )
        return parse_market_chart(resp.json())


class CoinGeckoQuote(QuoteAdapter):
    source_id = "coingecko"
    asset_classes = frozenset({AssetClass.CRYPTO})

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> Asset | None:
        coin = coingecko_id(symbol)
        resp = await get_with_retry(
            client,
            f"{_base_url()}/simple/price",
            params={
                "ids": coin,
                "vs_currencies": "usd",
                "include_24hr_vol": "true",
                "include_24hr_change": "true",
                "include_market_cap": "true",
            },
        )
        data = resp.json().get(coin) or {}
        if not data.get("usd"):
            return None
        return make_asset(
            symbol, asset_class, data["usd"], data.get("usd_24h_change"), self.source_id,
            market_cap=data.get("usd_market_cap"),
            volume=data.get("usd_24h_vol"),
        )
