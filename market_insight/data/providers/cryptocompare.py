"""
CryptoCompare public API client (no key required for low volumes).

``/v2/histoday`` gives daily OHLCV under ``Data.Data``; ``/price`` gives a
spot price that is combined with the last two daily closes for the change.
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
)

logger = logging.getLogger(__name__)


def _base_url() -> str:
    from market_insight.infra.config import get_settings
    return get_settings().cryptocompare_base_url


def _histoday_rows(payload: dict[str, Any]) -> list[dict[str, Any]]:
    if payload.get("Response") == "Error":
        raise ProviderError(payload.get("Message") or "CryptoCompare error")
    rows = (payload.get("Data") or {}).get("Data")
    if not isinstance(rows, list):
        raise ProviderError("missing Data.Data in histoday response")
    return rows


def parse_histoday(payload: dict[str, Any]) -> list[Candle]:
    candles: list[Candle] = []
    for row in _histoday_rows(payload):
        if not row.get("time"):
            continue
        candle = build_candle(
            epoch_to_date(row["time"]),
            row.get("open"), row.get("high"), row.get("low"), row.get("close"),
            row.get("volumefrom"),
        )
        if candle is not None:
            candles.append(candle)
    return candles


async def _histoday(client: httpx.AsyncClient, symbol: str, limit: int) -> dict[str, Any]:
    resp = await get_with_retry(
        client,
        f"{_base_url()}/v2/histoday",
        params={"fsym": symbol.upper(), "tsym": "USD", "limit": limit},
    )
    return resp.json()


class CryptoCompareHistory(HistoryAdapter):
    source_id = "cryptocompare"
    reliability = 2
    asset_classes = frozenset({AssetClass.CRYPTO})

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass, days: int,
    ) -> list[Candle]:
        return parse_histoday(await _histoday(client, symbol, days))


class CryptoCompareQuote(QuoteAdapter):
    source_id = "cryptocompare"
    asset_classes = frozenset({AssetClass.CRYPTO})

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> Asset | None:
        resp = await get_with_retry(
            client, f"{_base_url()}/price", params={"fsym": symbol.upper(), "tsyms": "USD"},
        )
        price = resp.json().get("USD")
        if not price:
            return None

        change_pct = 0.0
        volume = None
        rows = _histoday_rows(await _histoday(client, symbol, 2))
        if len(rows) >= 2 and rows[0].get("close"):
            prev_close = rows[0]["close"]
            change_pct = (price - prev_close) / prev_close * 100
            volume = rows[-1].get("volumeto")

        return make_asset(symbol, asset_class, price, change_pct, self.source_id, volume=volume)
