"""
Finnhub REST client (requires ``FINNHUB_API_KEY``).

Both adapters report themselves disabled when no key is configured, so the
orchestrator never schedules them.
"""

from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Any

import httpx

from market_insight.data.models import AssetClass, Candle, NewsItem
from market_insight.data.providers.base import (
    HistoryAdapter,
    NewsAdapter,
    ProviderError,
    build_candle,
    epoch_to_date,
    get_with_retry,
)

logger = logging.getLogger(__name__)


def _settings():
    from market_insight.infra.config import get_settings
    return get_settings()


def _today() -> dt.date:
    from market_insight.infra.config import get_today
    return get_today()


def _candle_request(symbol: str, asset_class: AssetClass) -> tuple[str, str]:
    if asset_class is AssetClass.CRYPTO:
        return "crypto/candle", f"BINANCE:{symbol.upper()}USDT"
    return "stock/candle", symbol.upper()


def parse_candles(payload: dict[str, Any]) -> list[Candle]:
    """Map Finnhub's column-oriented ``{s, t, o, h, l, c, v}`` payload."""
    status = payload.get("s")
    if status == "no_data":
        return []
    if status != "ok":
        raise ProviderError(payload.get("error") or f"unexpected status {status!r}")

    t = payload.get("t") or []
    cols = [payload.get(k) or [] for k in ("o", "h", "l", "c", "v")]
    candles: list[Candle] = []
    for i, ts in enumerate(t):
        o, h, l, c, v = (col[i] if i < len(col) else None for col in cols)
        candle = build_candle(epoch_to_date(ts), o, h, l, c, v)
        if candle is not None:
            candles.append(candle)
    return candles


def parse_company_news(payload: Any, symbol: str) -> list[NewsItem]:
    if not isinstance(payload, list):
        raise ProviderError("company-news response is not a list")
    items: list[NewsItem] = []
    for entry in payload:
        headline = (entry.get("headline") or "").strip()
        if not headline or not entry.get("datetime"):
            continue
        related = [s.strip().upper() for s in (entry.get("related") or "").split(",") if s.strip()]
        items.append(NewsItem(
            title=headline,
            content=entry.get("summary") or "",
            url=entry.get("url") or "",
            source=entry.get("source") or "Finnhub",
            published_at=dt.datetime.fromtimestamp(entry["datetime"], tz=dt.timezone.utc),
            symbols=related or [symbol.upper()],
        ))
    return items


class FinnhubHistory(HistoryAdapter):
    source_id = "finnhub"
    reliability = 3

    def is_enabled(self) -> bool:
        return _settings().finnhub_enabled

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass, days: int,
    ) -> list[Candle]:
        s = _settings()
        path, fh_symbol = _candle_request(symbol, asset_class)
        now = int(time.time())
        resp = await get_with_retry(
            client,
            f"{s.finnhub_base_url}/{path}",
            params={
                "symbol": fh_symbol,
                "resolution": "D",
                "from": now - days * 86_400,
                "to": now,
                "token": s.finnhub_api_key,
            },
        )
        return parse_candles(resp.json())


class FinnhubNews(NewsAdapter):
    source_id = "finnhub-news"
    asset_classes = frozenset({AssetClass.STOCK})

    def is_enabled(self) -> bool:
        return _settings().finnhub_enabled

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> list[NewsItem]:
        s = _settings()
        today = _today()
        resp = await get_with_retry(
            client,
            f"{s.finnhub_base_url}/company-news",
            params={
                "symbol": symbol.upper(),
                "from": (today - dt.timedelta(days=s.news_max_age_days)).isoformat(),
                "to": today.isoformat(),
                "token": s.finnhub_api_key,
            },
            timeout=self._timeout(),
        )
        return parse_company_news(resp.json(), symbol)
