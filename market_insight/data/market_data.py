"""
Public data entry points: candles, quote, news and on-chain stats.

Every function here resolves to a value and never raises to its caller.
``fetch_candles`` always returns a usable series: live when the providers
deliver enough candles, otherwise a synthetic one flagged with
``Provenance.SYNTHETIC``.
"""

from __future__ import annotations

import contextlib
import datetime as dt
import logging
from typing import AsyncIterator, Sequence

import httpx

from market_insight.data.models import (
    Asset,
    AssetClass,
    CandleSeriesResult,
    NewsItem,
    OnChainData,
    ProviderFailed,
    Provenance,
    Timeframe,
)
from market_insight.data.orchestrator import (
    first_successful,
    gather_history,
    gather_news,
    gather_quotes,
)
from market_insight.data.providers import (
    HistoryAdapter,
    NewsAdapter,
    QuoteAdapter,
    broadened_history_adapters,
    fetch_onchain_stats,
    news_adapters,
    primary_history_adapters,
    quote_adapters,
)
from market_insight.data.reconciler import filter_window, merge_results
from market_insight.data.synthetic import generate_synthetic_series
from market_insight.infra.cache import TTLCache
from market_insight.infra.config import get_settings, get_today

logger = logging.getLogger(__name__)

_NEWS_CACHE: TTLCache[list[NewsItem]] | None = None


def _news_cache() -> TTLCache[list[NewsItem]]:
    global _NEWS_CACHE
    if _NEWS_CACHE is None:
        _NEWS_CACHE = TTLCache(get_settings().rss_cache_ttl)
    return _NEWS_CACHE


def clear_news_cache() -> None:
    _news_cache().clear()


@contextlib.asynccontextmanager
async def client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Use the caller's client, or open (and close) one for this call."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(follow_redirects=True) as owned:
        yield owned


def _normalise(symbol: str) -> str:
    return symbol.strip().upper()


# ---------------------------------------------------------------------------
# Candles
# ---------------------------------------------------------------------------

def synthetic_result(
    symbol: str,
    asset_class: AssetClass,
    days: int,
    today: dt.date,
    failures: list[ProviderFailed] | None = None,
) -> CandleSeriesResult:
    return CandleSeriesResult(
        symbol=symbol,
        asset_class=asset_class,
        days=days,
        candles=generate_synthetic_series(symbol, days, end=today, asset_class=asset_class),
        provenance=Provenance.SYNTHETIC,
        sources=["synthetic"],
        failures=failures or [],
    )


async def _fetch_candles(
    client: httpx.AsyncClient,
    symbol: str,
    asset_class: AssetClass,
    days: int,
    today: dt.date,
    primary: Sequence[HistoryAdapter],
    broadened: Sequence[HistoryAdapter],
) -> CandleSeriesResult:
    minimum = get_settings().min_viable_points

    results = await gather_history(client, primary, symbol, asset_class, days)
    merged = merge_results(results)
    candles = filter_window(merged.candles, days, today)
    logger.info("%s: %d candles in window from %s", symbol, len(candles), merged.sources or "no source")

    if len(candles) < minimum:
        logger.info("%s: below %d candles, trying broadened sources", symbol, minimum)
        results += await gather_history(client, broadened, symbol, asset_class, days)
        merged = merge_results(results)
        candles = filter_window(merged.candles, days, today)

    if len(candles) < minimum:
        logger.warning(
            "%s: only %d live candles after broadened attempt; using synthetic data",
            symbol, len(candles),
        )
        return synthetic_result(symbol, asset_class, days, today, merged.failures)

    return CandleSeriesResult(
        symbol=symbol,
        asset_class=asset_class,
        days=days,
        candles=candles,
        provenance=Provenance.LIVE,
        sources=merged.sources,
        failures=merged.failures,
    )


async def fetch_candles(
    symbol: str,
    asset_class: AssetClass = AssetClass.STOCK,
    timeframe: Timeframe = Timeframe.DAYS_90,
    *,
    client: httpx.AsyncClient | None = None,
    today: dt.date | None = None,
    primary: Sequence[HistoryAdapter] | None = None,
    broadened: Sequence[HistoryAdapter] | None = None,
) -> CandleSeriesResult:
    """Reconciled daily candles for *symbol* over *timeframe*.

    Never raises: on total failure the result is synthetic, with
    ``provenance == Provenance.SYNTHETIC``.
    """
    symbol = _normalise(symbol)
    days = Timeframe(timeframe).days
    today = today or get_today()
    primary = primary_history_adapters() if primary is None else primary
    broadened = broadened_history_adapters() if broadened is None else broadened

    try:
        async with client_scope(client) as c:
            return await _fetch_candles(c, symbol, asset_class, days, today, primary, broadened)
    except Exception as exc:
        logger.exception("Candle pipeline failed for %s: %s", symbol, exc)
        return synthetic_result(symbol, asset_class, days, today)


# ---------------------------------------------------------------------------
# Quote
# ---------------------------------------------------------------------------

async def fetch_asset(
    symbol: str,
    asset_class: AssetClass = AssetClass.STOCK,
    *,
    client: httpx.AsyncClient | None = None,
    adapters: Sequence[QuoteAdapter] | None = None,
) -> Asset | None:
    """Latest quote from the highest-priority source that answers, else ``None``."""
    symbol = _normalise(symbol)
    adapters = quote_adapters() if adapters is None else adapters
    try:
        async with client_scope(client) as c:
            outcomes = await gather_quotes(c, adapters, symbol, asset_class)
    except Exception as exc:
        logger.exception("Quote lookup failed for %s: %s", symbol, exc)
        return None

    asset = first_successful(outcomes)
    if asset is None:
        logger.warning("No quote source returned data for %s", symbol)
    else:
        logger.info("Quote for %s from %s: %.4f", symbol, asset.source, asset.price)
    return asset


# ---------------------------------------------------------------------------
# News
# ---------------------------------------------------------------------------

def _dedupe(items: list[NewsItem]) -> list[NewsItem]:
    seen: set[str] = set()
    out: list[NewsItem] = []
    for item in items:
        key = item.url or item.title.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


async def fetch_news(
    symbol: str,
    asset_class: AssetClass = AssetClass.STOCK,
    include_general: bool = True,
    *,
    client: httpx.AsyncClient | None = None,
    adapters: Sequence[NewsAdapter] | None = None,
) -> list[NewsItem]:
    """Deduplicated news for *symbol*, newest first; cached per ``(symbol, include_general)``."""
    symbol = _normalise(symbol)
    cache = _news_cache()
    key = (symbol, include_general)
    cached = cache.get(key)
    if cached is not None:
        logger.debug("news cache hit for %s", key)
        return list(cached)

    adapters = news_adapters() if adapters is None else adapters
    try:
        async with client_scope(client) as c:
            raw = await gather_news(c, adapters, symbol, asset_class, include_general)
    except Exception as exc:
        logger.exception("News lookup failed for %s: %s", symbol, exc)
        return []

    items = _dedupe(raw)
    items.sort(key=lambda i: i.published_at, reverse=True)
    cache.set(key, list(items))
    logger.info("%d news items for %s", len(items), symbol)
    return items


# ---------------------------------------------------------------------------
# On-chain
# ---------------------------------------------------------------------------

async def fetch_onchain(
    symbol: str = "BTC",
    *,
    client: httpx.AsyncClient | None = None,
) -> OnChainData | None:
    """Network statistics; only Bitcoin is covered."""
    if _normalise(symbol) != "BTC":
        return None
    try:
        async with client_scope(client) as c:
            return await fetch_onchain_stats(c)
    except Exception as exc:
        logger.exception("On-chain lookup failed: %s", exc)
        return None
