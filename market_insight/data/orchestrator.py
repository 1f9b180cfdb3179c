"""
Fetch orchestration: run every eligible adapter concurrently and collect
*all* outcomes.

The join is settle-all (``asyncio.gather(..., return_exceptions=True)``):
one provider timing out, raising or being rate limited never cancels or
delays the others, because partial results from several providers are all
needed by the reconciler.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Iterable, Sequence, TypeVar

import httpx

from market_insight.data.models import (
    Asset,
    AssetClass,
    NewsItem,
    ProviderFailed,
    ProviderResult,
)
from market_insight.data.providers.base import HistoryAdapter, NewsAdapter, QuoteAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _outer_timeout() -> float:
    from market_insight.infra.config import get_settings
    s = get_settings()
    # Adapters bound themselves; this only catches one that ignores its own timeout.
    return s.http_timeout + s.rate_limit_backoff + 1.0


async def settle_all(aws: Iterable[Awaitable[T]]) -> list[T | BaseException]:
    """Await every awaitable concurrently; exceptions are returned, not raised."""
    timeout = _outer_timeout()
    return await asyncio.gather(
        *(asyncio.wait_for(aw, timeout=timeout) for aw in aws),
        return_exceptions=True,
    )


def first_successful(outcomes: Iterable[T | BaseException | None]) -> T | None:
    """First outcome in priority order that is neither an error nor empty."""
    for outcome in outcomes:
        if outcome is None or isinstance(outcome, BaseException):
            continue
        if isinstance(outcome, (list, tuple, dict)) and not outcome:
            continue
        return outcome
    return None


# ---------------------------------------------------------------------------
# Per-kind gathers
# ---------------------------------------------------------------------------

async def gather_history(
    client: httpx.AsyncClient,
    adapters: Sequence[HistoryAdapter],
    symbol: str,
    asset_class: AssetClass,
    days: int,
) -> list[ProviderResult]:
    """One :data:`ProviderResult` per eligible adapter, in adapter order."""
    eligible = [a for a in adapters if a.supports(asset_class)]
    if not eligible:
        return []

    outcomes = await settle_all(a.fetch(client, symbol, asset_class, days) for a in eligible)

    results: list[ProviderResult] = []
    for adapter, outcome in zip(eligible, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning("%s escaped its boundary for %s: %r", adapter.source_id, symbol, outcome)
            outcome = ProviderFailed(
                source_id=adapter.source_id,
                reason=f"{type(outcome).__name__}: {outcome}",
            )
        results.append(outcome)
    return results


async def gather_quotes(
    client: httpx.AsyncClient,
    adapters: Sequence[QuoteAdapter],
    symbol: str,
    asset_class: AssetClass,
) -> list[Asset | BaseException | None]:
    eligible = [a for a in adapters if a.supports(symbol, asset_class)]
    outcomes = await settle_all(a.fetch(client, symbol, asset_class) for a in eligible)
    for adapter, outcome in zip(eligible, outcomes):
        logger.debug("quote %s for %s: %s", adapter.source_id, symbol,
                     "ok" if isinstance(outcome, Asset) else "none")
    return outcomes


async def gather_news(
    client: httpx.AsyncClient,
    adapters: Sequence[NewsAdapter],
    symbol: str,
    asset_class: AssetClass,
    include_general: bool,
) -> list[NewsItem]:
    """All items from every eligible feed, flattened in adapter order."""
    eligible = [a for a in adapters if a.supports(asset_class, include_general)]
    outcomes = await settle_all(a.fetch(client, symbol, asset_class) for a in eligible)

    items: list[NewsItem] = []
    for adapter, outcome in zip(eligible, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning("news source %s failed for %s: %r", adapter.source_id, symbol, outcome)
            continue
        items.extend(outcome)
    return items
