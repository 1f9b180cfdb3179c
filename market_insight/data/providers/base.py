"""
Provider adapter abstractions and shared HTTP helpers.

Every upstream data source (Yahoo, Stooq, CryptoCompare, CoinGecko, Finnhub,
RSS feeds, …) is wrapped in an adapter that subclasses one of the ABCs below.

**Boundary contract:** an adapter's public ``fetch`` never raises.  Network
errors, timeouts, non-200 statuses and malformed payloads are caught here,
logged, and converted into an explicit empty/failed value so the orchestrator
can treat "no data" uniformly.  Subclasses implement ``_fetch`` and are free
to raise :class:`ProviderError` (or anything else) from inside it.
"""

from __future__ import annotations

import abc
import asyncio
import datetime as dt
import logging
import math
from typing import Any, Awaitable, TypeVar

import httpx
from pydantic import ValidationError

from market_insight.data.models import (
    Asset,
    AssetClass,
    Candle,
    NewsItem,
    ProviderFailed,
    ProviderOk,
    ProviderResult,
    Recommendation,
    Trend,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderError(Exception):
    """Raised inside an adapter when a provider response is unusable."""


def _timeout() -> float:
    from market_insight.infra.config import get_settings
    return get_settings().http_timeout


def _backoff() -> float:
    from market_insight.infra.config import get_settings
    return get_settings().rate_limit_backoff


# ---------------------------------------------------------------------------
# Client identity
# ---------------------------------------------------------------------------

def default_headers() -> dict[str, str]:
    from market_insight.infra.config import get_settings
    return {
        "User-Agent": get_settings().user_agent,
        "Accept": "application/json, text/plain, */*",
    }


def alternate_headers() -> dict[str, str]:
    """Second client signature, used for the single retry after a 429."""
    from market_insight.infra.config import get_settings
    return {
        "User-Agent": get_settings().alt_user_agent,
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
    }


async def get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
) -> httpx.Response:
    """GET *url*, retrying exactly once on HTTP 429.

    The retry waits a fixed backoff and switches to :func:`alternate_headers`.
    Any non-200 final status raises :class:`ProviderError`.
    """
    timeout = timeout if timeout is not None else _timeout()
    resp = await client.get(
        url, params=params, headers=headers or default_headers(), timeout=timeout,
    )
    if resp.status_code == 429:
        delay = _backoff()
        logger.info("Rate limited by %s, retrying once in %.1fs", resp.url.host, delay)
        await asyncio.sleep(delay)
        resp = await client.get(
            url, params=params, headers=alternate_headers(), timeout=timeout,
        )
    if resp.status_code != 200:
        raise ProviderError(f"HTTP {resp.status_code} from {resp.url.host}")
    return resp


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

def _as_price(value: Any) -> float | None:
    if value is None:
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def build_candle(
    date: dt.date,
    open_: Any,
    high: Any,
    low: Any,
    close: Any,
    volume: Any = 0.0,
) -> Candle | None:
    """Map one provider row to a :class:`Candle`, or ``None`` to skip it.

    Rows missing any of open/high/low/close are skipped, never zero-filled.
    A missing volume is treated as 0.
    """
    o, h, l, c = (_as_price(v) for v in (open_, high, low, close))
    if o is None or h is None or l is None or c is None:
        logger.debug("Skipping %s: incomplete OHLC", date)
        return None
    vol = _as_price(volume) or 0.0
    try:
        return Candle(date=date, open=o, high=h, low=l, close=c, volume=max(vol, 0.0))
    except ValidationError as exc:
        logger.debug("Skipping %s: %s", date, exc.errors()[0].get("msg", exc))
        return None


def epoch_to_date(ts: int | float) -> dt.date:
    return dt.datetime.fromtimestamp(ts, tz=dt.timezone.utc).date()


def make_asset(
    symbol: str,
    asset_class: AssetClass,
    price: Any,
    change_pct: Any,
    source: str,
    **extra: Any,
) -> Asset | None:
    """Build an :class:`Asset` with trend and recommendation derived from the day change."""
    from market_insight.infra.config import get_settings

    px = _as_price(price)
    if px is None or px <= 0:
        return None
    change = _as_price(change_pct) or 0.0
    threshold = get_settings().recommendation_threshold_pct

    if change > 0:
        trend = Trend.RISING
    elif change < 0:
        trend = Trend.FALLING
    else:
        trend = Trend.NEUTRAL

    if change > threshold:
        recommendation = Recommendation.BUY
    elif change < -threshold:
        recommendation = Recommendation.SELL
    else:
        recommendation = Recommendation.HOLD

    return Asset(
        symbol=symbol.upper(),
        name=extra.pop("name", None) or symbol.upper(),
        asset_class=asset_class,
        price=px,
        change_pct=round(change, 4),
        trend=trend,
        recommendation=recommendation,
        source=source,
        **extra,
    )


# ---------------------------------------------------------------------------
# Symbol mapping
# ---------------------------------------------------------------------------

COINGECKO_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "XRP": "ripple",
    "LTC": "litecoin",
    "ADA": "cardano",
    "DOT": "polkadot",
    "LINK": "chainlink",
    "SOL": "solana",
    "DOGE": "dogecoin",
    "BNB": "binancecoin",
}


def yahoo_symbol(symbol: str, asset_class: AssetClass) -> str:
    """Yahoo lists crypto as ``BTC-USD``; stocks use the bare ticker."""
    symbol = symbol.upper()
    if asset_class is AssetClass.CRYPTO and "-" not in symbol:
        return f"{symbol}-USD"
    return symbol


def coingecko_id(symbol: str) -> str:
    return COINGECKO_IDS.get(symbol.upper(), symbol.lower())


# ---------------------------------------------------------------------------
# Boundary guard
# ---------------------------------------------------------------------------

async def guarded(source_id: str, aw: Awaitable[T], default: T, timeout: float | None = None) -> T:
    """Await *aw* under a timeout; log and return *default* on any failure."""
    timeout = timeout if timeout is not None else _timeout()
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs", source_id, timeout)
    except Exception as exc:
        logger.warning("%s failed: %s", source_id, exc)
    return default


# ---------------------------------------------------------------------------
# Abstract adapters
# ---------------------------------------------------------------------------

class HistoryAdapter(abc.ABC):
    """Daily OHLCV history from one provider."""

    source_id: str = ""
    reliability: int = 99
    asset_classes: frozenset[AssetClass] = frozenset(AssetClass)

    def supports(self, asset_class: AssetClass) -> bool:
        return asset_class in self.asset_classes and self.is_enabled()

    def is_enabled(self) -> bool:
        return True

    @abc.abstractmethod
    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass, days: int,
    ) -> list[Candle]:
        """Provider-specific request and row mapping. May raise."""

    async def fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass, days: int,
    ) -> ProviderResult:
        timeout = _timeout()
        try:
            candles = await asyncio.wait_for(
                self._fetch(client, symbol, asset_class, days), timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs for %s", self.source_id, timeout, symbol)
            return ProviderFailed(source_id=self.source_id, reason=f"timed out after {timeout}s")
        except Exception as exc:
            logger.warning("%s history failed for %s: %s", self.source_id, symbol, exc)
            return ProviderFailed(source_id=self.source_id, reason=f"{type(exc).__name__}: {exc}")

        logger.info("%s returned %d candles for %s", self.source_id, len(candles), symbol)
        return ProviderOk(
            source_id=self.source_id, reliability=self.reliability, candles=candles,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.source_id} rank={self.reliability}>"


class QuoteAdapter(abc.ABC):
    """Latest price snapshot from one provider."""

    source_id: str = ""
    asset_classes: frozenset[AssetClass] = frozenset(AssetClass)

    def supports(self, symbol: str, asset_class: AssetClass) -> bool:
        return asset_class in self.asset_classes and self.is_enabled()

    def is_enabled(self) -> bool:
        return True

    @abc.abstractmethod
    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> Asset | None:
        """Provider-specific request and mapping. May raise."""

    async def fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> Asset | None:
        return await guarded(self.source_id, self._fetch(client, symbol, asset_class), None)


class NewsAdapter(abc.ABC):
    """Headlines for a symbol from one feed or API."""

    source_id: str = ""
    asset_classes: frozenset[AssetClass] = frozenset(AssetClass)

    def supports(self, asset_class: AssetClass, include_general: bool) -> bool:
        return asset_class in self.asset_classes and self.is_enabled()

    def is_enabled(self) -> bool:
        return True

    def _timeout(self) -> float:
        from market_insight.infra.config import get_settings
        return get_settings().rss_timeout

    @abc.abstractmethod
    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> list[NewsItem]:
        """Provider-specific request and mapping. May raise."""

    async def fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> list[NewsItem]:
        return await guarded(
            self.source_id, self._fetch(client, symbol, asset_class), [], timeout=self._timeout(),
        )
