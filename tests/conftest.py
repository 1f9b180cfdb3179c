"""
Shared test fixtures and helpers.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from typing import Any, Callable, Sequence

import httpx
import pytest

from market_insight.data import market_data
from market_insight.data.models import AssetClass, Candle
from market_insight.data.providers.base import HistoryAdapter

TODAY = dt.date(2026, 3, 2)


# ---------------------------------------------------------------------------
# Candle builders
# ---------------------------------------------------------------------------


def make_candles(
    closes: Sequence[float],
    *,
    end: dt.date = TODAY,
    spread: float = 0.5,
) -> list[Candle]:
    """One candle per close ending at *end*; open is the previous close."""
    first = end - dt.timedelta(days=len(closes) - 1)
    candles: list[Candle] = []
    prev = closes[0]
    for i, close in enumerate(closes):
        o = prev
        candles.append(Candle(
            date=first + dt.timedelta(days=i),
            open=o,
            high=max(o, close) + spread,
            low=min(o, close) - spread,
            close=close,
            volume=1000,
        ))
        prev = close
    return candles


def make_hl_candles(highs: Sequence[float], lows: Sequence[float], *, end: dt.date = TODAY) -> list[Candle]:
    """Candles with explicit highs/lows; open and close sit at the midpoint."""
    first = end - dt.timedelta(days=len(highs) - 1)
    return [
        Candle(
            date=first + dt.timedelta(days=i),
            open=(h + l) / 2,
            high=h,
            low=l,
            close=(h + l) / 2,
            volume=1000,
        )
        for i, (h, l) in enumerate(zip(highs, lows))
    ]


def dated(day: int, close: float, *, month: int = 2) -> Candle:
    return Candle(
        date=dt.date(2026, month, day), open=close, high=close + 1, low=close - 1, close=close,
    )


# ---------------------------------------------------------------------------
# Async / HTTP helpers
# ---------------------------------------------------------------------------


def run(coro):
    return asyncio.run(coro)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """An AsyncClient whose requests are answered by *handler* in-process."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeHistory(HistoryAdapter):
    """History adapter test double returning canned candles or raising."""

    def __init__(
        self,
        source_id: str,
        reliability: int,
        candles: Sequence[Candle] = (),
        *,
        error: Exception | None = None,
        delay: float = 0.0,
        asset_classes: frozenset[AssetClass] = frozenset(AssetClass),
    ) -> None:
        self.source_id = source_id
        self.reliability = reliability
        self.candles = list(candles)
        self.error = error
        self.delay = delay
        self.asset_classes = asset_classes
        self.calls = 0

    async def _fetch(self, client: Any, symbol: str, asset_class: AssetClass, days: int) -> list[Candle]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.candles)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_news_cache():
    market_data.clear_news_cache()
    yield
    market_data.clear_news_cache()


@pytest.fixture
def rising_candles() -> list[Candle]:
    closes = [100 + i for i in range(90)]
    return make_candles(closes)


@pytest.fixture
def failing_client() -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")
    return mock_client(handler)
