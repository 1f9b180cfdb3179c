"""
Stooq daily CSV client for US equities.

Stooq serves ``Date,Open,High,Low,Close,Volume`` CSV for ``<ticker>.us``
symbols.  When a symbol is unknown it answers 200 with the body ``No data``.
"""

from __future__ import annotations

import datetime as dt
import io
import logging

import httpx
import pandas as pd

from market_insight.data.models import AssetClass, Candle
from market_insight.data.providers.base import (
    HistoryAdapter,
    ProviderError,
    build_candle,
    get_with_retry,
)

logger = logging.getLogger(__name__)

_REQUIRED_COLUMNS = ("Date", "Open", "High", "Low", "Close")


def _base_url() -> str:
    from market_insight.infra.config import get_settings
    return get_settings().stooq_url


def _today() -> dt.date:
    from market_insight.infra.config import get_today
    return get_today()


def parse_csv(text: str) -> list[Candle]:
    """Parse Stooq's CSV body into candles (rows with blank prices are skipped)."""
    if not text.strip() or text.strip().lower().startswith("no data"):
        raise ProviderError("no data")

    df = pd.read_csv(io.StringIO(text))
    missing = [c for c in _REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ProviderError(f"unexpected CSV columns, missing {missing}")

    df["Date"] = pd.to_datetime(df["Date"], errors="coerce")
    df = df.dropna(subset=["Date"])
    if "Volume" not in df.columns:
        df["Volume"] = 0.0

    candles: list[Candle] = []
    for row in df.itertuples(index=False):
        candle = build_candle(
            row.Date.date(), row.Open, row.High, row.Low, row.Close, row.Volume,
        )
        if candle is not None:
            candles.append(candle)
    return candles


class StooqHistory(HistoryAdapter):
    source_id = "stooq"
    reliability = 2
    asset_classes = frozenset({AssetClass.STOCK})

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass, days: int,
    ) -> list[Candle]:
        end = _today()
        start = end - dt.timedelta(days=days)
        resp = await get_with_retry(
            client,
            _base_url(),
            params={
                "s": f"{symbol.lower()}.us",
                "i": "d",
                "d1": start.strftime("%Y%m%d"),
                "d2": end.strftime("%Y%m%d"),
            },
        )
        return parse_csv(resp.text)
