"""
blockchain.info network statistics for Bitcoin.

Feeds the on-chain panel and doubles as the last-resort BTC quote source
(``market_price_usd``) when every price API is down.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from market_insight.data.models import Asset, AssetClass, OnChainData
from market_insight.data.providers.base import (
    ProviderError,
    QuoteAdapter,
    get_with_retry,
    guarded,
    make_asset,
)

logger = logging.getLogger(__name__)

# blockchain.info reports fees in satoshi.
_SATOSHI = 100_000_000


def _stats_url() -> str:
    from market_insight.infra.config import get_settings
    return get_settings().blockchain_stats_url


def parse_stats(payload: dict[str, Any]) -> OnChainData:
    if not payload or "n_tx" not in payload:
        raise ProviderError("unexpected stats payload")
    n_tx = int(payload.get("n_tx") or 0)
    tx_volume = float(payload.get("estimated_transaction_volume_usd") or 0.0)
    return OnChainData(
        n_transactions=n_tx,
        hash_rate=float(payload.get("hash_rate") or 0.0),
        difficulty=float(payload.get("difficulty") or 0.0),
        total_fees_btc=float(payload.get("total_fees_btc") or 0.0) / _SATOSHI,
        avg_transaction_value_usd=tx_volume / n_tx if n_tx else 0.0,
        market_price_usd=float(payload.get("market_price_usd") or 0.0),
        trade_volume_usd=float(payload.get("trade_volume_usd") or 0.0),
    )


async def _fetch_stats(client: httpx.AsyncClient) -> OnChainData:
    resp = await get_with_retry(client, _stats_url())
    return parse_stats(resp.json())


async def fetch_onchain_stats(client: httpx.AsyncClient) -> OnChainData | None:
    """Bitcoin network stats, or ``None`` when blockchain.info is unavailable."""
    return await guarded("blockchain.info", _fetch_stats(client), None)


class BlockchainInfoQuote(QuoteAdapter):
    source_id = "blockchain.info"
    asset_classes = frozenset({AssetClass.CRYPTO})

    def supports(self, symbol: str, asset_class: AssetClass) -> bool:
        return symbol.upper() == "BTC" and super().supports(symbol, asset_class)

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> Asset | None:
        stats = await _fetch_stats(client)
        return make_asset(
            symbol, asset_class, stats.market_price_usd, 0.0, self.source_id,
            name="Bitcoin",
            volume=stats.trade_volume_usd or None,
        )
