"""
Provider adapters, one module per upstream data source.

Subpackage layout::

    providers/
    ├── base.py            # adapter ABCs, retry-on-429 GET, row mapping
    ├── yahoo.py           # history + quote   (stock, crypto)   rank 1
    ├── stooq.py           # history           (stock)           rank 2
    ├── cryptocompare.py   # history + quote   (crypto)          rank 2
    ├── finnhub.py         # history + news    (needs API key)   rank 3
    ├── yfinance_source.py # broadened history (stock)           rank 4
    ├── coingecko.py       # broadened history + quote (crypto)  rank 4
    ├── marketwatch.py     # HTML-scraped quote (stock, last resort)
    ├── blockchain.py      # BTC on-chain stats + last-resort quote
    └── rss.py             # RSS/Atom news feeds

**Adding a provider** is a one-line change: instantiate it in the matching
registry below.  Order inside a registry is priority order.
"""

from __future__ import annotations

from market_insight.data.providers.base import (
    HistoryAdapter,
    NewsAdapter,
    ProviderError,
    QuoteAdapter,
)
from market_insight.data.providers.blockchain import BlockchainInfoQuote, fetch_onchain_stats
from market_insight.data.providers.coingecko import CoinGeckoHistory, CoinGeckoQuote
from market_insight.data.providers.cryptocompare import CryptoCompareHistory, CryptoCompareQuote
from market_insight.data.providers.finnhub import FinnhubHistory, FinnhubNews
from market_insight.data.providers.marketwatch import MarketWatchQuote
from market_insight.data.providers.rss import default_feeds
from market_insight.data.providers.stooq import StooqHistory
from market_insight.data.providers.yahoo import YahooHistory, YahooQuote
from market_insight.data.providers.yfinance_source import YFinanceHistory

__all__ = [
    "HistoryAdapter",
    "NewsAdapter",
    "ProviderError",
    "QuoteAdapter",
    "broadened_history_adapters",
    "fetch_onchain_stats",
    "news_adapters",
    "primary_history_adapters",
    "quote_adapters",
]


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------

def primary_history_adapters() -> list[HistoryAdapter]:
    """History sources queried concurrently on every request."""
    return [YahooHistory(), StooqHistory(), CryptoCompareHistory(), FinnhubHistory()]


def broadened_history_adapters() -> list[HistoryAdapter]:
    """Sources tried once when the primary merge is below the viable minimum."""
    return [YFinanceHistory(), CoinGeckoHistory()]


def quote_adapters() -> list[QuoteAdapter]:
    """Quote sources in priority order; the first one that answers wins."""
    return [
        YahooQuote(),
        CryptoCompareQuote(),
        CoinGeckoQuote(),
        MarketWatchQuote(),
        BlockchainInfoQuote(),
    ]


def news_adapters() -> list[NewsAdapter]:
    return [*default_feeds(), FinnhubNews()]
