"""
Data layer for Market Insight.

Subpackages
-----------
providers/      One adapter per upstream source (Yahoo, Stooq, CryptoCompare,
                CoinGecko, Finnhub, yfinance, MarketWatch, blockchain.info, RSS).

Top-level modules
-----------------
models.py       Pydantic domain models (candles, provider results, patterns, news).
orchestrator.py Concurrent settle-all fetching across adapters.
reconciler.py   Reliability-ranked merge of partial provider series.
synthetic.py    Deterministic fallback series.
market_data.py  Public entry points: candles, quote, news, on-chain.
"""
