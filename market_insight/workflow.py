"""
End-to-end analysis workflow.

Fetches candles, news and the latest quote concurrently, then runs the
analysis stages in order:

    candles → SMA series → indicators → patterns → news scoring and fusion → prediction

Each analysis stage is isolated: a stage that fails is logged and replaced
by its empty default so the report is always produced.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, TypeVar

import httpx

from market_insight.analysis.indicators import generate_technical_indicators, sma_series
from market_insight.analysis.patterns import detect_patterns
from market_insight.analysis.prediction import default_prediction, generate_prediction
from market_insight.analysis.sentiment import (
    fuse_patterns_with_news,
    score_news_items,
    summarize_news_sentiment,
)
from market_insight.data.market_data import (
    client_scope,
    fetch_asset,
    fetch_candles,
    fetch_news,
)
from market_insight.data.models import (
    AnalysisReport,
    AssetClass,
    NewsSentimentSummary,
    Timeframe,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _stage(name: str, fn: Callable[[], T], default: T) -> T:
    try:
        return fn()
    except Exception as exc:
        logger.warning("%s stage failed: %s", name, exc)
        return default


async def analyse(
    symbol: str,
    asset_class: AssetClass = AssetClass.STOCK,
    timeframe: Timeframe = Timeframe.DAYS_90,
    *,
    include_news: bool = True,
    client: httpx.AsyncClient | None = None,
) -> AnalysisReport:
    """Build the full :class:`AnalysisReport` for one symbol. Never raises."""
    symbol = symbol.strip().upper()
    asset_class = AssetClass(asset_class)
    timeframe = Timeframe(timeframe)

    async with client_scope(client) as c:
        series, news, asset = await asyncio.gather(
            fetch_candles(symbol, asset_class, timeframe, client=c),
            fetch_news(symbol, asset_class, client=c) if include_news else asyncio.sleep(0, result=[]),
            fetch_asset(symbol, asset_class, client=c),
        )

    news = _stage("news scoring", lambda: score_news_items(news, symbol), news)
    candles = series.candles
    sma = _stage("sma", lambda: sma_series(candles), [])
    indicators = _stage("indicators", lambda: generate_technical_indicators(candles), [])
    patterns = _stage("patterns", lambda: detect_patterns(candles), [])
    patterns = _stage("news fusion", lambda: fuse_patterns_with_news(patterns, news), patterns)
    summary = _stage("news summary", lambda: summarize_news_sentiment(news), NewsSentimentSummary())

    current_price = asset.price if asset else None
    prediction = _stage(
        "prediction",
        lambda: generate_prediction(candles, current_price),
        default_prediction(current_price or (candles[-1].close if candles else 0.0)),
    )

    if series.is_using_demo_data:
        logger.warning("%s report is based on synthetic data", symbol)

    return AnalysisReport(
        symbol=symbol,
        asset_class=asset_class,
        timeframe=timeframe,
        series=series,
        sma=sma,
        indicators=indicators,
        patterns=patterns,
        prediction=prediction,
        news=news,
        news_summary=summary,
        asset=asset,
    )


def run_analysis(
    symbol: str,
    asset_class: AssetClass | str = AssetClass.STOCK,
    timeframe: Timeframe | str = Timeframe.DAYS_90,
    *,
    include_news: bool = True,
) -> AnalysisReport:
    """
    Synchronous wrapper around :func:`analyse`.

    Parameters
    ----------
    symbol : str
        Ticker symbol (e.g. "AAPL", "BTC").
    asset_class : AssetClass | str
        ``"stock"`` or ``"crypto"``.
    timeframe : Timeframe | str
        ``"30d"``, ``"90d"`` or ``"1y"``.
    include_news : bool
        Skip the RSS/news fetch when ``False``.

    Returns
    -------
    AnalysisReport
        Always returned; ``report.series.provenance`` says whether it is live.
    """
    return asyncio.run(analyse(
        symbol,
        AssetClass(asset_class),
        Timeframe(timeframe),
        include_news=include_news,
    ))
