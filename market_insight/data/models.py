"""
Data models for the Market Insight pipeline.

All Pydantic models representing provider outcomes, the canonical candle
series, analysis results (indicators, patterns, predictions) and the news
records fused into them.
"""

from __future__ import annotations

import datetime as dt
import math
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class AssetClass(str, Enum):
    STOCK = "stock"
    CRYPTO = "crypto"


class Timeframe(str, Enum):
    """Chart window requested by the dashboard."""

    DAYS_30 = "30d"
    DAYS_90 = "90d"
    YEAR_1 = "1y"

    @property
    def days(self) -> int:
        return {"30d": 30, "90d": 90, "1y": 365}[self.value]


class Signal(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Provenance(str, Enum):
    """Where a candle series came from."""

    LIVE = "live"
    SYNTHETIC = "synthetic"


class Trend(str, Enum):
    RISING = "RISING"
    FALLING = "FALLING"
    NEUTRAL = "NEUTRAL"


class Recommendation(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class PatternType(str, Enum):
    """Closed set of chart patterns the detector can report."""

    HEAD_AND_SHOULDERS = "head_and_shoulders"
    DOUBLE_TOP = "double_top"
    DOUBLE_BOTTOM = "double_bottom"
    ASCENDING_TRIANGLE = "ascending_triangle"
    DESCENDING_TRIANGLE = "descending_triangle"
    SYMMETRICAL_TRIANGLE = "symmetrical_triangle"
    FLAG = "flag"
    PENNANT = "pennant"
    WEDGE = "wedge"
    CUP_AND_HANDLE = "cup_and_handle"
    SUPPORT = "support"
    RESISTANCE = "resistance"

    @property
    def phrase(self) -> str:
        """Lowercase phrase used to spot the pattern in news text."""
        return self.value.replace("_", " ")


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------

class Candle(BaseModel):
    """One daily OHLCV bar.

    Rejects non-finite or non-positive prices and bars where the body is not
    contained in the high/low range.
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def _check_ohlc(self) -> "Candle":
        prices = (self.open, self.high, self.low, self.close)
        if not all(math.isfinite(p) and p > 0 for p in prices):
            raise ValueError(f"non-finite or non-positive price in {prices}")
        body_low = min(self.open, self.close)
        body_high = max(self.open, self.close)
        if not (self.low <= body_low and body_high <= self.high):
            raise ValueError(
                f"OHLC invariant violated on {self.date}: "
                f"O={self.open} H={self.high} L={self.low} C={self.close}"
            )
        return self


class ProviderOk(BaseModel):
    status: Literal["ok"] = "ok"
    source_id: str
    reliability: int
    candles: list[Candle] = Field(default_factory=list)


class ProviderFailed(BaseModel):
    status: Literal["failed"] = "failed"
    source_id: str
    reason: str


ProviderResult = Annotated[Union[ProviderOk, ProviderFailed], Field(discriminator="status")]


class CandleSeriesResult(BaseModel):
    """Canonical series for one request, with its provenance."""

    symbol: str
    asset_class: AssetClass
    days: int
    candles: list[Candle] = Field(default_factory=list)
    provenance: Provenance = Provenance.LIVE
    sources: list[str] = Field(
        default_factory=list,
        description="source_ids that contributed at least one candle, by reliability.",
    )
    failures: list[ProviderFailed] = Field(default_factory=list)

    @property
    def is_using_demo_data(self) -> bool:
        return self.provenance is Provenance.SYNTHETIC


class SMAPoint(BaseModel):
    """Moving averages for one date; ``0.0`` means the window is not yet full."""

    date: dt.date
    close: float
    sma10: float = 0.0
    sma20: float = 0.0
    sma50: float = 0.0


class Asset(BaseModel):
    """Latest quote snapshot for a symbol."""

    symbol: str
    name: str = ""
    asset_class: AssetClass
    price: float
    change_pct: float = 0.0
    market_cap: Optional[float] = None
    volume: Optional[float] = None
    trend: Trend = Trend.NEUTRAL
    recommendation: Recommendation = Recommendation.HOLD
    source: str = ""


class OnChainData(BaseModel):
    """Bitcoin network statistics."""

    n_transactions: int = 0
    hash_rate: float = 0.0
    difficulty: float = 0.0
    total_fees_btc: float = 0.0
    avg_transaction_value_usd: float = 0.0
    market_price_usd: float = 0.0
    trade_volume_usd: float = 0.0
    source: str = "blockchain.info"


# ---------------------------------------------------------------------------
# Analysis results
# ---------------------------------------------------------------------------

class Indicator(BaseModel):
    name: str
    value: float
    signal: Signal = Signal.NEUTRAL
    description: str = ""


class PatternMatch(BaseModel):
    """A detected chart pattern over a contiguous span of the series."""

    model_config = ConfigDict(frozen=True)

    pattern_type: PatternType
    signal: Signal
    strength: float = Field(ge=0.0, le=1.0)
    level: Optional[float] = Field(
        default=None,
        description="Price level for support/resistance and breakout lines.",
    )
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    start_date: dt.date
    end_date: dt.date
    description: str = ""


class Prediction(BaseModel):
    target_price: float
    timeframe: str = "1m"
    probability: float = Field(ge=0.0, le=1.0)
    expected_move_pct: float = 0.0
    support_levels: list[float] = Field(default_factory=list)
    resistance_levels: list[float] = Field(default_factory=list)
    is_default: bool = Field(
        default=False,
        description="True when there was too little data and neutral defaults were returned.",
    )


# ---------------------------------------------------------------------------
# News
# ---------------------------------------------------------------------------

class NewsItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    content: str = ""
    url: str = ""
    source: str = ""
    published_at: dt.datetime
    symbols: list[str] = Field(default_factory=list)
    sentiment_score: float = Field(default=0.0, ge=-1.0, le=1.0)
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    mentioned_patterns: list[PatternType] = Field(default_factory=list)

    @property
    def sentiment(self) -> str:
        if self.sentiment_score > 0.2:
            return "positive"
        if self.sentiment_score < -0.2:
            return "negative"
        return "neutral"


class NewsSentimentSummary(BaseModel):
    sentiment: str = "neutral"
    score: float = 0.0
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    top_positive: Optional[NewsItem] = None
    top_negative: Optional[NewsItem] = None


# ---------------------------------------------------------------------------
# Aggregate report
# ---------------------------------------------------------------------------

class AnalysisReport(BaseModel):
    """Everything the dashboard renders for one symbol."""

    symbol: str
    asset_class: AssetClass
    timeframe: Timeframe
    series: CandleSeriesResult
    sma: list[SMAPoint] = Field(default_factory=list)
    indicators: list[Indicator] = Field(default_factory=list)
    patterns: list[PatternMatch] = Field(default_factory=list)
    prediction: Prediction
    news: list[NewsItem] = Field(default_factory=list)
    news_summary: NewsSentimentSummary = Field(default_factory=NewsSentimentSummary)
    asset: Optional[Asset] = None
    generated_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )
