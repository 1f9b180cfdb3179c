"""
News sentiment scoring and pattern/news fusion.

Sentiment is a keyword count (positive minus negative, scaled by 1/10 and
clamped to [-1, 1]).  Relevance measures how much an item is *about* the
requested symbol.  Recent, relevant items then nudge the strength of detected
bullish/bearish chart patterns.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from typing import Sequence

from market_insight.data.models import (
    NewsItem,
    NewsSentimentSummary,
    PatternMatch,
    PatternType,
    Signal,
)

logger = logging.getLogger(__name__)

POSITIVE_WORDS = ("increase", "gain", "growth", "positive", "up", "rise", "bullish", "outperform")
NEGATIVE_WORDS = ("decrease", "loss", "decline", "negative", "down", "fall", "bearish", "underperform")

_POSITIVE_RE = re.compile(r"\b(?:%s)\b" % "|".join(POSITIVE_WORDS), re.IGNORECASE)
_NEGATIVE_RE = re.compile(r"\b(?:%s)\b" % "|".join(NEGATIVE_WORDS), re.IGNORECASE)
_SYMBOL_RE = re.compile(r"\$([A-Z]{1,5})\b|\b([A-Z]{2,5})\b(?=\s+(?:stock|share|token|coin|crypto))")

MENTION_BOOST = 1.2
SENTIMENT_BOOST = 1.15
SENTIMENT_THRESHOLD = 0.3
MENTION_NOTE = " (Mentioned in recent news)"


# ---------------------------------------------------------------------------
# Item scoring
# ---------------------------------------------------------------------------

def score_sentiment(text: str) -> float:
    score = len(_POSITIVE_RE.findall(text or "")) - len(_NEGATIVE_RE.findall(text or ""))
    return max(-1.0, min(1.0, score / 10))


def sentiment_label(score: float) -> str:
    if score > 0.2:
        return "positive"
    if score < -0.2:
        return "negative"
    return "neutral"


def extract_symbols(text: str) -> list[str]:
    """Tickers written as ``$ABC`` or followed by stock/share/token/coin/crypto."""
    found: list[str] = []
    for cashtag, named in _SYMBOL_RE.findall(text or ""):
        sym = cashtag or named
        if sym and sym not in found:
            found.append(sym)
    return found


def score_relevance(item: NewsItem, symbol: str) -> float:
    score = 0.0
    if symbol in item.symbols:
        score += 0.5
    if symbol in item.title:
        score += 0.3
    mentions = len(re.findall(rf"\b{re.escape(symbol)}\b", item.content, re.IGNORECASE))
    score += min(0.2, mentions * 0.05)
    return min(1.0, score)


def extract_pattern_mentions(text: str) -> list[PatternType]:
    lowered = (text or "").lower()
    return [p for p in PatternType if p.phrase in lowered]


def score_news_items(items: Sequence[NewsItem], symbol: str) -> list[NewsItem]:
    """Attach symbols, sentiment, relevance and pattern mentions to raw items."""
    symbol = symbol.upper()
    scored: list[NewsItem] = []
    for item in items:
        symbols = list(dict.fromkeys([symbol, *item.symbols, *extract_symbols(item.content)]))
        with_symbols = item.model_copy(update={"symbols": symbols})
        scored.append(with_symbols.model_copy(update={
            "sentiment_score": score_sentiment(item.content or item.title),
            "relevance_score": score_relevance(with_symbols, symbol),
            "mentioned_patterns": extract_pattern_mentions(f"{item.title} {item.content}"),
        }))
    return scored


# ---------------------------------------------------------------------------
# Fusion
# ---------------------------------------------------------------------------

def recent_relevant(
    news: Sequence[NewsItem],
    now: dt.datetime | None = None,
    *,
    max_age_days: int = 7,
    min_relevance: float = 0.6,
) -> list[NewsItem]:
    now = now or dt.datetime.now(dt.timezone.utc)
    cutoff = now - dt.timedelta(days=max_age_days)
    out = []
    for item in news:
        published = item.published_at
        if published.tzinfo is None:
            published = published.replace(tzinfo=dt.timezone.utc)
        if published >= cutoff and item.relevance_score > min_relevance:
            out.append(item)
    return out


def fuse_patterns_with_news(
    patterns: Sequence[PatternMatch],
    news: Sequence[NewsItem],
    now: dt.datetime | None = None,
) -> list[PatternMatch]:
    """Return adjusted copies of *patterns*; inputs are never modified.

    For bullish/bearish patterns only: ×1.2 when the pattern type is mentioned
    in recent relevant news, ×1.15 when mean news sentiment is beyond ±0.3 in
    the pattern's direction.  Factors compose; strength is clamped to 1.0.
    """
    from market_insight.infra.config import get_settings

    s = get_settings()
    relevant = recent_relevant(
        news, now, max_age_days=s.news_max_age_days, min_relevance=s.news_min_relevance,
    )
    if not relevant:
        return list(patterns)

    avg_sentiment = sum(i.sentiment_score for i in relevant) / len(relevant)
    mentioned = {p for item in relevant for p in item.mentioned_patterns}
    logger.debug("fusing %d patterns with %d news items (avg sentiment %.2f, mentioned %s)",
                 len(patterns), len(relevant), avg_sentiment, sorted(p.value for p in mentioned))

    fused: list[PatternMatch] = []
    for pattern in patterns:
        if pattern.signal is Signal.NEUTRAL:
            fused.append(pattern)
            continue

        factor = 1.0
        description = pattern.description
        if pattern.pattern_type in mentioned:
            factor *= MENTION_BOOST
            description += MENTION_NOTE
        if (pattern.signal is Signal.BULLISH and avg_sentiment > SENTIMENT_THRESHOLD) or (
            pattern.signal is Signal.BEARISH and avg_sentiment < -SENTIMENT_THRESHOLD
        ):
            factor *= SENTIMENT_BOOST

        if factor == 1.0:
            fused.append(pattern)
        else:
            fused.append(pattern.model_copy(update={
                "strength": min(1.0, pattern.strength * factor),
                "description": description,
            }))
    return fused


def summarize_news_sentiment(items: Sequence[NewsItem]) -> NewsSentimentSummary:
    """Overall label from the positive/negative share, plus the strongest item on each side."""
    if not items:
        return NewsSentimentSummary()

    positive = [i for i in items if i.sentiment == "positive"]
    negative = [i for i in items if i.sentiment == "negative"]
    score = (len(positive) - len(negative)) / len(items)

    return NewsSentimentSummary(
        sentiment=sentiment_label(score),
        score=score,
        positive_count=len(positive),
        negative_count=len(negative),
        neutral_count=len(items) - len(positive) - len(negative),
        top_positive=max(positive, key=lambda i: i.sentiment_score, default=None),
        top_negative=min(negative, key=lambda i: i.sentiment_score, default=None),
    )
