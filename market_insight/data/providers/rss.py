"""
RSS/Atom news feeds, parsed with feedparser.

Feeds come in two scopes: *symbol* feeds are queried with the ticker in the
URL (Nasdaq, Yahoo Finance), *general* feeds carry market-wide headlines and
are only included when the caller asks for them.  Crypto-only feeds
(CoinTelegraph, CoinDesk) are skipped for stocks.

Items come back unscored; sentiment/relevance are assigned by
:mod:`market_insight.analysis.sentiment`.
"""

from __future__ import annotations

import calendar
import datetime as dt
import logging
import re

import feedparser
import httpx

from market_insight.data.models import AssetClass, NewsItem
from market_insight.data.providers.base import NewsAdapter, default_headers, get_with_retry

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"</?[^>]+(>|$)")

_SOURCE_HINTS: list[tuple[str, str]] = [
    ("marketwatch", "MarketWatch"),
    ("nasdaq.com", "Nasdaq"),
    ("yahoo", "Yahoo Finance"),
    ("coindesk", "CoinDesk"),
    ("cointelegraph", "CoinTelegraph"),
    ("investing.com", "Investing.com"),
    ("bloomberg", "Bloomberg"),
    ("cnbc", "CNBC"),
    ("reuters", "Reuters"),
]


def strip_html(text: str) -> str:
    return _TAG_RE.sub("", text or "").strip()


def source_from_text(*texts: str) -> str | None:
    """Guess the publisher from a URL or body text."""
    for text in texts:
        lowered = (text or "").lower()
        for needle, name in _SOURCE_HINTS:
            if needle in lowered:
                return name
    return None


def _published(entry: feedparser.FeedParserDict) -> dt.datetime:
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed:
        return dt.datetime.fromtimestamp(calendar.timegm(parsed), tz=dt.timezone.utc)
    return dt.datetime.now(dt.timezone.utc)


def _content(entry: feedparser.FeedParserDict) -> str:
    if entry.get("summary"):
        return entry["summary"]
    blocks = entry.get("content") or []
    return blocks[0].get("value", "") if blocks else ""


def parse_feed(raw: bytes | str, default_source: str) -> list[NewsItem]:
    """Parse an RSS 2.0 or Atom document into :class:`NewsItem` records."""
    feed = feedparser.parse(raw)
    if feed.get("bozo") and not feed.entries:
        logger.debug("%s feed unparseable: %s", default_source, feed.get("bozo_exception"))
        return []

    items: list[NewsItem] = []
    for entry in feed.entries:
        title = strip_html(entry.get("title", ""))
        if not title:
            continue
        link = entry.get("link", "")
        content = strip_html(_content(entry))
        items.append(NewsItem(
            title=title,
            content=content,
            url=link,
            source=source_from_text(link, content) or default_source,
            published_at=_published(entry),
        ))
    return items


class RssFeed(NewsAdapter):
    """One RSS endpoint; ``{symbol}`` in *url* is filled per request."""

    def __init__(
        self,
        source_id: str,
        url: str,
        *,
        general: bool = False,
        asset_classes: frozenset[AssetClass] = frozenset(AssetClass),
    ) -> None:
        self.source_id = source_id
        self.url = url
        self.general = general
        self.asset_classes = asset_classes

    def supports(self, asset_class: AssetClass, include_general: bool) -> bool:
        if self.general and not include_general:
            return False
        return super().supports(asset_class, include_general)

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> list[NewsItem]:
        url = self.url.format(symbol=symbol.upper())
        resp = await get_with_retry(
            client,
            url,
            headers={**default_headers(), "Accept": "application/rss+xml, application/xml, text/xml, */*"},
            timeout=self._timeout(),
        )
        items = parse_feed(resp.content, self.source_id)
        logger.debug("%s: %d items for %s", self.source_id, len(items), symbol)
        return items

    def __repr__(self) -> str:
        return f"<RssFeed {self.source_id}>"


def default_feeds() -> list[RssFeed]:
    crypto = frozenset({AssetClass.CRYPTO})
    return [
        RssFeed("Nasdaq", "https://www.nasdaq.com/feed/rssoutbound?symbol={symbol}"),
        RssFeed("Yahoo Finance", "https://finance.yahoo.com/rss/headline?s={symbol}"),
        RssFeed("MarketWatch", "https://www.marketwatch.com/rss/topstories", general=True),
        RssFeed("CoinTelegraph", "https://cointelegraph.com/rss", general=True, asset_classes=crypto),
        RssFeed(
            "CoinDesk", "https://www.coindesk.com/arc/outboundfeeds/rss/",
            general=True, asset_classes=crypto,
        ),
        RssFeed("Investing.com", "https://www.investing.com/rss/news.rss", general=True),
    ]
