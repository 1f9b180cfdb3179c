"""
MarketWatch quote-page scraper (stocks, last resort).

Extracts price and day change from the ``<meta>`` tags on the public quote
page.  HTML scraping breaks whenever the page markup changes, so the adapter
sits behind the same :class:`QuoteAdapter` interface as the JSON sources and
can be switched off with ``ENABLE_HTML_SCRAPING=false``.
"""

from __future__ import annotations

import logging
import re

import httpx

from market_insight.data.models import Asset, AssetClass
from market_insight.data.providers.base import (
    QuoteAdapter,
    default_headers,
    get_with_retry,
    make_asset,
)

logger = logging.getLogger(__name__)

_META_RE = r'<meta\s+name="{name}"\s+content="([^"]*)"'


def _base_url() -> str:
    from market_insight.infra.config import get_settings
    return get_settings().marketwatch_base_url


def _meta(html: str, name: str) -> str | None:
    m = re.search(_META_RE.format(name=re.escape(name)), html, re.IGNORECASE)
    return m.group(1).strip() if m else None


def _number(text: str | None) -> float | None:
    if not text:
        return None
    cleaned = text.replace(",", "").replace("%", "").replace("$", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_quote_page(html: str) -> tuple[float | None, float | None, str | None]:
    """Return ``(price, change_pct, name)`` scraped from a quote page."""
    price = _number(_meta(html, "price"))
    change_pct = _number(_meta(html, "priceChangePercent"))
    name = _meta(html, "name")
    return price, change_pct, name


class MarketWatchQuote(QuoteAdapter):
    source_id = "marketwatch"
    asset_classes = frozenset({AssetClass.STOCK})

    def is_enabled(self) -> bool:
        from market_insight.infra.config import get_settings
        return get_settings().enable_html_scraping

    async def _fetch(
        self, client: httpx.AsyncClient, symbol: str, asset_class: AssetClass,
    ) -> Asset | None:
        headers = {**default_headers(), "Accept": "text/html,application/xhtml+xml"}
        resp = await get_with_retry(
            client, f"{_base_url()}/{symbol.lower()}", headers=headers,
        )
        price, change_pct, name = parse_quote_page(resp.text)
        if price is None:
            logger.debug("MarketWatch page for %s had no price meta tag", symbol)
            return None
        return make_asset(symbol, asset_class, price, change_pct, self.source_id, name=name)
