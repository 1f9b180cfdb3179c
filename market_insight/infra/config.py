"""
Runtime settings for the market-data pipeline.

Provider endpoints, timeouts, rate-limit backoff and analysis thresholds are
read from the environment (or a ``.env`` file) once at import time.
"""

from __future__ import annotations

import datetime as dt
import os
import re
from functools import lru_cache
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings read from environment variables.

    Every attribute has a sensible default so the pipeline runs out of the
    box with no API keys at all; keyed providers simply stay disabled.
    """

    # -- API keys ----------------------------------------------------------------
    finnhub_api_key: str = os.getenv("FINNHUB_API_KEY", "")

    # -- API base URLs -----------------------------------------------------------
    yahoo_chart_url: str = os.getenv(
        "YAHOO_CHART_URL", "https://query1.finance.yahoo.com/v8/finance/chart"
    )
    stooq_url: str = os.getenv("STOOQ_URL", "https://stooq.com/q/d/l")
    cryptocompare_base_url: str = os.getenv(
        "CRYPTOCOMPARE_BASE_URL", "https://min-api.cryptocompare.com/data"
    )
    coingecko_base_url: str = os.getenv(
        "COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3"
    )
    finnhub_base_url: str = os.getenv(
        "FINNHUB_BASE_URL", "https://finnhub.io/api/v1"
    )
    marketwatch_base_url: str = os.getenv(
        "MARKETWATCH_BASE_URL", "https://www.marketwatch.com/investing/stock"
    )
    blockchain_stats_url: str = os.getenv(
        "BLOCKCHAIN_STATS_URL", "https://api.blockchain.info/stats"
    )

    # -- HTTP client identity ------------------------------------------------------
    user_agent: str = os.getenv(
        "USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
    )
    alt_user_agent: str = os.getenv(
        "ALT_USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36 Edg/96.0.1054.62",
    )

    # -- HTTP timeouts / rate limiting (seconds) -----------------------------------
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "10"))
    rate_limit_backoff: float = float(os.getenv("RATE_LIMIT_BACKOFF", "2"))

    # -- News / RSS ----------------------------------------------------------------
    rss_timeout: float = float(os.getenv("RSS_TIMEOUT", "5"))
    rss_cache_ttl: int = int(os.getenv("RSS_CACHE_TTL", "1800"))
    news_max_age_days: int = int(os.getenv("NEWS_MAX_AGE_DAYS", "7"))
    news_min_relevance: float = float(os.getenv("NEWS_MIN_RELEVANCE", "0.6"))

    # -- Scraping ------------------------------------------------------------------
    # MarketWatch quote scraping breaks whenever their markup changes.
    enable_html_scraping: bool = _env_bool("ENABLE_HTML_SCRAPING", "true")

    # -- Analysis thresholds -------------------------------------------------------
    min_viable_points: int = int(os.getenv("MIN_VIABLE_POINTS", "10"))
    pattern_min_candles: int = int(os.getenv("PATTERN_MIN_CANDLES", "30"))
    indicator_min_candles: int = int(os.getenv("INDICATOR_MIN_CANDLES", "30"))
    recommendation_threshold_pct: float = float(
        os.getenv("RECOMMENDATION_THRESHOLD_PCT", "2")
    )

    # -- Timezone -------------------------------------------------------------------
    timezone: str = os.getenv("TIMEZONE", "UTC")

    # -- Logging ----------------------------------------------------------------------
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def finnhub_enabled(self) -> bool:
        return bool(self.finnhub_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


_OFFSET_RE = re.compile(r"^(?:UTC|GMT)([+-])(\d{1,2})(?::(\d{2}))?$", re.IGNORECASE)


def _parse_tz(name: str) -> dt.tzinfo:
    """IANA zone name (``America/New_York``) or fixed offset (``UTC+8``, ``GMT-05:30``)."""
    offset = _OFFSET_RE.match(name.strip())
    if offset is None:
        return ZoneInfo(name)
    sign, hours, minutes = offset.groups()
    delta = dt.timedelta(hours=int(hours), minutes=int(minutes or 0))
    return dt.timezone(-delta if sign == "-" else delta)


def get_today() -> dt.date:
    """Calendar date in ``TIMEZONE``; anchors the candle window and synthetic series."""
    return dt.datetime.now(_parse_tz(get_settings().timezone)).date()
