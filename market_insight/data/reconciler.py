"""
Reconciliation of partial, overlapping provider results into one series.

Merge rule: successful results are visited in reliability order (rank 1
first, stable for ties) and their candles are inserted into a date-keyed
map; a date already present is never overwritten.  The output is sorted by
date, so it is strictly increasing with no duplicates.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Iterable

from market_insight.data.models import Candle, ProviderFailed, ProviderOk, ProviderResult

logger = logging.getLogger(__name__)


@dataclass
class MergedSeries:
    candles: list[Candle] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    failures: list[ProviderFailed] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.candles)


def merge_results(results: Iterable[ProviderResult]) -> MergedSeries:
    """First-writer-wins merge by reliability rank.

    Idempotent: merging the same results again (or a result with itself)
    yields the same series.
    """
    results = list(results)
    ok = sorted(
        (r for r in results if isinstance(r, ProviderOk)),
        key=lambda r: r.reliability,
    )
    failures = [r for r in results if isinstance(r, ProviderFailed)]

    by_date: dict[dt.date, Candle] = {}
    sources: list[str] = []
    for result in ok:
        added = 0
        for candle in result.candles:
            if candle.date not in by_date:
                by_date[candle.date] = candle
                added += 1
        if added and result.source_id not in sources:
            sources.append(result.source_id)
        logger.debug("merge: %s contributed %d of %d candles",
                     result.source_id, added, len(result.candles))

    return MergedSeries(
        candles=[by_date[d] for d in sorted(by_date)],
        sources=sources,
        failures=failures,
    )


def filter_window(candles: list[Candle], days: int, today: dt.date) -> list[Candle]:
    """Keep candles dated on or after ``today - days``."""
    cutoff = today - dt.timedelta(days=days)
    return [c for c in candles if c.date >= cutoff]


def is_strictly_increasing(candles: list[Candle]) -> bool:
    return all(b.date > a.date for a, b in zip(candles, candles[1:]))
