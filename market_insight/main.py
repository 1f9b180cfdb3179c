"""
CLI entry point for Market Insight.

Usage:
    market-insight AAPL
    market-insight AAPL MSFT NVDA               # analyse multiple symbols
    market-insight BTC ETH --asset-class crypto
    market-insight TSLA --timeframe 1y
    market-insight AAPL --json                  # dump the full report as JSON
"""

from __future__ import annotations

import argparse
import logging
import sys

from market_insight.data.models import AnalysisReport, AssetClass, Timeframe
from market_insight.infra.config import get_settings
from market_insight.workflow import run_analysis


def _print_report(report: AnalysisReport) -> None:
    """Pretty-print the analysis summary to stdout."""
    border = "=" * 60
    series = report.series
    print(f"\n{border}")
    print(f"  MARKET INSIGHT: {report.symbol} ({report.asset_class.value}, {report.timeframe.value})")
    print(border)

    if series.is_using_demo_data:
        print("\n  ⚠️  All live sources failed. Showing SYNTHETIC demo data.")
    else:
        print(f"\n  Sources: {', '.join(series.sources)}")
    if series.candles:
        first, last = series.candles[0], series.candles[-1]
        print(f"  Candles: {len(series.candles)} ({first.date} → {last.date}), last close {last.close:,.2f}")
    if report.asset:
        a = report.asset
        print(f"  Quote:   {a.price:,.2f} ({a.change_pct:+.2f}%) via {a.source}  → {a.recommendation.value}")

    if report.indicators:
        print("\n  Indicators:")
        for ind in report.indicators:
            print(f"    • {ind.name:<16} {ind.value:>10.2f}  {ind.signal.value}")

    if report.patterns:
        print("\n  Patterns:")
        for p in sorted(report.patterns, key=lambda p: p.strength, reverse=True):
            print(f"    • [{p.signal.value:>7}] {p.strength:.2f}  {p.description}")

    pred = report.prediction
    label = " (default, insufficient data)" if pred.is_default else ""
    print(f"\n  Prediction{label}: target {pred.target_price:,.2f} "
          f"({pred.expected_move_pct:+.1f}%) in {pred.timeframe}, confidence {pred.probability:.0%}")
    if pred.support_levels:
        print(f"    Support:    {', '.join(f'{lv:,.2f}' for lv in pred.support_levels)}")
    if pred.resistance_levels:
        print(f"    Resistance: {', '.join(f'{lv:,.2f}' for lv in pred.resistance_levels)}")

    summary = report.news_summary
    print(f"\n  News: {len(report.news)} items, overall {summary.sentiment} ({summary.score:+.2f})")
    print(f"{border}\n")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Market data, technical indicators and chart patterns for stocks and crypto",
    )
    parser.add_argument(
        "symbols", nargs="+",
        help="One or more ticker symbols (e.g. AAPL MSFT, or BTC ETH with --asset-class crypto)",
    )
    parser.add_argument(
        "--asset-class", choices=[a.value for a in AssetClass], default=AssetClass.STOCK.value,
        help="Asset class of every symbol given (default: stock)",
    )
    parser.add_argument(
        "--timeframe", choices=[t.value for t in Timeframe], default=Timeframe.DAYS_90.value,
        help="Chart window (default: 90d)",
    )
    parser.add_argument(
        "--no-news", action="store_true",
        help="Skip RSS/news fetching and sentiment fusion",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print the full report as JSON instead of the summary",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    synthetic: list[str] = []
    for sym in args.symbols:
        symbol = sym.upper()
        if not args.json:
            print(f"\n🔍 Analysing {symbol} …")
        try:
            report = run_analysis(
                symbol, args.asset_class, args.timeframe, include_news=not args.no_news,
            )
        except KeyboardInterrupt:
            print("\n⚠️  Analysis interrupted by user.")
            sys.exit(130)

        if report.series.is_using_demo_data:
            synthetic.append(symbol)
        if args.json:
            print(report.model_dump_json(indent=2))
        else:
            _print_report(report)

    if len(args.symbols) > 1 and not args.json:
        print(f"Completed {len(args.symbols)} analyses.")
        if synthetic:
            print(f"Synthetic data used for: {', '.join(synthetic)}")


if __name__ == "__main__":
    main()
