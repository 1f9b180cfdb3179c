"""
Tests for the end-to-end analysis workflow and the CLI.
"""

from __future__ import annotations

import datetime as dt
import json
from unittest.mock import AsyncMock, patch

import pytest

from market_insight.analysis.prediction import default_prediction
from market_insight.data.market_data import synthetic_result
from market_insight.data.models import (
    AnalysisReport,
    Asset,
    AssetClass,
    CandleSeriesResult,
    NewsItem,
    Provenance,
    Timeframe,
)
from market_insight.main import main
from market_insight.workflow import analyse, run_analysis
from tests.conftest import TODAY, make_candles, run


def _live_series(candles) -> CandleSeriesResult:
    return CandleSeriesResult(
        symbol="AAPL", asset_class=AssetClass.STOCK, days=90,
        candles=candles, provenance=Provenance.LIVE, sources=["yahoo"],
    )


def _asset(price=190.0) -> Asset:
    return Asset(symbol="AAPL", asset_class=AssetClass.STOCK, price=price, source="yahoo")


_NEWS = [NewsItem(
    title="AAPL rallies",
    content="AAPL growth and gain",
    published_at=dt.datetime.now(dt.timezone.utc),
)]


class TestAnalyse:
    @patch("market_insight.workflow.fetch_asset", new_callable=AsyncMock)
    @patch("market_insight.workflow.fetch_news", new_callable=AsyncMock)
    @patch("market_insight.workflow.fetch_candles", new_callable=AsyncMock)
    def test_full_report(self, mock_candles, mock_news, mock_asset, rising_candles):
        mock_candles.return_value = _live_series(rising_candles)
        mock_news.return_value = _NEWS
        mock_asset.return_value = _asset()

        report = run(analyse(" aapl ", AssetClass.STOCK, Timeframe.DAYS_90))
        assert isinstance(report, AnalysisReport)
        assert report.symbol == "AAPL"
        assert len(report.sma) == len(rising_candles)
        assert [i.name for i in report.indicators][0] == "RSI"
        assert report.prediction.is_default is False
        assert [n.title for n in report.news] == ["AAPL rallies"]
        scored = report.news[0]
        assert scored.symbols == ["AAPL"]
        assert scored.sentiment_score == pytest.approx(0.2)
        assert scored.relevance_score == pytest.approx(0.85)
        assert report.news_summary.neutral_count == 1
        assert report.asset.price == 190.0
        assert not report.series.is_using_demo_data

    @patch("market_insight.workflow.fetch_asset", new_callable=AsyncMock, return_value=None)
    @patch("market_insight.workflow.fetch_news", new_callable=AsyncMock)
    @patch("market_insight.workflow.fetch_candles", new_callable=AsyncMock)
    def test_news_skipped(self, mock_candles, mock_news, mock_asset, rising_candles):
        mock_candles.return_value = _live_series(rising_candles)
        report = run(analyse("AAPL", include_news=False))
        mock_news.assert_not_called()
        assert report.news == []
        assert report.news_summary.sentiment == "neutral"

    @patch("market_insight.workflow.fetch_asset", new_callable=AsyncMock, return_value=None)
    @patch("market_insight.workflow.fetch_news", new_callable=AsyncMock, return_value=[])
    @patch("market_insight.workflow.fetch_candles", new_callable=AsyncMock)
    def test_short_series_defaults(self, mock_candles, mock_news, mock_asset):
        mock_candles.return_value = _live_series(make_candles([100.0, 101.0, 102.0]))
        report = run(analyse("AAPL"))
        assert report.indicators == []
        assert report.patterns == []
        assert report.sma[-1].sma10 == 0.0
        assert report.prediction.is_default is False

    @patch("market_insight.workflow.detect_patterns", side_effect=RuntimeError("boom"))
    @patch("market_insight.workflow.fetch_asset", new_callable=AsyncMock, return_value=None)
    @patch("market_insight.workflow.fetch_news", new_callable=AsyncMock, return_value=[])
    @patch("market_insight.workflow.fetch_candles", new_callable=AsyncMock)
    def test_failing_stage_is_isolated(self, mock_candles, mock_news, mock_asset, mock_detect, rising_candles):
        mock_candles.return_value = _live_series(rising_candles)
        report = run(analyse("AAPL"))
        assert report.patterns == []
        assert len(report.indicators) == 5

    @patch("market_insight.workflow.fetch_asset", new_callable=AsyncMock, return_value=None)
    @patch("market_insight.workflow.fetch_news", new_callable=AsyncMock, return_value=[])
    @patch("market_insight.workflow.fetch_candles", new_callable=AsyncMock)
    def test_run_analysis_accepts_strings(self, mock_candles, mock_news, mock_asset):
        mock_candles.return_value = synthetic_result("BTC", AssetClass.CRYPTO, 30, TODAY)
        report = run_analysis("btc", "crypto", "30d")
        assert report.asset_class is AssetClass.CRYPTO
        assert report.timeframe is Timeframe.DAYS_30
        assert report.series.is_using_demo_data


class TestMain:
    @patch("market_insight.main.run_analysis")
    def test_prints_summary(self, mock_run, capsys):
        mock_run.return_value = AnalysisReport(
            symbol="ZZZ",
            asset_class=AssetClass.STOCK,
            timeframe=Timeframe.DAYS_90,
            series=synthetic_result("ZZZ", AssetClass.STOCK, 90, TODAY),
            prediction=default_prediction(100.0),
        )
        main(["zzz"])
        out = capsys.readouterr().out
        assert "MARKET INSIGHT: ZZZ" in out
        assert "SYNTHETIC" in out
        mock_run.assert_called_once_with("ZZZ", "stock", "90d", include_news=True)

    @patch("market_insight.main.run_analysis")
    def test_json_output(self, mock_run, capsys):
        mock_run.return_value = AnalysisReport(
            symbol="AAPL",
            asset_class=AssetClass.STOCK,
            timeframe=Timeframe.YEAR_1,
            series=_live_series(make_candles([100.0, 101.0])),
            prediction=default_prediction(100.0),
        )
        main(["AAPL", "--timeframe", "1y", "--json", "--no-news"])
        payload = json.loads(capsys.readouterr().out)
        assert payload["symbol"] == "AAPL"
        assert payload["series"]["provenance"] == "live"
        mock_run.assert_called_once_with("AAPL", "stock", "1y", include_news=False)
