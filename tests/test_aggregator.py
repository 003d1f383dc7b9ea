"""Tests for composite symbol and portfolio views."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from portfolio_ai.cache import InMemoryCache
from portfolio_ai.domain.models import (
    Bar,
    CapabilityKind,
    FearGreedReading,
    Fundamentals,
    HistoricalBars,
    Holding,
    NewsArticle,
    NewsFeed,
    Provenance,
    Snapshot,
)
from portfolio_ai.providers.market_router import MarketDataRouter
from portfolio_ai.services.aggregator import MarketDataAggregator


class _KindProvider:
    """Returns a fixed result per (kind, symbol); raises for anything listed in ``errors``."""

    def __init__(self, name, results, errors=()):
        self.name = name
        self.results = results
        self.errors = set(errors)
        self.fetch = AsyncMock(side_effect=self._fetch)

    def supports(self, request):
        return True

    async def _fetch(self, request):
        if request.kind in self.errors:
            raise TimeoutError(f"{request.kind.value} timed out")
        return self.results.get((request.kind, request.symbol))


def _bars(symbol, closes, source="Test"):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return HistoricalBars(
        symbol=symbol,
        bars=[
            Bar(timestamp=start + timedelta(days=i), open=c, high=c, low=c, close=c, volume=1000.0)
            for i, c in enumerate(closes)
        ],
        provenance=Provenance(source),
    )


def _router(provider):
    chains = {kind: [provider] for kind in CapabilityKind}
    return MarketDataRouter(chains, InMemoryCache())


def _snapshot(symbol, price, source="Test"):
    return Snapshot(symbol=symbol, price=price, provenance=Provenance(source), previous_close=price - 1)


class TestSymbolView:
    def test_failed_capability_does_not_fail_view(self):
        provider = _KindProvider(
            "Test",
            {
                (CapabilityKind.SNAPSHOT, "AAPL"): _snapshot("AAPL", 200.0),
                (CapabilityKind.HISTORICAL_BARS, "AAPL"): _bars("AAPL", [190.0, 195.0, 200.0]),
            },
            errors={CapabilityKind.NEWS},
        )
        aggregator = MarketDataAggregator(_router(provider))

        view = asyncio.run(aggregator.build_symbol_view("aapl"))

        assert view.symbol == "AAPL"
        assert view.current_price == 200.0
        assert len(view.historical_bars) == 3
        assert view.news is None
        assert view.fundamentals is None
        assert set(view.provenance) == {"snapshot", "historical_bars"}
        assert not view.is_empty

        data = view.to_dict()
        assert data["news"] is None
        assert data["provenance"]["snapshot"]["source"] == "Test"

    def test_malformed_news_payload_does_not_fail_view(self):
        provider = _KindProvider(
            "Test",
            {
                (CapabilityKind.SNAPSHOT, "AAPL"): _snapshot("AAPL", 200.0),
                (CapabilityKind.NEWS, "AAPL"): {"results": []},
            },
        )
        aggregator = MarketDataAggregator(_router(provider))

        view = asyncio.run(aggregator.build_symbol_view("AAPL"))

        assert view.current_price == 200.0
        assert view.news is None
        assert "news" not in view.provenance

    def test_dividend_yield_uses_snapshot_price(self):
        provider = _KindProvider(
            "Test",
            {
                (CapabilityKind.SNAPSHOT, "KO"): _snapshot("KO", 50.0),
                (CapabilityKind.FUNDAMENTALS, "KO"): Fundamentals(
                    symbol="KO", provenance=Provenance("Test"), annual_dividend=1.5
                ),
            },
        )
        aggregator = MarketDataAggregator(_router(provider))

        view = asyncio.run(aggregator.build_symbol_view("KO"))

        assert view.fundamentals.dividend_yield == 3.0

    def test_unknown_symbol_is_empty(self):
        aggregator = MarketDataAggregator(_router(_KindProvider("Test", {})))

        view = asyncio.run(aggregator.build_symbol_view("ZZZZ"))

        assert view.is_empty
        assert view.current_price is None


class TestAnalysisContext:
    def test_enriched_with_technicals_sentiment_and_pattern(self):
        closes = [100.0 + i for i in range(40)]
        provider = _KindProvider(
            "Test",
            {
                (CapabilityKind.SNAPSHOT, "AAPL"): _snapshot("AAPL", 141.0),
                (CapabilityKind.HISTORICAL_BARS, "AAPL"): _bars("AAPL", closes),
                (CapabilityKind.NEWS, "AAPL"): NewsFeed(
                    symbol="AAPL",
                    articles=[NewsArticle(headline="Apple shares surge on record profit")],
                    provenance=Provenance("Test"),
                ),
            },
        )
        fear_greed = MagicMock()
        fear_greed.get_index = AsyncMock(return_value=FearGreedReading(value=20, value_text="Extreme Fear", source="CNN"))
        classifier = MagicMock()
        classifier.classify = AsyncMock(return_value="steady uptrend")
        aggregator = MarketDataAggregator(_router(provider), fear_greed=fear_greed, pattern_classifier=classifier)

        context = asyncio.run(aggregator.build_analysis_context("AAPL"))

        assert context.technicals.current_price == 141.0
        assert context.trend.trend == "strong uptrend"
        assert context.trend.pattern == "steady uptrend"
        assert context.sentiment.overall == "positive"
        assert context.fear_greed.value == 20
        assert context.fear_greed_interpretation.startswith("Extreme Fear")
        classifier.classify.assert_awaited_once()

    def test_short_history_skips_pattern_classifier(self):
        provider = _KindProvider(
            "Test",
            {
                (CapabilityKind.SNAPSHOT, "AAPL"): _snapshot("AAPL", 100.0),
                (CapabilityKind.HISTORICAL_BARS, "AAPL"): _bars("AAPL", [100.0] * 5),
            },
        )
        classifier = MagicMock()
        classifier.classify = AsyncMock(return_value="never")
        aggregator = MarketDataAggregator(_router(provider), pattern_classifier=classifier)

        context = asyncio.run(aggregator.build_analysis_context("AAPL"))

        assert context.trend.trend == "limited data"
        assert context.trend.pattern is None
        assert context.fear_greed is None
        assert context.fear_greed_interpretation == "Unable to determine market sentiment"
        classifier.classify.assert_not_awaited()


class TestPortfolioView:
    def test_missing_price_is_reported_and_valued_at_cost(self):
        provider = _KindProvider(
            "Test",
            {
                (CapabilityKind.SNAPSHOT, "AAPL"): _snapshot("AAPL", 150.0, source="Polygon.io"),
                (CapabilityKind.SNAPSHOT, "BRKA"): _snapshot("BRKA", 600000.0, source="Alpaca"),
            },
        )
        aggregator = MarketDataAggregator(_router(provider))
        holdings = [
            Holding(symbol="AAPL", shares=10, cost_per_share=100.0),
            Holding(symbol="BRK.A", shares=1, cost_per_share=500000.0),
            Holding(symbol="GONE", shares=3, cost_per_share=10.0),
        ]

        view = asyncio.run(aggregator.build_portfolio_view(holdings))

        assert view.failed_symbols == ["GONE"]
        assert view.provenance["AAPL"].source == "Polygon.io"
        assert view.provenance["BRK.A"].source == "Alpaca"
        values = {row.symbol: row.current_value for row in view.metrics.holdings}
        assert values == {"AAPL": 1500.0, "BRK.A": 600000.0, "GONE": 30.0}
        assert view.to_dict()["failedSymbols"] == ["GONE"]

    def test_portfolio_context_details_largest_holdings(self):
        results = {}
        holdings = []
        for i in range(12):
            symbol = f"S{i:02d}"
            results[(CapabilityKind.SNAPSHOT, symbol)] = _snapshot(symbol, 10.0 + i)
            holdings.append(Holding(symbol=symbol, shares=1, cost_per_share=10.0))
        aggregator = MarketDataAggregator(_router(_KindProvider("Test", results)))

        context = asyncio.run(aggregator.build_portfolio_analysis_context(holdings))

        detailed = [detail.view.symbol for detail in context.details]
        assert len(detailed) == 10
        assert detailed[0] == "S11"
        assert "S00" not in detailed and "S01" not in detailed
