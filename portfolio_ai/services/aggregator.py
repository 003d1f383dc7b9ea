"""Composite views over the market data router for the API and the analysis prompts."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..analytics.news_sentiment import NewsSentiment, analyze_news_sentiment
from ..analytics.portfolio import PortfolioMetrics, compute_portfolio_metrics
from ..analytics.technical import (
    HistoricalTrend,
    TechnicalIndicators,
    compute_technical_indicators,
    extract_historical_trend,
)
from ..domain.models import (
    CapabilityKind,
    CapabilityRequest,
    FearGreedReading,
    Fundamentals,
    HistoricalBars,
    Holding,
    NewsFeed,
    Provenance,
    Snapshot,
)
from ..domain.symbols import normalize_symbol
from ..providers.fear_greed import FearGreedProvider, interpret_fear_greed
from ..providers.market_router import MarketDataRouter
from .patterns import PatternClassifier

logger = logging.getLogger(__name__)

DETAILED_HOLDINGS_LIMIT = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SymbolView:
    """Everything known about one symbol; each capability may be missing."""
    symbol: str
    snapshot: Optional[Snapshot] = None
    historical_bars: Optional[HistoricalBars] = None
    news: Optional[NewsFeed] = None
    fundamentals: Optional[Fundamentals] = None
    provenance: Dict[str, Provenance] = field(default_factory=dict)
    aggregated_at: datetime = field(default_factory=_now)

    @property
    def is_empty(self) -> bool:
        return not any((self.snapshot, self.historical_bars, self.news, self.fundamentals))

    @property
    def current_price(self) -> Optional[float]:
        return self.snapshot.price if self.snapshot else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "historicalBars": self.historical_bars.to_dict() if self.historical_bars else None,
            "news": self.news.to_dict() if self.news else None,
            "fundamentals": self.fundamentals.to_dict() if self.fundamentals else None,
            "provenance": {kind: prov.to_dict() for kind, prov in self.provenance.items()},
            "aggregatedAt": self.aggregated_at.isoformat(),
        }


@dataclass
class AnalysisContext:
    """Symbol view enriched with derived analytics for the stock prompt."""
    view: SymbolView
    technicals: Optional[TechnicalIndicators] = None
    trend: Optional[HistoricalTrend] = None
    sentiment: NewsSentiment = field(default_factory=NewsSentiment)
    fear_greed: Optional[FearGreedReading] = None

    @property
    def fear_greed_interpretation(self) -> str:
        if self.fear_greed is None:
            return "Unable to determine market sentiment"
        return interpret_fear_greed(self.fear_greed.value)


@dataclass
class PortfolioView:
    metrics: PortfolioMetrics
    failed_symbols: List[str] = field(default_factory=list)
    provenance: Dict[str, Provenance] = field(default_factory=dict)
    aggregated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        data = self.metrics.to_dict()
        data["failedSymbols"] = list(self.failed_symbols)
        data["provenance"] = {symbol: prov.to_dict() for symbol, prov in self.provenance.items()}
        data["aggregatedAt"] = self.aggregated_at.isoformat()
        return data


@dataclass
class PortfolioAnalysisContext:
    view: PortfolioView
    details: List[AnalysisContext] = field(default_factory=list)
    fear_greed: Optional[FearGreedReading] = None

    @property
    def fear_greed_interpretation(self) -> str:
        if self.fear_greed is None:
            return "Unable to determine market sentiment"
        return interpret_fear_greed(self.fear_greed.value)


class MarketDataAggregator:
    """
    Builds composite views from independent capability lookups.

    A missing capability is recorded as None and never fails the composite.
    """

    def __init__(
        self,
        router: MarketDataRouter,
        fear_greed: Optional[FearGreedProvider] = None,
        pattern_classifier: Optional[PatternClassifier] = None,
    ):
        self.router = router
        self.fear_greed = fear_greed
        self.pattern_classifier = pattern_classifier

    async def build_symbol_view(self, symbol: str, is_crypto: Optional[bool] = None) -> SymbolView:
        symbol = normalize_symbol(symbol)
        kinds = list(CapabilityKind)
        lookups = await asyncio.gather(
            *(self.router.get(CapabilityRequest.for_symbol(symbol, kind, is_crypto)) for kind in kinds)
        )
        results = {kind: lookup.result for kind, lookup in zip(kinds, lookups)}

        snapshot = results[CapabilityKind.SNAPSHOT]
        fundamentals = results[CapabilityKind.FUNDAMENTALS]
        if fundamentals is not None:
            fundamentals = fundamentals.with_price(snapshot.price if snapshot else None)

        view = SymbolView(
            symbol=symbol,
            snapshot=snapshot,
            historical_bars=results[CapabilityKind.HISTORICAL_BARS],
            news=results[CapabilityKind.NEWS],
            fundamentals=fundamentals,
            provenance={
                kind.value: result.provenance
                for kind, result in results.items()
                if result is not None
            },
        )

        missing = [kind.value for kind, result in results.items() if result is None]
        if missing:
            logger.info("Symbol view for %s missing: %s", symbol, ", ".join(missing))
        return view

    async def get_fear_greed(self) -> Optional[FearGreedReading]:
        if self.fear_greed is None:
            return None
        return await self.fear_greed.get_index()

    async def build_analysis_context(
        self,
        symbol: str,
        is_crypto: Optional[bool] = None,
        current_price: Optional[float] = None,
    ) -> AnalysisContext:
        view, fear_greed = await asyncio.gather(
            self.build_symbol_view(symbol, is_crypto),
            self.get_fear_greed(),
        )
        return await self._enrich(view, fear_greed, current_price)

    async def _enrich(
        self,
        view: SymbolView,
        fear_greed: Optional[FearGreedReading],
        current_price: Optional[float] = None,
    ) -> AnalysisContext:
        bars = view.historical_bars
        price = current_price if current_price is not None else view.current_price

        technicals = compute_technical_indicators(bars, price) if bars else None
        trend = extract_historical_trend(bars)
        if self.pattern_classifier is not None and bars and trend.volatility_percent is not None:
            trend.pattern = await self.pattern_classifier.classify(view.symbol, bars.closes(), trend)

        return AnalysisContext(
            view=view,
            technicals=technicals,
            trend=trend,
            sentiment=analyze_news_sentiment(view.news),
            fear_greed=fear_greed,
        )

    async def build_portfolio_view(self, holdings: Sequence[Holding]) -> PortfolioView:
        """Value holdings against live snapshots, one symbol at a time."""
        prices: Dict[str, Optional[float]] = {}
        provenance: Dict[str, Provenance] = {}
        failed: List[str] = []

        for holding in holdings:
            snapshot = await self.router.get_snapshot(holding.symbol)
            if snapshot is None or snapshot.price is None:
                logger.warning("No live price for %s, valuing at cost", holding.symbol)
                failed.append(holding.symbol)
                prices[holding.symbol] = None
                continue
            prices[holding.symbol] = snapshot.price
            provenance[holding.symbol] = snapshot.provenance

        return PortfolioView(
            metrics=compute_portfolio_metrics(holdings, prices),
            failed_symbols=failed,
            provenance=provenance,
        )

    async def build_portfolio_analysis_context(self, holdings: Sequence[Holding]) -> PortfolioAnalysisContext:
        view, fear_greed = await asyncio.gather(
            self.build_portfolio_view(holdings),
            self.get_fear_greed(),
        )

        ranked = sorted(view.metrics.holdings, key=lambda row: row.weight, reverse=True)
        details: List[AnalysisContext] = []
        for row in ranked[:DETAILED_HOLDINGS_LIMIT]:
            symbol_view = await self.build_symbol_view(row.symbol)
            live_price = row.current_price if row.price_is_live else None
            details.append(await self._enrich(symbol_view, fear_greed, live_price))

        return PortfolioAnalysisContext(view=view, details=details, fear_greed=fear_greed)
