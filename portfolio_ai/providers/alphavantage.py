"""Alpha Vantage adapter: last-resort delayed quotes, daily bars and news."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..domain.models import (
    Bar,
    CapabilityKind,
    CapabilityRequest,
    HistoricalBars,
    NewsArticle,
    NewsFeed,
    Provenance,
    Snapshot,
)
from .base import DataProvider, to_float

logger = logging.getLogger(__name__)

ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"
RATE_LIMIT_KEYS = ("Note", "Information")


def _parse_time_published(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y%m%dT%H%M%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


class AlphaVantageProvider(DataProvider):
    """End-of-day data on the free tier; every result is flagged as delayed."""

    name = "Alpha Vantage"
    capabilities = frozenset({
        CapabilityKind.SNAPSHOT,
        CapabilityKind.HISTORICAL_BARS,
        CapabilityKind.NEWS,
    })
    is_delayed = True

    def is_configured(self) -> bool:
        return bool(self.config.alphavantage_api_key)

    def supports(self, request: CapabilityRequest) -> bool:
        return not request.is_crypto and super().supports(request)

    def _provenance(self) -> Provenance:
        return Provenance(source=self.name, is_delayed=self.is_delayed)

    async def _query(self, function: str, **params) -> Optional[Dict[str, Any]]:
        params.update({"function": function, "apikey": self.config.alphavantage_api_key})
        data = await self._get_json(ALPHA_VANTAGE_BASE_URL, params=params)
        for key in RATE_LIMIT_KEYS:
            if key in data:
                logger.warning("[AlphaVantage] %s throttled: %s", function, data[key])
                return None
        return data

    async def fetch_snapshot(self, request: CapabilityRequest) -> Optional[Snapshot]:
        data = await self._query("GLOBAL_QUOTE", symbol=request.symbol)
        quote = (data or {}).get("Global Quote") or {}
        price = to_float(quote.get("05. price"))
        if price is None:
            return None

        return Snapshot(
            symbol=request.symbol,
            price=price,
            provenance=self._provenance(),
            open=to_float(quote.get("02. open")),
            high=to_float(quote.get("03. high")),
            low=to_float(quote.get("04. low")),
            close=price,
            volume=to_float(quote.get("06. volume")),
            previous_close=to_float(quote.get("08. previous close")),
        )

    async def fetch_bars(self, request: CapabilityRequest) -> Optional[HistoricalBars]:
        data = await self._query("TIME_SERIES_DAILY", symbol=request.symbol, outputsize="compact")
        series = (data or {}).get("Time Series (Daily)") or {}

        bars = []
        for day, row in series.items():
            close = to_float(row.get("4. close"))
            if close is None:
                continue
            bars.append(
                Bar(
                    timestamp=datetime.strptime(day, "%Y-%m-%d").replace(tzinfo=timezone.utc),
                    open=to_float(row.get("1. open")),
                    high=to_float(row.get("2. high")),
                    low=to_float(row.get("3. low")),
                    close=close,
                    volume=to_float(row.get("5. volume")),
                )
            )
        if not bars:
            return None
        return HistoricalBars(symbol=request.symbol, bars=bars, provenance=self._provenance())

    async def fetch_news(self, request: CapabilityRequest) -> Optional[NewsFeed]:
        data = await self._query("NEWS_SENTIMENT", tickers=request.symbol, limit=self.config.news_limit)
        if data is None:
            return None

        articles = [
            NewsArticle(
                headline=item.get("title") or "",
                summary=item.get("summary") or "",
                source=item.get("source") or self.name,
                url=item.get("url") or "",
                published_at=_parse_time_published(item.get("time_published")),
                symbols=[ts.get("ticker") for ts in item.get("ticker_sentiment") or [] if ts.get("ticker")]
                or [request.symbol],
            )
            for item in (data.get("feed") or [])[: self.config.news_limit]
        ]
        return NewsFeed(symbol=request.symbol, articles=articles, provenance=self._provenance())
