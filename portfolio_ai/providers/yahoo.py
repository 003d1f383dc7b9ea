"""Yahoo Finance adapter backed by yfinance (keyless, delayed quotes)."""

import asyncio
import logging
from typing import Dict, List, Optional

import pandas as pd
import yfinance as yf

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
from ..domain.symbols import yahoo_symbol
from .base import DataProvider, parse_timestamp, to_float

logger = logging.getLogger(__name__)

PERIOD_BY_DAYS = [
    (5, "5d"),
    (30, "1mo"),
    (90, "3mo"),
    (180, "6mo"),
    (365, "1y"),
    (730, "2y"),
    (1825, "5y"),
]


def period_for_days(days: int) -> str:
    """Smallest yfinance period covering ``days`` calendar days."""
    for limit, period in PERIOD_BY_DAYS:
        if days <= limit:
            return period
    return "max"


class YahooProvider(DataProvider):
    """yfinance calls are blocking, so each one runs in the default executor."""

    name = "Yahoo Finance"
    capabilities = frozenset({
        CapabilityKind.SNAPSHOT,
        CapabilityKind.HISTORICAL_BARS,
        CapabilityKind.NEWS,
    })
    is_delayed = True

    def _provenance(self) -> Provenance:
        return Provenance(source=self.name, is_delayed=self.is_delayed)

    @staticmethod
    async def _run(func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    @staticmethod
    def _history_sync(symbol: str, period: str) -> pd.DataFrame:
        return yf.Ticker(symbol).history(period=period, interval="1d", auto_adjust=False)

    @staticmethod
    def _quote_info_sync(symbol: str) -> Dict[str, Optional[str]]:
        """Best-effort exchange/type labels; missing labels are fine."""
        try:
            info = yf.Ticker(symbol).fast_info
            return {"exchange": info["exchange"], "quote_type": info["quoteType"]}
        except Exception as exc:
            logger.debug("[Yahoo] fast_info unavailable for %s: %s", symbol, exc)
            return {"exchange": None, "quote_type": None}

    @staticmethod
    def _news_sync(symbol: str) -> List[Dict]:
        return yf.Ticker(symbol).news or []

    async def fetch_snapshot(self, request: CapabilityRequest) -> Optional[Snapshot]:
        symbol = yahoo_symbol(request.symbol, request.is_crypto)
        df = await self._run(self._history_sync, symbol, "5d")
        if df is None or df.empty or "Close" not in df.columns:
            return None

        df = df.dropna(subset=["Close"])
        if df.empty:
            return None

        last = df.iloc[-1]
        previous_close = float(df["Close"].iloc[-2]) if len(df) > 1 else None
        labels = await self._run(self._quote_info_sync, symbol)

        return Snapshot(
            symbol=request.symbol,
            price=float(last["Close"]),
            provenance=self._provenance(),
            open=to_float(last.get("Open")),
            high=to_float(last.get("High")),
            low=to_float(last.get("Low")),
            close=float(last["Close"]),
            volume=to_float(last.get("Volume")),
            previous_close=previous_close,
            exchange=labels["exchange"],
            asset_type=labels["quote_type"],
        )

    async def fetch_bars(self, request: CapabilityRequest) -> Optional[HistoricalBars]:
        symbol = yahoo_symbol(request.symbol, request.is_crypto)
        period = period_for_days(self.config.history_days)
        df = await self._run(self._history_sync, symbol, period)
        if df is None or df.empty or "Close" not in df.columns:
            return None

        bars = []
        for ts, row in df.dropna(subset=["Close"]).iterrows():
            bars.append(
                Bar(
                    timestamp=pd.Timestamp(ts).to_pydatetime(),
                    open=to_float(row.get("Open")),
                    high=to_float(row.get("High")),
                    low=to_float(row.get("Low")),
                    close=float(row["Close"]),
                    volume=to_float(row.get("Volume")),
                )
            )
        if not bars:
            return None
        return HistoricalBars(symbol=request.symbol, bars=bars, provenance=self._provenance())

    async def fetch_news(self, request: CapabilityRequest) -> Optional[NewsFeed]:
        symbol = yahoo_symbol(request.symbol, request.is_crypto)
        raw_items = await self._run(self._news_sync, symbol)

        articles = []
        for item in raw_items:
            article = self._parse_news_item(item, request.symbol)
            if article is not None:
                articles.append(article)
            if len(articles) >= self.config.news_limit:
                break
        return NewsFeed(symbol=request.symbol, articles=articles, provenance=self._provenance())

    def _parse_news_item(self, item: Dict, symbol: str) -> Optional[NewsArticle]:
        """Parse both the flat and the nested ("content") yfinance news formats."""
        content = item.get("content") if isinstance(item.get("content"), dict) else {}
        canonical = content.get("canonicalUrl") if isinstance(content.get("canonicalUrl"), dict) else {}
        clickthrough = content.get("clickThroughUrl") if isinstance(content.get("clickThroughUrl"), dict) else {}
        provider = content.get("provider") if isinstance(content.get("provider"), dict) else {}

        headline = item.get("title") or content.get("title") or ""
        url = item.get("link") or canonical.get("url") or clickthrough.get("url") or ""
        if not headline and not url:
            return None

        return NewsArticle(
            headline=headline,
            summary=content.get("summary") or content.get("description") or item.get("summary") or "",
            source=item.get("publisher") or provider.get("displayName") or self.name,
            url=url,
            published_at=parse_timestamp(item.get("providerPublishTime") or content.get("pubDate")),
            symbols=item.get("relatedTickers") or [symbol],
        )
