"""Polygon.io adapter: snapshot, daily bars, news and fundamentals."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..domain.models import (
    Bar,
    CapabilityKind,
    CapabilityRequest,
    FilingPeriod,
    Fundamentals,
    HistoricalBars,
    NewsArticle,
    NewsFeed,
    Provenance,
    Snapshot,
)
from ..domain.symbols import polygon_symbol
from .base import DataProvider, parse_timestamp, to_float

logger = logging.getLogger(__name__)

POLYGON_BASE_URL = "https://api.polygon.io"


class PolygonProvider(DataProvider):
    """Primary provider for every capability (real-time, keyed)."""

    name = "Polygon.io"
    capabilities = frozenset(CapabilityKind)
    is_delayed = False

    def is_configured(self) -> bool:
        return bool(self.config.polygon_api_key)

    def _provenance(self) -> Provenance:
        return Provenance(source=self.name, is_delayed=self.is_delayed)

    async def _polygon(self, path: str, **params) -> Dict[str, Any]:
        params["apiKey"] = self.config.polygon_api_key
        return await self._get_json(f"{POLYGON_BASE_URL}{path}", params=params)

    async def _optional(self, path: str, **params) -> Optional[Dict[str, Any]]:
        """Secondary lookups may fail without failing the whole snapshot."""
        try:
            return await self._polygon(path, **params)
        except httpx.HTTPError as exc:
            logger.debug("[Polygon] Optional lookup %s failed: %s", path, exc)
            return None

    async def fetch_snapshot(self, request: CapabilityRequest) -> Optional[Snapshot]:
        ticker = polygon_symbol(request.symbol, request.is_crypto)

        details = await self._optional(f"/v3/reference/tickers/{ticker}")
        prev = await self._optional(f"/v2/aggs/ticker/{ticker}/prev", adjusted="true")

        info = (details or {}).get("results") or {}
        prev_results = (prev or {}).get("results") or []
        prev_bar = prev_results[0] if prev_results else {}

        if request.is_crypto:
            today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
            latest = await self._polygon(
                f"/v2/aggs/ticker/{ticker}/range/1/day/{today}/{today}",
                adjusted="true",
                sort="desc",
                limit=1,
            )
            latest_results = latest.get("results") or []
            price = to_float(latest_results[0].get("c")) if latest_results else None
            if price is None:
                price = to_float(prev_bar.get("c"))
        else:
            # Without a live trade a stock snapshot is treated as missing
            latest = await self._polygon(f"/v2/last/trade/{ticker}")
            price = to_float((latest.get("results") or {}).get("p"))

        if price is None:
            logger.info("[Polygon] No price for %s (as %s)", request.symbol, ticker)
            return None

        return Snapshot(
            symbol=request.symbol,
            price=price,
            provenance=self._provenance(),
            open=to_float(prev_bar.get("o")),
            high=to_float(prev_bar.get("h")),
            low=to_float(prev_bar.get("l")),
            close=to_float(prev_bar.get("c")),
            volume=to_float(prev_bar.get("v")),
            previous_close=to_float(prev_bar.get("c")),
            exchange=info.get("primary_exchange"),
            name=info.get("name"),
            asset_type=info.get("type") or ("CRYPTO" if request.is_crypto else "CS"),
        )

    async def fetch_bars(self, request: CapabilityRequest) -> Optional[HistoricalBars]:
        ticker = polygon_symbol(request.symbol, request.is_crypto)
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=self.config.history_days)

        data = await self._polygon(
            f"/v2/aggs/ticker/{ticker}/range/1/day/{start:%Y-%m-%d}/{end:%Y-%m-%d}",
            adjusted="true",
            sort="asc",
            limit=50000,
        )

        bars = [
            Bar(
                timestamp=parse_timestamp(row["t"]),
                open=to_float(row.get("o")),
                high=to_float(row.get("h")),
                low=to_float(row.get("l")),
                close=float(row["c"]),
                volume=to_float(row.get("v")),
            )
            for row in data.get("results") or []
            if row.get("t") is not None and row.get("c") is not None
        ]
        if not bars:
            return None
        return HistoricalBars(symbol=request.symbol, bars=bars, provenance=self._provenance())

    async def fetch_news(self, request: CapabilityRequest) -> Optional[NewsFeed]:
        ticker = polygon_symbol(request.symbol, request.is_crypto)
        data = await self._polygon("/v2/reference/news", ticker=ticker, limit=self.config.news_limit)

        articles = [
            NewsArticle(
                headline=item.get("title") or "",
                summary=item.get("description") or "",
                source=(item.get("publisher") or {}).get("name") or self.name,
                url=item.get("article_url") or "",
                published_at=parse_timestamp(item.get("published_utc")),
                symbols=item.get("tickers") or [request.symbol],
            )
            for item in data.get("results") or []
        ]
        return NewsFeed(symbol=request.symbol, articles=articles, provenance=self._provenance())

    async def fetch_fundamentals(self, request: CapabilityRequest) -> Optional[Fundamentals]:
        if request.is_crypto:
            return None

        dividends, filings = await asyncio.gather(
            self._annual_dividend(request.symbol),
            self._filings(request.symbol),
            return_exceptions=True,
        )
        if isinstance(dividends, BaseException) and isinstance(filings, BaseException):
            raise dividends
        if isinstance(dividends, BaseException):
            logger.warning("[Polygon] Dividends failed for %s: %s", request.symbol, dividends)
            dividends = None
        if isinstance(filings, BaseException):
            logger.warning("[Polygon] Financials failed for %s: %s", request.symbol, filings)
            filings = []

        return Fundamentals(
            symbol=request.symbol,
            provenance=self._provenance(),
            annual_dividend=dividends,
            filings=filings,
        )

    async def _annual_dividend(self, ticker: str) -> float:
        """Sum of cash dividends with an ex-date in the trailing twelve months."""
        today = datetime.now(timezone.utc)
        year_ago = today - timedelta(days=365)
        data = await self._polygon(
            "/v3/reference/dividends",
            ticker=ticker,
            limit=50,
            **{
                "ex_dividend_date.gte": f"{year_ago:%Y-%m-%d}",
                "ex_dividend_date.lte": f"{today:%Y-%m-%d}",
            },
        )

        total = 0.0
        for item in data.get("results") or []:
            ex_date = parse_timestamp(item.get("ex_dividend_date"))
            amount = to_float(item.get("cash_amount")) or 0.0
            if ex_date is not None and ex_date >= year_ago and amount > 0:
                total += amount
        return round(total, 2)

    async def _filings(self, ticker: str) -> List[FilingPeriod]:
        try:
            data = await self._polygon("/vX/reference/financials", ticker=ticker, limit=10)
        except httpx.HTTPStatusError as exc:
            # Financials are a paid endpoint
            if exc.response.status_code == 403:
                logger.info("[Polygon] Financials not available on this plan for %s", ticker)
                return []
            raise

        filings = []
        for item in data.get("results") or []:
            financials = item.get("financials") or {}
            filings.append(
                FilingPeriod(
                    fiscal_year=item.get("fiscal_year"),
                    fiscal_period=item.get("fiscal_period"),
                    start_date=item.get("start_date"),
                    end_date=item.get("end_date"),
                    filing_date=item.get("filing_date"),
                    source_url=item.get("source_filing_url"),
                    income=financials.get("income_statement") or {},
                    balance=financials.get("balance_sheet") or {},
                    cash_flow=financials.get("cash_flow_statement") or {},
                    comprehensive_income=financials.get("comprehensive_income") or {},
                )
            )
        filings.sort(key=lambda f: f.end_date or f.filing_date or "", reverse=True)
        return filings
