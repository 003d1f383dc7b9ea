"""Alpaca market data adapter: snapshot, daily bars and news."""

import logging
from datetime import datetime, timedelta, timezone
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
from ..domain.symbols import alpaca_symbol, crypto_pair
from .base import DataProvider, parse_timestamp, to_float

logger = logging.getLogger(__name__)

ALPACA_DATA_URL = "https://data.alpaca.markets"
STOCK_SNAPSHOTS_PATH = "/v2/stocks/snapshots"
CRYPTO_SNAPSHOTS_PATH = "/v1beta3/crypto/us/snapshots"
STOCK_BARS_PATH = "/v2/stocks/bars"
NEWS_PATH = "/v1beta1/news"


class AlpacaProvider(DataProvider):
    """Secondary snapshot/bars/news source; crypto pairs need an escaped slash."""

    name = "Alpaca"
    capabilities = frozenset({
        CapabilityKind.SNAPSHOT,
        CapabilityKind.HISTORICAL_BARS,
        CapabilityKind.NEWS,
    })
    is_delayed = False

    def is_configured(self) -> bool:
        return bool(self.config.alpaca_api_key and self.config.alpaca_secret_key)

    def supports(self, request: CapabilityRequest) -> bool:
        # Alpaca daily bars are only used for equities
        if request.kind is CapabilityKind.HISTORICAL_BARS and request.is_crypto:
            return False
        return super().supports(request)

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "APCA-API-KEY-ID": self.config.alpaca_api_key or "",
            "APCA-API-SECRET-KEY": self.config.alpaca_secret_key or "",
            "Accept": "application/json",
        }

    def _provenance(self) -> Provenance:
        return Provenance(source=self.name, is_delayed=self.is_delayed)

    async def fetch_snapshot(self, request: CapabilityRequest) -> Optional[Snapshot]:
        symbol = alpaca_symbol(request.symbol, request.is_crypto)
        path = CRYPTO_SNAPSHOTS_PATH if request.is_crypto else STOCK_SNAPSHOTS_PATH
        # Symbol is already escaped; passing it through params would double-encode
        data = await self._get_json(f"{ALPACA_DATA_URL}{path}?symbols={symbol}", headers=self._headers)

        if request.is_crypto:
            snapshots = data.get("snapshots") or {}
            raw = snapshots.get(crypto_pair(request.symbol))
        else:
            raw = data.get(request.symbol.upper())

        if not raw:
            return None
        return self._parse_snapshot(request.symbol, raw)

    def _parse_snapshot(self, symbol: str, raw: Dict[str, Any]) -> Optional[Snapshot]:
        latest_trade = raw.get("latestTrade") or {}
        daily = raw.get("dailyBar") or {}
        prev_daily = raw.get("prevDailyBar") or {}

        price = to_float(latest_trade.get("p"))
        if price is None:
            return None

        return Snapshot(
            symbol=symbol,
            price=price,
            provenance=self._provenance(),
            open=to_float(daily.get("o")),
            high=to_float(daily.get("h")),
            low=to_float(daily.get("l")),
            close=to_float(daily.get("c")),
            volume=to_float(daily.get("v")),
            previous_close=to_float(prev_daily.get("c")),
            exchange=latest_trade.get("x"),
        )

    async def fetch_bars(self, request: CapabilityRequest) -> Optional[HistoricalBars]:
        start = datetime.now(timezone.utc) - timedelta(days=self.config.history_days)
        data = await self._get_json(
            f"{ALPACA_DATA_URL}{STOCK_BARS_PATH}",
            params={
                "symbols": request.symbol.upper(),
                "timeframe": "1Day",
                "start": start.strftime("%Y-%m-%dT00:00:00Z"),
                "limit": 10000,
            },
            headers=self._headers,
        )

        rows = (data.get("bars") or {}).get(request.symbol.upper()) or []
        bars = [
            Bar(
                timestamp=parse_timestamp(row["t"]),
                open=to_float(row.get("o")),
                high=to_float(row.get("h")),
                low=to_float(row.get("l")),
                close=float(row["c"]),
                volume=to_float(row.get("v")),
            )
            for row in rows
            if row.get("t") and row.get("c") is not None
        ]
        if not bars:
            return None
        return HistoricalBars(symbol=request.symbol, bars=bars, provenance=self._provenance())

    async def fetch_news(self, request: CapabilityRequest) -> Optional[NewsFeed]:
        symbol = crypto_pair(request.symbol) if request.is_crypto else request.symbol.upper()
        data = await self._get_json(
            f"{ALPACA_DATA_URL}{NEWS_PATH}",
            params={"symbols": symbol, "limit": self.config.news_limit},
            headers=self._headers,
        )

        articles = [
            NewsArticle(
                headline=item.get("headline") or "",
                summary=item.get("summary") or "",
                source=item.get("source") or self.name,
                url=item.get("url") or "",
                published_at=parse_timestamp(item.get("created_at") or item.get("updated_at")),
                symbols=item.get("symbols") or [request.symbol],
            )
            for item in data.get("news") or []
        ]
        return NewsFeed(symbol=request.symbol, articles=articles, provenance=self._provenance())
