"""Domain models for market data lookups and portfolio analysis."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .symbols import is_crypto_symbol, normalize_symbol


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class CapabilityKind(str, Enum):
    """One kind of market-data lookup."""
    SNAPSHOT = "snapshot"
    HISTORICAL_BARS = "historical_bars"
    NEWS = "news"
    FUNDAMENTALS = "fundamentals"


@dataclass(frozen=True)
class CapabilityRequest:
    """Immutable (symbol, kind, is_crypto) lookup key."""
    symbol: str
    kind: CapabilityKind
    is_crypto: bool = False

    @classmethod
    def for_symbol(
        cls,
        symbol: str,
        kind: CapabilityKind,
        is_crypto: Optional[bool] = None,
    ) -> "CapabilityRequest":
        normalized = normalize_symbol(symbol)
        if is_crypto is None:
            is_crypto = is_crypto_symbol(normalized)
        return cls(symbol=normalized, kind=kind, is_crypto=is_crypto)

    @property
    def cache_key(self) -> str:
        suffix = ":crypto" if self.is_crypto else ""
        return f"{self.kind.value}:{self.symbol}{suffix}"

    def with_symbol(self, symbol: str) -> "CapabilityRequest":
        return replace(self, symbol=symbol)


@dataclass(frozen=True)
class Provenance:
    """Which upstream produced a result and whether it may be delayed."""
    source: str
    is_delayed: bool = False

    @property
    def notice(self) -> Optional[str]:
        return "data may be delayed" if self.is_delayed else None

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "isDelayed": self.is_delayed, "notice": self.notice}


@dataclass
class Snapshot:
    """Latest price plus the current daily bar."""
    symbol: str
    price: Optional[float]
    provenance: Provenance
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[float] = None
    previous_close: Optional[float] = None
    exchange: Optional[str] = None
    name: Optional[str] = None
    asset_type: Optional[str] = None

    @property
    def change(self) -> Optional[float]:
        if self.price is None or self.previous_close is None:
            return None
        return self.price - self.previous_close

    @property
    def change_percent(self) -> Optional[float]:
        change = self.change
        if change is None or not self.previous_close:
            return None
        return change / self.previous_close * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name or self.symbol,
            "type": self.asset_type,
            "exchange": self.exchange,
            "price": self.price,
            "change": self.change,
            "changePercent": self.change_percent,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "previousClose": self.previous_close,
            "source": self.provenance.source,
            "isDelayed": self.provenance.is_delayed,
        }


@dataclass(frozen=True)
class Bar:
    """One daily OHLCV bar."""
    timestamp: datetime
    open: Optional[float]
    high: Optional[float]
    low: Optional[float]
    close: float
    volume: Optional[float] = None


@dataclass
class HistoricalBars:
    """
    Daily bars in ascending time order.

    A series is never assumed complete; its length is used to rank partial
    results from different providers.
    """
    symbol: str
    bars: List[Bar]
    provenance: Provenance

    def __post_init__(self):
        self.bars = sorted(self.bars, key=lambda bar: bar.timestamp)

    def __len__(self) -> int:
        return len(self.bars)

    def closes(self) -> List[float]:
        return [bar.close for bar in self.bars if bar.close is not None]

    def to_frame(self) -> pd.DataFrame:
        """Bars as an OHLCV DataFrame with a DatetimeIndex named 'Date'."""
        df = pd.DataFrame(
            [
                {
                    "Date": bar.timestamp,
                    "Open": bar.open,
                    "High": bar.high,
                    "Low": bar.low,
                    "Close": bar.close,
                    "Volume": bar.volume,
                }
                for bar in self.bars
            ],
            columns=["Date", "Open", "High", "Low", "Close", "Volume"],
        )
        df["Date"] = pd.to_datetime(df["Date"], utc=True)
        return df.set_index("Date")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "dataPoints": len(self.bars),
            "source": self.provenance.source,
            "isDelayed": self.provenance.is_delayed,
            "bars": [
                {
                    "t": _iso(bar.timestamp),
                    "o": bar.open,
                    "h": bar.high,
                    "l": bar.low,
                    "c": bar.close,
                    "v": bar.volume,
                }
                for bar in self.bars
            ],
        }


@dataclass
class NewsArticle:
    headline: str
    summary: str = ""
    source: str = ""
    url: str = ""
    published_at: Optional[datetime] = None
    symbols: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headline": self.headline,
            "summary": self.summary,
            "source": self.source,
            "url": self.url,
            "publishedAt": _iso(self.published_at),
            "symbols": list(self.symbols),
        }


@dataclass
class NewsFeed:
    """News articles for one symbol; may be empty."""
    symbol: str
    articles: List[NewsArticle]
    provenance: Provenance

    def __len__(self) -> int:
        return len(self.articles)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "source": self.provenance.source,
            "isDelayed": self.provenance.is_delayed,
            "articles": [article.to_dict() for article in self.articles],
        }


@dataclass
class FilingPeriod:
    """One periodic financial filing."""
    fiscal_year: Optional[str] = None
    fiscal_period: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    filing_date: Optional[str] = None
    source_url: Optional[str] = None
    income: Dict[str, Any] = field(default_factory=dict)
    balance: Dict[str, Any] = field(default_factory=dict)
    cash_flow: Dict[str, Any] = field(default_factory=dict)
    comprehensive_income: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": {
                "fiscalYear": self.fiscal_year,
                "fiscalPeriod": self.fiscal_period,
                "startDate": self.start_date,
                "endDate": self.end_date,
                "filingDate": self.filing_date,
                "sourceUrl": self.source_url,
            },
            "income": self.income,
            "balance": self.balance,
            "cashFlow": self.cash_flow,
            "comprehensive": self.comprehensive_income,
        }


@dataclass
class Fundamentals:
    """Dividend figures plus periodic filings, newest first."""
    symbol: str
    provenance: Provenance
    annual_dividend: Optional[float] = None
    dividend_yield: Optional[float] = None
    filings: List[FilingPeriod] = field(default_factory=list)

    def with_price(self, price: Optional[float]) -> "Fundamentals":
        """Copy with the dividend yield computed against ``price``."""
        if self.annual_dividend is None:
            return self
        if not price:
            return replace(self, dividend_yield=0.0 if self.annual_dividend == 0 else None)
        return replace(self, dividend_yield=round(self.annual_dividend / price * 100, 2))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "source": self.provenance.source,
            "isDelayed": self.provenance.is_delayed,
            "dividends": {
                "dividendYield": self.dividend_yield,
                "annualDividendAmount": self.annual_dividend,
            },
            "fundamentals": [filing.to_dict() for filing in self.filings],
        }


CapabilityResult = Union[Snapshot, HistoricalBars, NewsFeed, Fundamentals]


@dataclass
class Holding:
    """Portfolio position supplied by the caller."""
    symbol: str
    shares: float
    cost_per_share: Optional[float] = None
    sector: str = "Unknown"
    name: Optional[str] = None


@dataclass
class FearGreedReading:
    """Market-wide Fear & Greed index value."""
    value: float
    value_text: str
    source: str
    timestamp: Optional[str] = None
    previous_close: Optional[float] = None
    one_week_ago: Optional[float] = None
    one_month_ago: Optional[float] = None
    one_year_ago: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "valueText": self.value_text,
            "timestamp": self.timestamp,
            "previousClose": self.previous_close,
            "oneWeekAgo": self.one_week_ago,
            "oneMonthAgo": self.one_month_ago,
            "oneYearAgo": self.one_year_ago,
            "source": self.source,
        }
