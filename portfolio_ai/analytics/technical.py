"""Technical analysis functions."""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..domain.models import HistoricalBars

logger = logging.getLogger(__name__)

TRADING_DAYS_PER_YEAR = 252
MIN_TREND_POINTS = 30

# Bars looked back for each reported price change
PRICE_CHANGE_LOOKBACKS = {
    "1Day": 1,
    "7Day": 7,
    "30Day": 30,
    "1Year": TRADING_DAYS_PER_YEAR,
}


@dataclass
class TechnicalIndicators:
    current_price: float
    sma20: Optional[float] = None
    sma50: Optional[float] = None
    sma200: Optional[float] = None
    rsi: Optional[float] = None
    price_changes: Dict[str, Optional[float]] = field(default_factory=dict)
    volatility: float = 0.0
    volume_current: Optional[float] = None
    volume_average: Optional[float] = None
    volume_trend: Optional[float] = None
    trends: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HistoricalTrend:
    trend: str
    volatility_level: str
    volatility_percent: Optional[float] = None
    price_change_percent: Optional[float] = None
    pattern: Optional[str] = None

    @property
    def summary(self) -> str:
        if self.volatility_percent is None:
            return f"{self.trend.capitalize()}: not enough history for trend analysis"
        text = f"{self.trend} with {self.volatility_level} volatility."
        if self.pattern:
            text += f" Pattern: {self.pattern}."
        return text

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["summary"] = self.summary
        return data


def to_close_series(data) -> pd.Series:
    """
    Normalize price input into a float Series of closes.

    Args:
        data: HistoricalBars, OHLCV DataFrame, Series or list of prices

    Returns:
        Series of closing prices without missing values
    """
    if isinstance(data, HistoricalBars):
        data = data.to_frame()
    if isinstance(data, pd.DataFrame):
        data = data["Close"]
        # yfinance may return a one-column frame for Close
        if isinstance(data, pd.DataFrame):
            data = data.iloc[:, 0]
    return pd.Series(data, dtype=float).dropna().reset_index(drop=True)


def simple_moving_average(close: pd.Series, window: int) -> Optional[float]:
    """Mean of the last ``window`` closes, or None with fewer points."""
    if len(close) < window:
        return None
    return float(close.iloc[-window:].mean())


def compute_rsi(close: pd.Series, period: int = 14) -> Optional[float]:
    """
    Relative Strength Index over the last ``period`` changes.

    Gains and losses are averaged with a simple mean over the window.

    Args:
        close: Series of closing prices
        period: RSI period (default: 14)

    Returns:
        RSI value in [0, 100], 100 when the window has no losses, None when
        fewer than ``period + 1`` prices are available
    """
    close = pd.Series(close, dtype=float)
    if len(close) < period + 1:
        return None

    changes = close.diff().iloc[-period:]
    avg_gain = float(changes.clip(lower=0).sum()) / period
    avg_loss = float((-changes.clip(upper=0)).sum()) / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))


def price_change_percent(close: pd.Series, lookback: int) -> Optional[float]:
    """Percent change of the last close versus the close ``lookback`` bars earlier."""
    if len(close) < lookback + 1:
        return None
    base = float(close.iloc[-(lookback + 1)])
    if base == 0:
        return None
    return (float(close.iloc[-1]) - base) / base * 100


def annualized_volatility(close: pd.Series) -> float:
    """Population std of daily returns, annualized, in percent."""
    returns = pd.Series(close, dtype=float).pct_change().dropna()
    if returns.empty:
        return 0.0
    return float(returns.std(ddof=0) * np.sqrt(TRADING_DAYS_PER_YEAR) * 100)


def _trend_label(price: float, average: Optional[float]) -> Optional[str]:
    if average is None:
        return None
    return "bullish" if price > average else "bearish"


def compute_technical_indicators(
    bars: HistoricalBars,
    current_price: Optional[float] = None,
) -> Optional[TechnicalIndicators]:
    """
    Indicator set used by the analysis prompt.

    Args:
        bars: Historical daily bars
        current_price: Live price to compare against the averages; the last
            close is used when omitted

    Returns:
        TechnicalIndicators, or None without any closing price
    """
    frame = bars.to_frame()
    close = to_close_series(frame)
    if close.empty:
        return None

    price = current_price if current_price is not None else float(close.iloc[-1])
    sma20 = simple_moving_average(close, 20)
    sma50 = simple_moving_average(close, 50)
    sma200 = simple_moving_average(close, 200)

    volumes = frame["Volume"].dropna().astype(float)
    volume_current = float(volumes.iloc[-1]) if not volumes.empty else None
    volume_average = float(volumes.mean()) if not volumes.empty else None
    volume_trend = None
    if volume_average and volume_current:
        volume_trend = (volume_current - volume_average) / volume_average * 100

    return TechnicalIndicators(
        current_price=price,
        sma20=sma20,
        sma50=sma50,
        sma200=sma200,
        rsi=compute_rsi(close, 14),
        price_changes={
            label: price_change_percent(close, lookback)
            for label, lookback in PRICE_CHANGE_LOOKBACKS.items()
        },
        volatility=annualized_volatility(close),
        volume_current=volume_current,
        volume_average=volume_average,
        volume_trend=volume_trend,
        trends={
            "shortTerm": _trend_label(price, sma20),
            "mediumTerm": _trend_label(price, sma50),
            "longTerm": _trend_label(price, sma200),
        },
    )


def trend_label(change_percent: float) -> str:
    if change_percent > 10:
        return "strong uptrend"
    if change_percent > 3:
        return "moderate uptrend"
    if change_percent < -10:
        return "strong downtrend"
    if change_percent < -3:
        return "moderate downtrend"
    return "neutral"


def volatility_level(volatility_percent: float) -> str:
    if volatility_percent > 40:
        return "very high"
    if volatility_percent > 30:
        return "high"
    if volatility_percent > 20:
        return "moderate"
    return "low"


def extract_historical_trend(bars: Optional[HistoricalBars]) -> HistoricalTrend:
    """Whole-series trend and volatility bucket; the pattern is filled in later."""
    if bars is None or len(bars) == 0:
        return HistoricalTrend(trend="insufficient data", volatility_level="unknown")

    close = to_close_series(bars)
    if len(close) < MIN_TREND_POINTS:
        return HistoricalTrend(trend="limited data", volatility_level="unknown")

    first, last = float(close.iloc[0]), float(close.iloc[-1])
    change = (last - first) / first * 100 if first else 0.0
    volatility = annualized_volatility(close)

    return HistoricalTrend(
        trend=trend_label(change),
        volatility_level=volatility_level(volatility),
        volatility_percent=volatility,
        price_change_percent=change,
    )
