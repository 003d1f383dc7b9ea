"""Analytics modules for technical, sentiment and portfolio analysis."""

from .news_sentiment import NewsSentiment, analyze_news_sentiment, classify_article
from .portfolio import HoldingMetrics, PortfolioMetrics, compute_portfolio_metrics, diversification_score
from .technical import (
    HistoricalTrend,
    TechnicalIndicators,
    annualized_volatility,
    compute_rsi,
    compute_technical_indicators,
    extract_historical_trend,
    price_change_percent,
    simple_moving_average,
    trend_label,
    volatility_level,
)

__all__ = [
    "HistoricalTrend",
    "HoldingMetrics",
    "NewsSentiment",
    "PortfolioMetrics",
    "TechnicalIndicators",
    "analyze_news_sentiment",
    "annualized_volatility",
    "classify_article",
    "compute_portfolio_metrics",
    "compute_rsi",
    "compute_technical_indicators",
    "diversification_score",
    "extract_historical_trend",
    "price_change_percent",
    "simple_moving_average",
    "trend_label",
    "volatility_level",
]
