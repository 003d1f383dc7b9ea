"""Aggregation, prompt serialization and pattern classification services."""

from .aggregator import (
    AnalysisContext,
    MarketDataAggregator,
    PortfolioAnalysisContext,
    PortfolioView,
    SymbolView,
)
from .patterns import PatternClassifier, fallback_pattern
from .prompts import build_portfolio_prompt, build_stock_prompt

__all__ = [
    "AnalysisContext",
    "MarketDataAggregator",
    "PatternClassifier",
    "PortfolioAnalysisContext",
    "PortfolioView",
    "SymbolView",
    "build_portfolio_prompt",
    "build_stock_prompt",
    "fallback_pattern",
]
