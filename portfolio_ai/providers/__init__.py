"""Data providers package."""

from .alpaca import AlpacaProvider
from .alphavantage import AlphaVantageProvider
from .base import DataProvider
from .fear_greed import FearGreedProvider
from .market_router import CapabilityLookup, MarketDataRouter
from .polygon import PolygonProvider
from .yahoo import YahooProvider

__all__ = [
    "AlpacaProvider",
    "AlphaVantageProvider",
    "CapabilityLookup",
    "DataProvider",
    "FearGreedProvider",
    "MarketDataRouter",
    "PolygonProvider",
    "YahooProvider",
]
