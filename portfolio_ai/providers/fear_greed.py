"""Market-wide Fear & Greed index with a primary and an alternative source."""

import logging
from typing import Any, Dict, Optional

import httpx

from ..cache import CacheInterface
from ..config import Config
from ..domain.models import FearGreedReading
from ..http_client import get_json
from .base import to_float

logger = logging.getLogger(__name__)

RAPIDAPI_FGI_URL = "https://fear-and-greed-index.p.rapidapi.com/v1/fgi"
RAPIDAPI_HOST = "fear-and-greed-index.p.rapidapi.com"
CNN_GRAPHDATA_URL = "https://production.dataviz.cnn.io/index/fearandgreed/graphdata"
CACHE_KEY = "fear_greed:index"

# (upper bound inclusive, label, interpretation)
SENTIMENT_BUCKETS = [
    (25, "Extreme Fear", "Extreme Fear - Market may be oversold, potential buying opportunity"),
    (45, "Fear", "Fear - Cautious market sentiment, investors are nervous"),
    (55, "Neutral", "Neutral - Balanced market sentiment"),
    (75, "Greed", "Greed - Optimistic market, watch for overvaluation"),
    (100, "Extreme Greed", "Extreme Greed - Market may be overbought, potential correction risk"),
]


def _bucket(value: Optional[float]):
    if value is None or value < 0 or value > 100:
        return None
    for upper, label, interpretation in SENTIMENT_BUCKETS:
        if value <= upper:
            return label, interpretation
    return None


def value_text(value: Optional[float]) -> str:
    """Label for a 0-100 score."""
    bucket = _bucket(value)
    return bucket[0] if bucket else "Unknown"


def interpret_fear_greed(value: Optional[float]) -> str:
    """One-sentence reading of a 0-100 score."""
    bucket = _bucket(value)
    return bucket[1] if bucket else "Unknown sentiment"


class FearGreedProvider:
    """
    Fear & Greed index lookup.

    Tries the RapidAPI feed (needs RAPIDAPI_KEY) and then CNN's public
    graph data. Returns None when both fail; callers render that as N/A.
    """

    def __init__(self, config: Config, http_client: httpx.AsyncClient, cache: CacheInterface):
        self.config = config
        self.http_client = http_client
        self.cache = cache

    async def get_index(self) -> Optional[FearGreedReading]:
        cached = self.cache.get(CACHE_KEY)
        if cached is not None:
            return cached

        for source in (self._fetch_rapidapi, self._fetch_cnn):
            try:
                reading = await source()
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
                logger.warning("Fear & Greed source %s failed: %s", source.__name__, exc)
                continue
            if reading is not None:
                self.cache.set(CACHE_KEY, reading)
                return reading

        logger.warning("Fear & Greed index unavailable from all sources")
        return None

    async def _fetch_rapidapi(self) -> Optional[FearGreedReading]:
        if not self.config.rapidapi_key:
            return None
        data = await get_json(
            self.http_client,
            RAPIDAPI_FGI_URL,
            headers={"X-RapidAPI-Key": self.config.rapidapi_key, "X-RapidAPI-Host": RAPIDAPI_HOST},
            retries=1,
        )
        fgi = data.get("fgi")
        if not fgi:
            return None

        def _value(section: str) -> Optional[float]:
            return to_float((fgi.get(section) or {}).get("value"))

        now = fgi["now"]
        value = float(now["value"])
        return FearGreedReading(
            value=value,
            value_text=now.get("valueText") or value_text(value),
            source="RapidAPI",
            timestamp=now.get("timestamp"),
            previous_close=_value("previousClose"),
            one_week_ago=_value("oneWeekAgo"),
            one_month_ago=_value("oneMonthAgo"),
            one_year_ago=_value("oneYearAgo"),
        )

    async def _fetch_cnn(self) -> Optional[FearGreedReading]:
        data: Dict[str, Any] = await get_json(self.http_client, CNN_GRAPHDATA_URL, retries=1)
        current = data.get("fear_and_greed")
        if not current:
            return None

        value = round(float(current["score"]), 1)
        rating = current.get("rating")
        return FearGreedReading(
            value=value,
            value_text=rating.title() if rating else value_text(value),
            source="CNN",
            timestamp=current.get("timestamp"),
            previous_close=to_float(current.get("previous_close")),
            one_week_ago=to_float(current.get("previous_1_week")),
            one_month_ago=to_float(current.get("previous_1_month")),
            one_year_ago=to_float(current.get("previous_1_year")),
        )
