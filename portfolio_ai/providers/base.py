"""Base class for market data provider adapters."""

import logging
import math
from abc import ABC
from datetime import datetime, timezone
from typing import FrozenSet, Optional

import httpx

from ..config import Config
from ..domain.models import (
    CapabilityKind,
    CapabilityRequest,
    CapabilityResult,
    Fundamentals,
    HistoricalBars,
    NewsFeed,
    Snapshot,
)
from ..http_client import get_json

logger = logging.getLogger(__name__)


class DataProvider(ABC):
    """
    Uniform adapter over one upstream data source.

    ``fetch`` returns a normalized result or ``None`` when the provider has
    nothing for the request. Transport and parse errors may propagate; the
    router converts them into "no result".
    """

    name: str = "base"
    capabilities: FrozenSet[CapabilityKind] = frozenset()
    is_delayed: bool = False

    def __init__(self, config: Config, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.http_client = http_client

    def supports(self, request: CapabilityRequest) -> bool:
        return request.kind in self.capabilities

    def is_configured(self) -> bool:
        """Whether credentials needed for any network call are present."""
        return True

    async def fetch(self, request: CapabilityRequest) -> Optional[CapabilityResult]:
        if not self.supports(request) or not self.is_configured():
            return None

        if request.kind is CapabilityKind.SNAPSHOT:
            return await self.fetch_snapshot(request)
        if request.kind is CapabilityKind.HISTORICAL_BARS:
            return await self.fetch_bars(request)
        if request.kind is CapabilityKind.NEWS:
            return await self.fetch_news(request)
        if request.kind is CapabilityKind.FUNDAMENTALS:
            return await self.fetch_fundamentals(request)
        return None

    async def fetch_snapshot(self, request: CapabilityRequest) -> Optional[Snapshot]:
        return None

    async def fetch_bars(self, request: CapabilityRequest) -> Optional[HistoricalBars]:
        return None

    async def fetch_news(self, request: CapabilityRequest) -> Optional[NewsFeed]:
        return None

    async def fetch_fundamentals(self, request: CapabilityRequest) -> Optional[Fundamentals]:
        return None

    async def _get_json(self, url: str, params: Optional[dict] = None, headers: Optional[dict] = None):
        if self.http_client is None:
            raise RuntimeError(f"{self.name} adapter has no HTTP client")
        return await get_json(
            self.http_client,
            url,
            params=params,
            headers=headers,
            retries=self.config.max_retries,
            backoff_factor=self.config.retry_backoff_factor,
        )


def to_float(value) -> Optional[float]:
    """Parse a numeric field that may be missing, empty or a string."""
    if value is None or value == "":
        return None
    try:
        number = float(str(value).replace("%", "").strip())
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def parse_timestamp(value) -> Optional[datetime]:
    """Parse epoch seconds/milliseconds or an ISO-8601 string into aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    raw = str(value).strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
