"""Market data router: ordered per-capability provider chains with fallback."""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx

from ..cache import CacheInterface
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
from ..domain.symbols import has_class_suffix, strip_class_suffix
from .alpaca import AlpacaProvider
from .alphavantage import AlphaVantageProvider
from .base import DataProvider
from .polygon import PolygonProvider
from .yahoo import YahooProvider

logger = logging.getLogger(__name__)

RESULT_TYPES = {
    CapabilityKind.SNAPSHOT: Snapshot,
    CapabilityKind.HISTORICAL_BARS: HistoricalBars,
    CapabilityKind.NEWS: NewsFeed,
    CapabilityKind.FUNDAMENTALS: Fundamentals,
}


@dataclass
class CapabilityLookup:
    """Outcome of one capability lookup; ``result`` is None when nothing was found."""
    request: CapabilityRequest
    result: Optional[CapabilityResult] = None
    provider: Optional[str] = None
    symbol_used: Optional[str] = None
    attempted: List[str] = field(default_factory=list)
    from_cache: bool = False
    partial: bool = False
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    @property
    def found(self) -> bool:
        return self.result is not None


@dataclass
class _ChainOutcome:
    result: Optional[CapabilityResult] = None
    provider: Optional[str] = None
    best_partial: Optional[HistoricalBars] = None
    best_partial_provider: Optional[str] = None


class MarketDataRouter:
    """
    Central routing layer for market data with fallback.

    Strategy:
    - Cache first, keyed by the capability request
    - Providers for one capability are tried strictly in order, never raced
    - Any provider error counts as "no result" and moves to the next provider
    - If the whole chain fails for a symbol with a class suffix (BRK.A), the
      chain is retried once with the separator stripped (BRKA)
    - Total failure is an empty lookup, never an exception
    """

    def __init__(
        self,
        chains: Dict[CapabilityKind, Sequence[DataProvider]],
        cache: CacheInterface,
        min_historical_points: int = 1,
    ):
        self.chains = {kind: list(providers) for kind, providers in chains.items()}
        self.cache = cache
        self.min_historical_points = max(1, min_historical_points)

        # Stats tracking for monitoring
        self.stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "cache_hits": 0,
            "suffix_retries": 0,
            "partial_results": 0,
            "providers_used": {},  # {provider_name: count}
            "errors": {},  # {error_type: count}
        }

    @classmethod
    def from_config(
        cls,
        config: Config,
        http_client: httpx.AsyncClient,
        cache: CacheInterface,
    ) -> "MarketDataRouter":
        """Build the default provider chains."""
        polygon = PolygonProvider(config, http_client)
        alpaca = AlpacaProvider(config, http_client)
        yahoo = YahooProvider(config, http_client)
        alphavantage = AlphaVantageProvider(config, http_client)

        chains = {
            CapabilityKind.SNAPSHOT: [polygon, alpaca, yahoo, alphavantage],
            CapabilityKind.HISTORICAL_BARS: [polygon, yahoo, alpaca, alphavantage],
            CapabilityKind.NEWS: [polygon, yahoo, alpaca, alphavantage],
            CapabilityKind.FUNDAMENTALS: [polygon],
        }
        for kind, providers in chains.items():
            logger.info(
                "✓ %s chain: %s",
                kind.value,
                " → ".join(p.name for p in providers),
            )
        return cls(chains, cache, min_historical_points=config.min_historical_points)

    def is_usable(self, kind: CapabilityKind, result: Optional[CapabilityResult]) -> bool:
        """Per-capability acceptance rule; a result of the wrong type is never usable."""
        expected = RESULT_TYPES.get(kind)
        if expected is None or not isinstance(result, expected):
            return False
        if kind is CapabilityKind.SNAPSHOT:
            return result.price is not None
        if kind is CapabilityKind.HISTORICAL_BARS:
            return len(result) >= self.min_historical_points
        if kind is CapabilityKind.NEWS:
            return len(result) > 0
        if kind is CapabilityKind.FUNDAMENTALS:
            return bool(result.filings) or result.annual_dividend is not None
        return False

    async def get(self, request: CapabilityRequest) -> CapabilityLookup:
        """Resolve one capability request through cache and provider chain."""
        self.stats["total_requests"] += 1
        lookup = CapabilityLookup(request=request)

        cached = self.cache.get(request.cache_key)
        if cached is not None:
            self.stats["cache_hits"] += 1
            self.stats["successful_requests"] += 1
            lookup.result = cached
            lookup.provider = cached.provenance.source
            lookup.symbol_used = request.symbol
            lookup.from_cache = True
            logger.debug(f"[Router] Cache hit: {request.cache_key}")
            return lookup

        providers = self.chains.get(request.kind, [])
        logger.info(f"[Router] Fetching {request.kind.value} for {request.symbol} - starting fallback chain")

        symbols = [request.symbol]
        if has_class_suffix(request.symbol):
            symbols.append(strip_class_suffix(request.symbol))

        best: Optional[_ChainOutcome] = None
        best_symbol = None
        for pass_index, symbol in enumerate(symbols):
            if pass_index > 0:
                self.stats["suffix_retries"] += 1
                logger.info(f"[Router] Retrying whole chain for {request.symbol} as {symbol}")

            outcome = await self._run_chain(request.with_symbol(symbol), providers, lookup.attempted)

            if outcome.result is not None:
                result = outcome.result
                if symbol != request.symbol:
                    result = replace(result, symbol=request.symbol)
                self.cache.set(request.cache_key, result)
                self._record_success(outcome.provider)
                lookup.result = result
                lookup.provider = outcome.provider
                lookup.symbol_used = symbol
                logger.info(
                    f"[Router] ✓ {request.kind.value} for {request.symbol} from {outcome.provider}"
                    + (f" (as {symbol})" if symbol != request.symbol else "")
                )
                return lookup

            if outcome.best_partial is not None and (
                best is None or len(outcome.best_partial) > len(best.best_partial)
            ):
                best = replace(outcome, best_partial=replace(outcome.best_partial, symbol=request.symbol))
                best_symbol = symbol

        if best is not None:
            # Below the point threshold everywhere; the longest series still beats nothing
            self.stats["partial_results"] += 1
            self._record_success(best.best_partial_provider)
            lookup.result = best.best_partial
            lookup.provider = best.best_partial_provider
            lookup.symbol_used = best_symbol
            lookup.partial = True
            logger.warning(
                f"[Router] Best available {request.kind.value} for {request.symbol}: "
                f"{len(best.best_partial)} points from {best.best_partial_provider}"
            )
            return lookup

        self.stats["failed_requests"] += 1
        logger.error(f"[Router] ✗ All providers exhausted for {request.kind.value} {request.symbol}")
        return lookup

    async def _run_chain(
        self,
        request: CapabilityRequest,
        providers: Iterable[DataProvider],
        attempted: List[str],
    ) -> _ChainOutcome:
        outcome = _ChainOutcome()

        for idx, provider in enumerate(providers, 1):
            if not provider.supports(request):
                continue
            attempted.append(f"{provider.name}:{request.symbol}")
            try:
                logger.debug(f"[Router] Attempt {idx}: Trying {provider.name} for {request.symbol}")
                result = await provider.fetch(request)
                usable = self.is_usable(request.kind, result)
            except Exception as e:
                error_type = type(e).__name__
                self.stats["errors"][error_type] = self.stats["errors"].get(error_type, 0) + 1
                logger.warning(f"[Router] {provider.name} raised {error_type}, trying next provider: {e}")
                continue

            if usable:
                outcome.result = result
                outcome.provider = provider.name
                return outcome

            if result is not None and not isinstance(result, RESULT_TYPES[request.kind]):
                error_type = "MalformedResult"
                self.stats["errors"][error_type] = self.stats["errors"].get(error_type, 0) + 1
                logger.warning(
                    f"[Router] {provider.name} returned {type(result).__name__} "
                    f"for {request.kind.value}, trying next provider"
                )
                continue

            if (
                request.kind is CapabilityKind.HISTORICAL_BARS
                and len(result or []) > 0
                and (outcome.best_partial is None or len(result) > len(outcome.best_partial))
            ):
                outcome.best_partial = result
                outcome.best_partial_provider = provider.name

            logger.debug(f"[Router] {provider.name} returned no usable {request.kind.value} for {request.symbol}")

        return outcome

    def _record_success(self, provider_name: Optional[str]) -> None:
        self.stats["successful_requests"] += 1
        if provider_name:
            used = self.stats["providers_used"]
            used[provider_name] = used.get(provider_name, 0) + 1

    async def get_snapshot(self, symbol: str, is_crypto: Optional[bool] = None) -> Optional[Snapshot]:
        lookup = await self.get(CapabilityRequest.for_symbol(symbol, CapabilityKind.SNAPSHOT, is_crypto))
        return lookup.result

    async def get_historical_bars(self, symbol: str, is_crypto: Optional[bool] = None) -> Optional[HistoricalBars]:
        lookup = await self.get(CapabilityRequest.for_symbol(symbol, CapabilityKind.HISTORICAL_BARS, is_crypto))
        return lookup.result

    async def get_news(self, symbol: str, is_crypto: Optional[bool] = None) -> Optional[NewsFeed]:
        lookup = await self.get(CapabilityRequest.for_symbol(symbol, CapabilityKind.NEWS, is_crypto))
        return lookup.result

    async def get_fundamentals(self, symbol: str, is_crypto: Optional[bool] = None) -> Optional[Fundamentals]:
        lookup = await self.get(CapabilityRequest.for_symbol(symbol, CapabilityKind.FUNDAMENTALS, is_crypto))
        return lookup.result

    async def get_snapshots(self, symbols: Iterable[str]) -> Dict[str, Optional[Snapshot]]:
        """Snapshots for several symbols, resolved one after another."""
        snapshots = {}
        for symbol in symbols:
            snapshots[symbol] = await self.get_snapshot(symbol)
        return snapshots

    def get_stats(self) -> Dict[str, Any]:
        """Get router statistics for monitoring."""
        total = self.stats["total_requests"]
        success_rate = (self.stats["successful_requests"] / total * 100) if total > 0 else 0
        return {
            **self.stats,
            "success_rate_percent": round(success_rate, 2),
        }
