"""Web API - FastAPI application with JSON and Server-Sent Events endpoints."""

import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from fastapi import FastAPI, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .cache import InMemoryCache
from .config import Config
from .domain.models import Holding
from .domain.symbols import is_valid_symbol, normalize_symbol
from .llm.errors import AnalysisStreamError
from .llm.models import AnalysisPrompt
from .llm.streaming import StreamingFallbackChain
from .services.aggregator import MarketDataAggregator
from .services.prompts import build_portfolio_prompt, build_stock_prompt

logger = logging.getLogger(__name__)

# Import dependencies (will be provided by caller)
_config: Optional[Config] = None
_aggregator: Optional[MarketDataAggregator] = None
_chain: Optional[StreamingFallbackChain] = None
_cache: Optional[InMemoryCache] = None
_http_client: Optional[httpx.AsyncClient] = None

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def configure_api_dependencies(
    config: Config,
    aggregator: MarketDataAggregator,
    chain: StreamingFallbackChain,
    cache: Optional[InMemoryCache] = None,
    http_client: Optional[httpx.AsyncClient] = None,
):
    """Configure API with required service dependencies."""
    global _config, _aggregator, _chain, _cache, _http_client

    _config = config
    _aggregator = aggregator
    _chain = chain
    _cache = cache
    _http_client = http_client


# ============== PYDANTIC MODELS ==============

class HoldingIn(BaseModel):
    symbol: str
    shares: float
    cost_per_share: Optional[float] = None
    sector: Optional[str] = None
    name: Optional[str] = None


class PortfolioRequest(BaseModel):
    holdings: List[HoldingIn]


# ============== FASTAPI APP ==============

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _http_client is not None:
        await _http_client.aclose()
        logger.info("Shared HTTP client closed")


web_api = FastAPI(title="Portfolio AI API", lifespan=lifespan)


def _require_api_auth(x_api_key: Optional[str]) -> None:
    """Enforce API key auth when WEB_API_TOKEN is configured."""
    token = os.getenv("WEB_API_TOKEN", "").strip()
    if not token:
        return
    if not x_api_key or x_api_key != token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def _services():
    if _aggregator is None or _chain is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not configured",
        )
    return _aggregator, _chain


def _prompt_max_chars() -> int:
    return _config.prompt_max_chars if _config is not None else 12000


def _validated_symbol(raw: str) -> str:
    symbol = normalize_symbol(raw)
    if not is_valid_symbol(symbol):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid symbol: {raw}",
        )
    return symbol


def _to_holdings(request: PortfolioRequest) -> List[Holding]:
    if not request.holdings:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Portfolio has no holdings",
        )

    holdings = []
    for item in request.holdings:
        if item.shares <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Shares must be positive for {item.symbol}",
            )
        holdings.append(
            Holding(
                symbol=_validated_symbol(item.symbol),
                shares=item.shares,
                cost_per_share=item.cost_per_share,
                sector=item.sector or "Unknown",
                name=item.name,
            )
        )
    return holdings


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def stream_analysis_events(
    chain: StreamingFallbackChain,
    prompt: AnalysisPrompt,
    done_payload: Dict[str, Any],
) -> AsyncIterator[str]:
    """
    Forward model fragments as SSE chunk events.

    Ends with exactly one ``done`` event, or one ``error`` event when the
    chain fails mid-stream or runs out of providers.
    """
    fragments = chain.stream(prompt)
    try:
        async for fragment in fragments:
            yield sse_event({
                "type": "chunk",
                "content": fragment.text,
                "model": fragment.model,
                "provider": fragment.provider,
            })
    except AnalysisStreamError as exc:
        logger.error("Analysis stream failed (%s): %s", exc.code, exc)
        yield sse_event({"type": "error", "error": str(exc), "code": exc.code})
        return
    finally:
        await fragments.aclose()

    yield sse_event(done_payload)


def _event_stream(body: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(body, media_type="text/event-stream", headers=SSE_HEADERS)


@web_api.get("/healthz")
async def healthz():
    """Unauthenticated health probe endpoint for external pingers."""
    return {"status": "ok"}


@web_api.get("/api/status")
async def api_status(x_api_key: Optional[str] = Header(default=None, alias="X-API-Key")):
    """Router and cache statistics."""
    _require_api_auth(x_api_key)
    aggregator, _ = _services()
    return {
        "status": "ok",
        "router": aggregator.router.get_stats(),
        "cache": _cache.stats() if _cache is not None else None,
    }


@web_api.get("/api/stocks/{symbol}")
async def get_stock(
    symbol: str,
    crypto: Optional[bool] = Query(default=None),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
):
    """Composite snapshot, bars, news and fundamentals for one symbol."""
    _require_api_auth(x_api_key)
    aggregator, _ = _services()
    symbol = _validated_symbol(symbol)

    view = await aggregator.build_symbol_view(symbol, is_crypto=crypto)
    if view.is_empty:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No data available for symbol: {symbol}",
        )
    return view.to_dict()


@web_api.get("/api/ai/analyze-stock/{symbol}")
async def analyze_stock(
    symbol: str,
    crypto: Optional[bool] = Query(default=None),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
):
    """Stream an AI analysis of one symbol as Server-Sent Events."""
    _require_api_auth(x_api_key)
    aggregator, chain = _services()
    symbol = _validated_symbol(symbol)

    logger.info("Starting AI analysis for %s", symbol)
    context = await aggregator.build_analysis_context(symbol, is_crypto=crypto)
    if context.view.current_price is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": f"No data available for symbol: {symbol}"},
        )

    prompt = build_stock_prompt(context, max_chars=_prompt_max_chars())
    return _event_stream(stream_analysis_events(chain, prompt, {"type": "done", "symbol": symbol}))


@web_api.post("/api/ai/analyze-portfolio")
async def analyze_portfolio(
    request: PortfolioRequest,
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
):
    """Stream an AI analysis of the supplied holdings as Server-Sent Events."""
    _require_api_auth(x_api_key)
    aggregator, chain = _services()
    holdings = _to_holdings(request)

    logger.info("Starting AI portfolio analysis for %d holdings", len(holdings))
    context = await aggregator.build_portfolio_analysis_context(holdings)
    prompt = build_portfolio_prompt(context, max_chars=_prompt_max_chars())
    done = {"type": "done", "holdings": len(holdings)}
    return _event_stream(stream_analysis_events(chain, prompt, done))


@web_api.post("/api/portfolio/view")
async def portfolio_view(
    request: PortfolioRequest,
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
):
    """Valuation, allocation and concentration of the supplied holdings."""
    _require_api_auth(x_api_key)
    aggregator, _ = _services()
    view = await aggregator.build_portfolio_view(_to_holdings(request))
    return view.to_dict()
