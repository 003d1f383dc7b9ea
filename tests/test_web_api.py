import json
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from portfolio_ai import web_api as api_module
from portfolio_ai.analytics.portfolio import compute_portfolio_metrics
from portfolio_ai.cache import InMemoryCache
from portfolio_ai.config import Config
from portfolio_ai.domain.models import Holding, Provenance, Snapshot
from portfolio_ai.llm.errors import MidStreamError, ModelChainExhaustedError
from portfolio_ai.llm.models import Fragment
from portfolio_ai.services.aggregator import (
    AnalysisContext,
    PortfolioAnalysisContext,
    PortfolioView,
    SymbolView,
)
from portfolio_ai.web_api import web_api


class _FakeChain:
    def __init__(self, texts=(), error=None):
        self.texts = list(texts)
        self.error = error
        self.prompts = []

    async def stream(self, prompt, session=None, max_tokens=None):
        self.prompts.append(prompt)
        for text in self.texts:
            yield Fragment(text=text, provider="NVIDIA", model="test-model")
        if self.error is not None:
            raise self.error


def _snapshot_view(symbol="AAPL", price=190.5):
    snapshot = None
    if price is not None:
        snapshot = Snapshot(symbol=symbol, price=price, provenance=Provenance("Polygon.io"))
    return SymbolView(symbol=symbol, snapshot=snapshot)


def _aggregator(view=None):
    view = view if view is not None else _snapshot_view()
    aggregator = MagicMock()
    aggregator.router.get_stats.return_value = {"total_requests": 3, "success_rate_percent": 100.0}
    aggregator.build_symbol_view = AsyncMock(return_value=view)
    aggregator.build_analysis_context = AsyncMock(return_value=AnalysisContext(view=view))

    async def portfolio_view(holdings):
        prices = {h.symbol: 150.0 for h in holdings if h.symbol != "GONE"}
        failed = [h.symbol for h in holdings if h.symbol == "GONE"]
        return PortfolioView(metrics=compute_portfolio_metrics(holdings, prices), failed_symbols=failed)

    async def portfolio_context(holdings):
        return PortfolioAnalysisContext(view=await portfolio_view(holdings))

    aggregator.build_portfolio_view = AsyncMock(side_effect=portfolio_view)
    aggregator.build_portfolio_analysis_context = AsyncMock(side_effect=portfolio_context)
    return aggregator


def _client(monkeypatch, aggregator=None, chain=None):
    monkeypatch.delenv("WEB_API_TOKEN", raising=False)
    api_module.configure_api_dependencies(
        config=Config(),
        aggregator=aggregator or _aggregator(),
        chain=chain or _FakeChain(["Hello"]),
        cache=InMemoryCache(),
    )
    return TestClient(web_api)


def _events(response):
    return [
        json.loads(line[len("data: "):])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]


def test_healthz_needs_no_configuration(monkeypatch):
    monkeypatch.setattr(api_module, "_aggregator", None)
    client = TestClient(web_api)

    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_unconfigured_service_returns_503(monkeypatch):
    monkeypatch.delenv("WEB_API_TOKEN", raising=False)
    monkeypatch.setattr(api_module, "_aggregator", None)
    client = TestClient(web_api)

    response = client.get("/api/stocks/AAPL")
    assert response.status_code == 503


def test_api_token_enforced_when_configured(monkeypatch):
    client = _client(monkeypatch)
    monkeypatch.setenv("WEB_API_TOKEN", "secret")

    assert client.get("/api/status").status_code == 401
    response = client.get("/api/status", headers={"X-API-Key": "secret"})
    assert response.status_code == 200


def test_status_reports_router_and_cache(monkeypatch):
    client = _client(monkeypatch)

    payload = client.get("/api/status").json()
    assert payload["router"]["total_requests"] == 3
    assert payload["cache"]["size"] == 0


def test_stock_view(monkeypatch):
    aggregator = _aggregator()
    client = _client(monkeypatch, aggregator=aggregator)

    response = client.get("/api/stocks/aapl")
    assert response.status_code == 200
    payload = response.json()
    assert payload["symbol"] == "AAPL"
    assert payload["snapshot"]["price"] == 190.5
    assert payload["snapshot"]["source"] == "Polygon.io"
    assert payload["news"] is None
    aggregator.build_symbol_view.assert_awaited_once_with("AAPL", is_crypto=None)


def test_stock_view_404_when_nothing_found(monkeypatch):
    client = _client(monkeypatch, aggregator=_aggregator(_snapshot_view("ZZZZ", price=None)))

    response = client.get("/api/stocks/ZZZZ")
    assert response.status_code == 404


def test_invalid_symbol_400(monkeypatch):
    client = _client(monkeypatch)

    response = client.get("/api/stocks/.bad")
    assert response.status_code == 400


def test_analyze_stock_streams_chunks_then_done(monkeypatch):
    chain = _FakeChain(["Strong ", "buy."])
    client = _client(monkeypatch, chain=chain)

    response = client.get("/api/ai/analyze-stock/AAPL")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _events(response)
    assert [e["type"] for e in events] == ["chunk", "chunk", "done"]
    assert events[0] == {"type": "chunk", "content": "Strong ", "model": "test-model", "provider": "NVIDIA"}
    assert events[-1] == {"type": "done", "symbol": "AAPL"}
    assert "AAPL" in chain.prompts[0].user


def test_analyze_stock_404_without_price(monkeypatch):
    client = _client(monkeypatch, aggregator=_aggregator(_snapshot_view("ZZZZ", price=None)))

    response = client.get("/api/ai/analyze-stock/ZZZZ")

    assert response.status_code == 404
    assert response.json() == {"error": "No data available for symbol: ZZZZ"}


def test_analyze_stock_mid_stream_error_ends_with_single_error(monkeypatch):
    error = MidStreamError("NVIDIA", "test-model", RuntimeError("connection reset"))
    client = _client(monkeypatch, chain=_FakeChain(["Partial"], error=error))

    events = _events(client.get("/api/ai/analyze-stock/AAPL"))

    assert [e["type"] for e in events] == ["chunk", "error"]
    assert events[-1]["code"] == "mid_stream"
    assert "connection reset" in events[-1]["error"]


def test_analyze_stock_exhausted_chain(monkeypatch):
    error = ModelChainExhaustedError(["a", "b"], RuntimeError("HTTP 503"))
    client = _client(monkeypatch, chain=_FakeChain([], error=error))

    events = _events(client.get("/api/ai/analyze-stock/AAPL"))

    assert len(events) == 1
    assert events[0]["type"] == "error"
    assert events[0]["code"] == "exhausted"


def test_analyze_portfolio_streams(monkeypatch):
    client = _client(monkeypatch, chain=_FakeChain(["Rebalance."]))

    response = client.post(
        "/api/ai/analyze-portfolio",
        json={"holdings": [
            {"symbol": "AAPL", "shares": 10, "cost_per_share": 100},
            {"symbol": "brk.a", "shares": 1, "cost_per_share": 500000, "sector": "Financials"},
        ]},
    )

    events = _events(response)
    assert events[0]["content"] == "Rebalance."
    assert events[-1] == {"type": "done", "holdings": 2}


def test_portfolio_validation(monkeypatch):
    client = _client(monkeypatch)

    assert client.post("/api/ai/analyze-portfolio", json={"holdings": []}).status_code == 400
    response = client.post("/api/portfolio/view", json={"holdings": [{"symbol": "AAPL", "shares": 0}]})
    assert response.status_code == 400


def test_portfolio_view(monkeypatch):
    aggregator = _aggregator()
    client = _client(monkeypatch, aggregator=aggregator)

    response = client.post(
        "/api/portfolio/view",
        json={"holdings": [
            {"symbol": "AAPL", "shares": 10, "cost_per_share": 100},
            {"symbol": "GONE", "shares": 2, "cost_per_share": 5},
        ]},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["failedSymbols"] == ["GONE"]
    assert payload["totalValue"] == 1510.0
    holdings = aggregator.build_portfolio_view.await_args.args[0]
    assert all(isinstance(h, Holding) for h in holdings)
    assert holdings[0].sector == "Unknown"
