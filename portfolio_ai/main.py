"""Main entry point for the portfolio analysis API."""

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from .cache import InMemoryCache
from .config import Config
from .http_client import build_http_client
from .llm.adapters import build_model_adapters
from .llm.models import DEFAULT_MODEL_CHAIN
from .llm.streaming import StreamingFallbackChain
from .providers.fear_greed import FearGreedProvider
from .providers.market_router import MarketDataRouter
from .services.aggregator import MarketDataAggregator
from .services.patterns import PatternClassifier
from .web_api import configure_api_dependencies, web_api

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def build_services(config: Config) -> MarketDataAggregator:
    """Wire cache, providers, model chain and aggregator into the web API."""
    # Create shared HTTP client with connection pooling
    http_client = build_http_client(config)
    cache = InMemoryCache(ttl_seconds=config.cache_ttl)

    router = MarketDataRouter.from_config(config, http_client, cache)
    chain = StreamingFallbackChain(build_model_adapters(http_client, config), DEFAULT_MODEL_CHAIN)
    aggregator = MarketDataAggregator(
        router=router,
        fear_greed=FearGreedProvider(config, http_client, cache),
        pattern_classifier=PatternClassifier(chain, timeout_seconds=config.pattern_timeout_seconds),
    )

    configure_api_dependencies(
        config=config,
        aggregator=aggregator,
        chain=chain,
        cache=cache,
        http_client=http_client,
    )
    return aggregator


def main() -> None:
    load_dotenv()

    # Load configuration
    config = Config.from_env()
    build_services(config)

    configured = [
        name for name, key in (
            ("Polygon", config.polygon_api_key),
            ("Alpaca", config.alpaca_api_key and config.alpaca_secret_key),
            ("Alpha Vantage", config.alphavantage_api_key),
            ("NVIDIA", config.nvidia_api_key),
            ("OpenRouter", config.openrouter_api_key),
        )
        if key
    ]
    logger.info("Configured providers: %s (Yahoo Finance needs no key)", ", ".join(configured) or "none")
    logger.info("Starting web API server on port %d", config.web_port)

    try:
        uvicorn.run(web_api, host="0.0.0.0", port=config.web_port, log_level="warning")
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")


if __name__ == "__main__":
    main()
