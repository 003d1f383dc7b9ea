"""Configuration management for the portfolio analysis service."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_str(name: str) -> Optional[str]:
    return os.getenv(name, "").strip() or None


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # Market data providers (all optional, a provider without a key is skipped)
    polygon_api_key: Optional[str] = None
    alpaca_api_key: Optional[str] = None
    alpaca_secret_key: Optional[str] = None
    alphavantage_api_key: Optional[str] = None
    rapidapi_key: Optional[str] = None

    # Language model providers
    nvidia_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    openrouter_referer: str = "https://stock-analysis.app"
    openrouter_title: str = "Stock Analysis AI"

    # Cache
    cache_ttl: int = 300  # 5 minutes

    # Usable-result thresholds
    min_historical_points: int = 1
    history_days: int = 365
    news_limit: int = 10

    # Network settings
    http_timeout: int = 30
    max_retries: int = 3
    retry_backoff_factor: float = 0.5

    # Analysis
    pattern_timeout_seconds: float = 2.0
    prompt_max_chars: int = 12000

    # Web API
    web_port: int = 8000
    web_api_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        return cls(
            polygon_api_key=_env_str("POLYGON_API_KEY"),
            alpaca_api_key=_env_str("ALPACA_KEY"),
            alpaca_secret_key=_env_str("ALPACA_SECRET_KEY"),
            alphavantage_api_key=_env_str("ALPHAVANTAGE_API_KEY"),
            rapidapi_key=_env_str("RAPIDAPI_KEY"),
            nvidia_api_key=_env_str("NVIDIA_NIM_API_KEY"),
            openrouter_api_key=_env_str("OPEN_ROUTER_KEY"),
            openrouter_referer=os.getenv("OPENROUTER_REFERER", "https://stock-analysis.app"),
            openrouter_title=os.getenv("OPENROUTER_TITLE", "Stock Analysis AI"),
            cache_ttl=int(os.getenv("CACHE_TTL_SECONDS", "300")),
            min_historical_points=int(os.getenv("MIN_HISTORICAL_POINTS", "1")),
            history_days=int(os.getenv("HISTORY_DAYS", "365")),
            news_limit=int(os.getenv("NEWS_LIMIT", "10")),
            http_timeout=int(os.getenv("HTTP_TIMEOUT", "30")),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_backoff_factor=float(os.getenv("RETRY_BACKOFF_FACTOR", "0.5")),
            pattern_timeout_seconds=float(os.getenv("PATTERN_TIMEOUT_SECONDS", "2.0")),
            prompt_max_chars=int(os.getenv("PROMPT_MAX_CHARS", "12000")),
            web_port=int(os.getenv("PORT", os.getenv("WEB_PORT", "8000"))),
            web_api_token=_env_str("WEB_API_TOKEN"),
        )

    def api_key_for(self, provider: str) -> Optional[str]:
        """Resolve the API key for a language model provider name."""
        keys = {
            "NVIDIA": self.nvidia_api_key,
            "OpenRouter": self.openrouter_api_key,
        }
        return keys.get(provider)
