"""Tests for environment-driven configuration."""

from portfolio_ai.config import Config


def test_from_env_reads_keys_and_overrides(monkeypatch):
    monkeypatch.setenv("POLYGON_API_KEY", "  pk  ")
    monkeypatch.setenv("NVIDIA_NIM_API_KEY", "nv")
    monkeypatch.setenv("OPEN_ROUTER_KEY", "")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("MIN_HISTORICAL_POINTS", "30")
    monkeypatch.setenv("PORT", "9000")

    config = Config.from_env()

    assert config.polygon_api_key == "pk"
    assert config.openrouter_api_key is None
    assert config.cache_ttl == 60
    assert config.min_historical_points == 30
    assert config.web_port == 9000


def test_defaults(monkeypatch):
    for name in ("CACHE_TTL_SECONDS", "PATTERN_TIMEOUT_SECONDS", "PROMPT_MAX_CHARS", "PORT", "WEB_PORT"):
        monkeypatch.delenv(name, raising=False)

    config = Config.from_env()

    assert config.cache_ttl == 300
    assert config.pattern_timeout_seconds == 2.0
    assert config.prompt_max_chars == 12000
    assert config.web_port == 8000


def test_api_key_for_model_providers():
    config = Config(nvidia_api_key="nv", openrouter_api_key="or")

    assert config.api_key_for("NVIDIA") == "nv"
    assert config.api_key_for("OpenRouter") == "or"
    assert config.api_key_for("Unknown") is None
