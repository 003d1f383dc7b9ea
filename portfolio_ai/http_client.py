"""Shared HTTP client construction and GET-with-retry helper."""

import asyncio
import logging
import random
from typing import Any, Optional

import httpx

from .config import Config

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


def build_http_client(config: Config) -> httpx.AsyncClient:
    """Create the process-wide HTTP client with connection pooling."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
        headers={"User-Agent": BROWSER_USER_AGENT},
    )


def _backoff(attempt: int, factor: float) -> float:
    return factor * (2 ** attempt) + random.uniform(0, 0.2)


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    retries: int = 3,
    backoff_factor: float = 0.5,
) -> Any:
    """
    GET a JSON document with exponential backoff retry.

    Retries rate limits (429, honouring Retry-After), server errors (5xx),
    timeouts and connection errors. Other 4xx responses raise immediately.

    Args:
        client: Shared httpx client
        url: URL to fetch
        params: Query parameters
        headers: Custom headers
        retries: Total attempts
        backoff_factor: Base delay for exponential backoff

    Returns:
        Decoded JSON body

    Raises:
        httpx.HTTPError on persistent failure, ValueError on a non-JSON body
    """
    last_exception: Optional[Exception] = None

    for attempt in range(retries):
        is_last = attempt == retries - 1
        try:
            logger.debug("HTTP GET attempt %d/%d: %s", attempt + 1, retries, url)
            response = await client.get(url, params=params, headers=headers)

            if response.status_code == 429 and not is_last:
                try:
                    wait_time = float(response.headers.get("Retry-After", "1"))
                except ValueError:
                    wait_time = 1.0
                logger.warning("Rate limited (429). Retrying after %.1f seconds...", wait_time)
                await asyncio.sleep(wait_time)
                continue

            if response.status_code >= 500 and not is_last:
                delay = _backoff(attempt, backoff_factor)
                logger.warning(
                    "Server error (%d). Retrying in %.2f seconds...",
                    response.status_code,
                    delay,
                )
                await asyncio.sleep(delay)
                continue

            response.raise_for_status()
            return response.json()

        except (httpx.TimeoutException, httpx.ConnectError) as exc:
            last_exception = exc
            if is_last:
                logger.error("HTTP GET failed after %d attempts: %s", retries, exc)
                break
            delay = _backoff(attempt, backoff_factor)
            logger.warning(
                "HTTP error on attempt %d: %s. Retrying in %.2f seconds...",
                attempt + 1,
                exc,
                delay,
            )
            await asyncio.sleep(delay)

    if last_exception:
        raise last_exception

    raise httpx.NetworkError("HTTP GET failed: max retries exceeded")
