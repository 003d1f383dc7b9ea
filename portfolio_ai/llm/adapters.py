"""HTTP adapters for OpenAI-compatible model APIs (chat completions and responses)."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from ..config import Config
from .errors import ModelProviderError, ProviderUnavailableError
from .models import AnalysisPrompt, ApiStyle, ModelProviderConfig

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_TOP_P = 0.95


def parse_sse_line(line: str) -> Optional[str]:
    """Return the payload of a ``data:`` line, or None for anything else."""
    if not line or not line.startswith("data:"):
        return None
    return line[len("data:"):].strip()


class ModelAdapter(ABC):
    """
    Streams text fragments from one model API style.

    ``stream`` raises on any failure; it never retries and never falls back.
    Closing the returned iterator closes the underlying HTTP response.
    """

    endpoint: str = ""

    def __init__(self, http_client: httpx.AsyncClient, settings: Config):
        self.http_client = http_client
        self.settings = settings

    def _headers(self, config: ModelProviderConfig) -> Dict[str, str]:
        api_key = self.settings.api_key_for(config.provider)
        if not api_key:
            raise ProviderUnavailableError(f"{config.api_key_env} is not set for {config.label}")

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if config.provider == "OpenRouter":
            headers["HTTP-Referer"] = self.settings.openrouter_referer
            headers["X-Title"] = self.settings.openrouter_title
        return headers

    @abstractmethod
    def build_payload(
        self,
        prompt: AnalysisPrompt,
        config: ModelProviderConfig,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Request body for a streaming call."""

    @abstractmethod
    def extract_text(self, event: Dict[str, Any], config: ModelProviderConfig) -> str:
        """Text carried by one decoded stream event ('' when none)."""

    async def stream(
        self,
        prompt: AnalysisPrompt,
        config: ModelProviderConfig,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        headers = self._headers(config)
        payload = self.build_payload(prompt, config, max_tokens)
        url = f"{config.base_url.rstrip('/')}{self.endpoint}"

        async with self.http_client.stream("POST", url, json=payload, headers=headers) as response:
            if response.status_code >= 400:
                body = await response.aread()
                raise ModelProviderError(
                    f"{config.label} returned HTTP {response.status_code}: "
                    f"{body[:200].decode('utf-8', 'replace')}"
                )

            async for line in response.aiter_lines():
                data = parse_sse_line(line)
                if not data:
                    continue
                if data == DONE_SENTINEL:
                    break
                try:
                    event = json.loads(data)
                except ValueError:
                    logger.debug("Skipping undecodable stream line from %s: %s", config.label, data[:80])
                    continue
                if event.get("error"):
                    raise ModelProviderError(f"{config.label} stream error: {event['error']}")

                text = self.extract_text(event, config)
                if text:
                    yield text


class ChatCompletionsAdapter(ModelAdapter):
    """``POST /chat/completions`` with role-structured messages."""

    endpoint = "/chat/completions"

    def build_payload(self, prompt, config, max_tokens=None):
        messages = []
        if prompt.system:
            messages.append({"role": "system", "content": prompt.system})
        messages.append({"role": "user", "content": prompt.user})

        payload = {
            "model": config.model,
            "messages": messages,
            "temperature": config.temperature if config.temperature is not None else DEFAULT_TEMPERATURE,
            "top_p": config.top_p if config.top_p is not None else DEFAULT_TOP_P,
            "max_tokens": max_tokens or config.max_tokens,
            "stream": True,
        }
        if config.thinking_template:
            payload["chat_template_kwargs"] = {"thinking": True}
        if config.reasoning_toggle:
            payload["reasoning"] = {"enabled": True}
        return payload

    def extract_text(self, event, config):
        choices = event.get("choices") or []
        if not choices:
            return ""
        delta = choices[0].get("delta") or {}
        content = delta.get("content") or ""
        reasoning = delta.get("reasoning_content") or ""

        if config.merge_reasoning:
            return reasoning + content
        return content or reasoning


class ResponsesAdapter(ModelAdapter):
    """``POST /responses`` with a single-turn input; reasoning and output deltas are both kept."""

    endpoint = "/responses"
    TEXT_EVENTS = ("response.reasoning_text.delta", "response.output_text.delta")

    def build_payload(self, prompt, config, max_tokens=None):
        payload = {
            "model": config.model,
            "input": [prompt.single_turn()],
            "max_output_tokens": max_tokens or config.max_tokens,
            "stream": True,
        }
        if config.temperature is not None:
            payload["temperature"] = config.temperature
        if config.top_p is not None:
            payload["top_p"] = config.top_p
        return payload

    def extract_text(self, event, config):
        event_type = event.get("type")
        if event_type == "response.failed":
            raise ModelProviderError(f"{config.label} response failed: {event.get('response')}")
        if event_type in self.TEXT_EVENTS:
            return event.get("delta") or ""
        return ""


def build_model_adapters(http_client: httpx.AsyncClient, settings: Config) -> Dict[ApiStyle, ModelAdapter]:
    return {
        ApiStyle.CHAT_COMPLETIONS: ChatCompletionsAdapter(http_client, settings),
        ApiStyle.RESPONSES: ResponsesAdapter(http_client, settings),
    }
