"""Streaming fallback chain over language-model providers."""

import logging
from typing import AsyncIterator, List, Mapping, Optional, Sequence

from .adapters import ModelAdapter
from .errors import (
    AnalysisStreamError,
    MidStreamError,
    ModelChainExhaustedError,
    ModelProviderError,
    ProviderUnavailableError,
)
from .models import (
    DEFAULT_MODEL_CHAIN,
    AnalysisPrompt,
    ApiStyle,
    Completion,
    Fragment,
    ModelProviderConfig,
    SessionState,
    StreamSession,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AnalysisStreamError",
    "MidStreamError",
    "ModelChainExhaustedError",
    "StreamingFallbackChain",
]


class StreamingFallbackChain:
    """
    Streams an analysis from the first model provider that produces output.

    Providers are tried in configured order. A provider that fails, or ends
    without producing a single fragment, is skipped silently as long as
    nothing has been delivered yet. Once any fragment reaches the caller the
    chain is committed to that provider: a later failure ends the stream with
    ``MidStreamError`` instead of switching models, so the caller never sees
    output from two models spliced together.
    """

    def __init__(
        self,
        adapters: Mapping[ApiStyle, ModelAdapter],
        configs: Sequence[ModelProviderConfig] = DEFAULT_MODEL_CHAIN,
    ):
        self.adapters = dict(adapters)
        self.configs = tuple(configs)

    def _adapter_for(self, config: ModelProviderConfig) -> ModelAdapter:
        adapter = self.adapters.get(config.api_style)
        if adapter is None:
            raise ProviderUnavailableError(f"No adapter for {config.api_style.value} ({config.label})")
        return adapter

    async def stream(
        self,
        prompt: AnalysisPrompt,
        session: Optional[StreamSession] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[Fragment]:
        """
        Yield fragments as they arrive.

        Raises:
            MidStreamError: the active provider failed after emitting
            ModelChainExhaustedError: no provider emitted anything
        """
        session = session if session is not None else StreamSession()
        total = len(self.configs)

        for index, config in enumerate(self.configs):
            session.state = SessionState.SELECTING
            session.provider_index = index
            session.attempts.append(config.label)

            try:
                adapter = self._adapter_for(config)
            except ProviderUnavailableError as exc:
                session.last_error = exc
                session.state = SessionState.FALLING_BACK
                logger.warning("[AI] %s", exc)
                continue

            session.state = SessionState.ATTEMPTING
            logger.info("[AI] Streaming with model %d/%d: %s", index + 1, total, config.label)

            emitted = 0
            fragments = None
            try:
                fragments = adapter.stream(prompt, config, max_tokens)
                async for text in fragments:
                    emitted += 1
                    session.fragments += 1
                    session.has_emitted = True
                    yield Fragment(text=text, provider=config.provider, model=config.model)
            except Exception as exc:
                session.last_error = exc
                if session.has_emitted:
                    session.state = SessionState.FAILED
                    logger.error("[AI] ✗ %s failed after %d fragments: %s", config.label, emitted, exc)
                    raise MidStreamError(config.provider, config.model, exc) from exc

                session.state = SessionState.FALLING_BACK
                logger.warning("[AI] %s failed before output (%s), falling back", config.label, exc)
                continue
            finally:
                aclose = getattr(fragments, "aclose", None)
                if aclose is not None:
                    await aclose()

            if emitted:
                session.state = SessionState.SUCCEEDED
                logger.info("[AI] ✓ Streaming completed with %s (%d fragments)", config.label, emitted)
                return

            session.last_error = ModelProviderError(f"No content streamed from {config.label}")
            session.state = SessionState.FALLING_BACK
            logger.warning("[AI] %s produced no content, falling back", config.label)

        session.state = SessionState.FAILED
        logger.error("[AI] ✗ All %d models failed for streaming", total)
        raise ModelChainExhaustedError(session.attempts, session.last_error)

    async def complete(self, prompt: AnalysisPrompt, max_tokens: Optional[int] = None) -> Completion:
        """Whole-response call with the same fallback order; empty text counts as failure."""
        attempts: List[str] = []
        last_error: Optional[BaseException] = None

        for config in self.configs:
            attempts.append(config.label)
            try:
                adapter = self._adapter_for(config)
                parts = [text async for text in adapter.stream(prompt, config, max_tokens)]
            except Exception as exc:
                last_error = exc
                logger.warning("[AI] %s failed: %s", config.label, exc)
                continue

            text = "".join(parts)
            if text.strip():
                logger.info("[AI] ✓ Completion from %s", config.label)
                return Completion(text=text, provider=config.provider, model=config.model)

            last_error = ModelProviderError(f"Empty response from {config.label}")
            logger.warning("[AI] %s returned an empty response", config.label)

        raise ModelChainExhaustedError(attempts, last_error)
