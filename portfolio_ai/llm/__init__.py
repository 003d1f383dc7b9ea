"""Language-model provider chain with streaming fallback."""

from .adapters import ChatCompletionsAdapter, ModelAdapter, ResponsesAdapter, build_model_adapters
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
from .streaming import StreamingFallbackChain

__all__ = [
    "DEFAULT_MODEL_CHAIN",
    "AnalysisPrompt",
    "AnalysisStreamError",
    "ApiStyle",
    "ChatCompletionsAdapter",
    "Completion",
    "Fragment",
    "MidStreamError",
    "ModelAdapter",
    "ModelChainExhaustedError",
    "ModelProviderConfig",
    "ModelProviderError",
    "ProviderUnavailableError",
    "ResponsesAdapter",
    "SessionState",
    "StreamSession",
    "StreamingFallbackChain",
    "build_model_adapters",
]
