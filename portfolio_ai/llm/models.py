"""Language-model provider configs and streaming value types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

NVIDIA_BASE_URL = "https://integrate.api.nvidia.com/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class ApiStyle(str, Enum):
    CHAT_COMPLETIONS = "chat_completions"
    RESPONSES = "responses"


@dataclass(frozen=True)
class ModelProviderConfig:
    """One entry of the model chain. Position in the chain is its priority."""
    provider: str
    base_url: str
    api_key_env: str
    model: str
    max_tokens: int = 8192
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    api_style: ApiStyle = ApiStyle.CHAT_COMPLETIONS
    thinking_template: bool = False
    reasoning_toggle: bool = False
    merge_reasoning: bool = False

    @property
    def label(self) -> str:
        return f"{self.model} ({self.provider})"


DEFAULT_MODEL_CHAIN: Tuple[ModelProviderConfig, ...] = (
    ModelProviderConfig(
        provider="NVIDIA",
        base_url=NVIDIA_BASE_URL,
        api_key_env="NVIDIA_NIM_API_KEY",
        model="nvidia/llama-3.1-nemotron-ultra-253b-v1",
        max_tokens=4096,
        temperature=0.6,
        top_p=0.95,
    ),
    ModelProviderConfig(
        provider="NVIDIA",
        base_url=NVIDIA_BASE_URL,
        api_key_env="NVIDIA_NIM_API_KEY",
        model="qwen/qwen3-235b-a22b",
        max_tokens=8192,
        temperature=0.2,
        top_p=0.7,
        thinking_template=True,
        merge_reasoning=True,
    ),
    ModelProviderConfig(
        provider="NVIDIA",
        base_url=NVIDIA_BASE_URL,
        api_key_env="NVIDIA_NIM_API_KEY",
        model="minimaxai/minimax-m2",
        max_tokens=8192,
        temperature=1.0,
        top_p=0.95,
    ),
    ModelProviderConfig(
        provider="NVIDIA",
        base_url=NVIDIA_BASE_URL,
        api_key_env="NVIDIA_NIM_API_KEY",
        model="openai/gpt-oss-120b",
        max_tokens=4096,
        temperature=1.0,
        top_p=1.0,
        api_style=ApiStyle.RESPONSES,
    ),
    ModelProviderConfig(
        provider="OpenRouter",
        base_url=OPENROUTER_BASE_URL,
        api_key_env="OPEN_ROUTER_KEY",
        model="x-ai/grok-4.1-fast:free",
        reasoning_toggle=True,
    ),
    ModelProviderConfig(
        provider="OpenRouter",
        base_url=OPENROUTER_BASE_URL,
        api_key_env="OPEN_ROUTER_KEY",
        model="tngtech/deepseek-r1t2-chimera:free",
    ),
    ModelProviderConfig(
        provider="OpenRouter",
        base_url=OPENROUTER_BASE_URL,
        api_key_env="OPEN_ROUTER_KEY",
        model="qwen/qwen3-235b-a22b:free",
    ),
    ModelProviderConfig(
        provider="OpenRouter",
        base_url=OPENROUTER_BASE_URL,
        api_key_env="OPEN_ROUTER_KEY",
        model="deepseek/deepseek-chat-v3-0324:free",
    ),
)


@dataclass(frozen=True)
class AnalysisPrompt:
    """System instructions plus the serialized data block."""
    system: str
    user: str

    def single_turn(self) -> str:
        """Prompt for APIs that take one input string."""
        if not self.system:
            return self.user
        return f"{self.system}\n\n{self.user}"


@dataclass(frozen=True)
class Fragment:
    """A piece of streamed model output tagged with where it came from."""
    text: str
    provider: str
    model: str


@dataclass(frozen=True)
class Completion:
    text: str
    provider: str
    model: str


class SessionState(str, Enum):
    SELECTING = "selecting"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FALLING_BACK = "falling_back"
    FAILED = "failed"


@dataclass
class StreamSession:
    """Mutable state of one streaming analysis request."""
    state: SessionState = SessionState.SELECTING
    provider_index: int = -1
    has_emitted: bool = False
    last_error: Optional[BaseException] = None
    attempts: List[str] = field(default_factory=list)
    fragments: int = 0
