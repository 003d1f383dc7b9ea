"""Exceptions raised by model adapters and the streaming fallback chain."""


class ModelProviderError(Exception):
    """A model provider call failed (HTTP status, bad payload, error event)."""


class ProviderUnavailableError(ModelProviderError):
    """The provider cannot be called at all, e.g. its API key is missing."""


class AnalysisStreamError(Exception):
    """Base class for terminal analysis stream failures."""

    code = "error"


class MidStreamError(AnalysisStreamError):
    """A provider failed after output had already been delivered."""

    code = "mid_stream"

    def __init__(self, provider: str, model: str, cause: BaseException):
        super().__init__(f"{model} ({provider}) failed mid-stream: {cause}")
        self.provider = provider
        self.model = model
        self.cause = cause


class ModelChainExhaustedError(AnalysisStreamError):
    """Every configured model failed before producing any output."""

    code = "exhausted"

    def __init__(self, attempts, last_error=None):
        detail = f"Last error: {last_error}" if last_error else "No model configured"
        super().__init__(f"All AI models failed ({len(attempts)} attempted). {detail}")
        self.attempts = list(attempts)
        self.last_error = last_error
