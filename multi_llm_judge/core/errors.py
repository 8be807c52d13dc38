from __future__ import annotations


class MultiLLMError(Exception):
    """Base class for errors raised across the orchestrator seams."""


class UnknownProviderError(MultiLLMError, KeyError):
    def __init__(self, provider_id: str) -> None:
        super().__init__(provider_id)
        self.provider_id = provider_id

    def __str__(self) -> str:
        return f"Unsupported provider: {self.provider_id}"


class NoProvidersAvailableError(MultiLLMError):
    def __init__(self, requested: list[str] | None = None) -> None:
        self.requested = list(requested or [])
        super().__init__("No valid API keys configured for any providers")


class EmptyResponseError(MultiLLMError):
    """The backend answered successfully but produced no text."""


class InvalidJudgeRequestError(MultiLLMError, ValueError):
    """The judge was called with something other than a question and four responses."""


class JudgeInvocationError(MultiLLMError):
    """A judge backend call failed; always recovered inside the evaluator."""

    def __init__(self, message: str, unavailable: bool = False) -> None:
        super().__init__(message)
        self.unavailable = unavailable
