from __future__ import annotations

from types import MappingProxyType

from .base import ProviderAdapter
from .claude_adapter import ClaudeAdapter
from .gemini_adapter import GeminiAdapter
from .openai_adapter import OpenAIAdapter
from .perplexity_adapter import PerplexityAdapter

ADAPTERS: "MappingProxyType[str, ProviderAdapter]" = MappingProxyType(
    {
        adapter.kind: adapter
        for adapter in (GeminiAdapter(), OpenAIAdapter(), ClaudeAdapter(), PerplexityAdapter())
    }
)


def get_adapter(kind: str) -> ProviderAdapter:
    try:
        return ADAPTERS[kind]
    except KeyError:
        raise ValueError(f"No wire adapter for provider kind '{kind}'") from None
