from __future__ import annotations

from .openai_adapter import OpenAIAdapter


class PerplexityAdapter(OpenAIAdapter):
    # Perplexity speaks the OpenAI chat-completions dialect.
    kind = "perplexity"
