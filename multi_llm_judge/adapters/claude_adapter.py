from __future__ import annotations

from typing import Any

from ..core.types import GenerationSettings, ProviderConfig, TokenUsage
from .base import ParsedReply, ProviderRequest, usage_int

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeAdapter:
    kind = "claude"

    def build_request(
        self,
        prompt: str,
        settings: GenerationSettings,
        config: ProviderConfig,
        api_key: str,
    ) -> ProviderRequest:
        model = settings.model or config.default_model
        payload = {
            "model": model,
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
            "system": settings.system_prompt,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        return ProviderRequest(url=config.endpoint(model), json=payload, headers=headers)

    def parse_response(self, data: dict[str, Any]) -> ParsedReply:
        content = data.get("content") or []
        text = None
        if content and isinstance(content[0], dict):
            text = content[0].get("text")
        usage = data.get("usage") or {}
        tokens_in = usage_int(usage, "input_tokens")
        tokens_out = usage_int(usage, "output_tokens")
        return ParsedReply(
            content=text,
            tokens=TokenUsage(prompt=tokens_in, completion=tokens_out, total=tokens_in + tokens_out),
        )
