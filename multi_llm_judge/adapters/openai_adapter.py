from __future__ import annotations

from typing import Any

from ..core.types import GenerationSettings, ProviderConfig, TokenUsage
from .base import ParsedReply, ProviderRequest, usage_int


class OpenAIAdapter:
    """Chat-completions wire shape with bearer auth."""

    kind = "openai"

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
            "messages": [
                {"role": "system", "content": settings.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }
        return ProviderRequest(url=config.endpoint(model), json=payload, headers=headers)

    def parse_response(self, data: dict[str, Any]) -> ParsedReply:
        choices = data.get("choices") or []
        text = None
        if choices and isinstance(choices[0], dict):
            text = (choices[0].get("message") or {}).get("content")
        usage = data.get("usage") or {}
        return ParsedReply(
            content=text,
            tokens=TokenUsage(
                prompt=usage_int(usage, "prompt_tokens"),
                completion=usage_int(usage, "completion_tokens"),
                total=usage_int(usage, "total_tokens"),
            ),
        )
