from __future__ import annotations

from typing import Any

from ..core.types import GenerationSettings, ProviderConfig, TokenUsage
from .base import ParsedReply, ProviderRequest, usage_int

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


class GeminiAdapter:
    kind = "gemini"

    def build_request(
        self,
        prompt: str,
        settings: GenerationSettings,
        config: ProviderConfig,
        api_key: str,
    ) -> ProviderRequest:
        model = settings.model or config.default_model
        # Gemini has no system role, so the system prompt is folded into the user turn
        payload = {
            "contents": [
                {"parts": [{"text": f"{settings.system_prompt}\n\nUser: {prompt}"}]}
            ],
            "generationConfig": {
                "temperature": settings.temperature,
                "maxOutputTokens": settings.max_tokens,
                "topP": 0.8,
                "topK": 10,
            },
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
                for category in SAFETY_CATEGORIES
            ],
        }
        return ProviderRequest(
            url=config.endpoint(model),
            json=payload,
            headers={"Content-Type": "application/json"},
            params={"key": api_key},
        )

    def parse_response(self, data: dict[str, Any]) -> ParsedReply:
        text = None
        candidates = data.get("candidates") or []
        if candidates and isinstance(candidates[0], dict):
            parts = (candidates[0].get("content") or {}).get("parts") or []
            if parts and isinstance(parts[0], dict):
                text = parts[0].get("text")
        usage = data.get("usageMetadata") or {}
        return ParsedReply(
            content=text,
            tokens=TokenUsage(
                prompt=usage_int(usage, "promptTokenCount"),
                completion=usage_int(usage, "candidatesTokenCount"),
                total=usage_int(usage, "totalTokenCount"),
            ),
        )
