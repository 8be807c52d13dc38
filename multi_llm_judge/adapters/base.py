from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Union

from ..core.types import GenerationSettings, ProviderConfig, TokenUsage


@dataclass(frozen=True)
class ProviderRequest:
    url: str
    json: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ParsedReply:
    content: Union[str, None]
    tokens: TokenUsage


class ProviderAdapter(Protocol):
    kind: str

    def build_request(
        self,
        prompt: str,
        settings: GenerationSettings,
        config: ProviderConfig,
        api_key: str,
    ) -> ProviderRequest: ...

    def parse_response(self, data: dict[str, Any]) -> ParsedReply: ...


def usage_int(usage: dict[str, Any], key: str) -> int:
    value = usage.get(key)
    return value if isinstance(value, int) else 0
