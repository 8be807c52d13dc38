from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Union

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Provide clear, accurate, and helpful responses."
)
NOT_PROVIDED = "Not provided"


class ErrorKind(str, Enum):
    AUTH_ERROR = "auth_error"
    RATE_LIMITED = "rate_limited"
    BAD_REQUEST = "bad_request"
    PERMISSION_DENIED = "permission_denied"
    SERVICE_ERROR = "service_error"
    API_ERROR = "api_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    EMPTY_RESPONSE = "empty_response"
    NO_PROVIDERS_AVAILABLE = "no_providers_available"
    UNKNOWN_PROVIDER = "unknown_provider"


@dataclass(frozen=True)
class ProviderConfig:
    id: str
    name: str
    kind: str
    endpoint_template: str
    api_key_env: str
    models: tuple[str, ...] = ()
    default_model: str = ""

    def endpoint(self, model: str) -> str:
        return self.endpoint_template.format(model=model)


@dataclass(frozen=True)
class GenerationSettings:
    temperature: float = 0.7
    max_tokens: int = 1000
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    timeout_ms: int = 30000
    model: Union[str, None] = None
    retries: int = 0

    def merged(
        self, overrides: Union["GenerationSettings", Mapping[str, Any], None]
    ) -> "GenerationSettings":
        """Return a copy with caller overrides applied; ``None`` values are ignored."""
        if overrides is None:
            return self
        if isinstance(overrides, GenerationSettings):
            overrides = asdict(overrides)
        known = {k: v for k, v in overrides.items() if k in _SETTING_FIELDS and v is not None}
        return replace(self, **known)

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000


_SETTING_FIELDS = frozenset(GenerationSettings.__dataclass_fields__)


@dataclass(frozen=True)
class GenerationRequest:
    provider_id: str
    prompt: str
    settings: GenerationSettings = field(default_factory=GenerationSettings)


@dataclass(frozen=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass(frozen=True)
class GenerationSuccess:
    provider_id: str
    content: str
    model: str
    tokens: TokenUsage
    processing_time_ms: int

    success = True

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["success"] = True
        return data


@dataclass(frozen=True)
class GenerationFailure:
    provider_id: str
    error_kind: ErrorKind
    message: str
    processing_time_ms: int

    success = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "success": False,
            "error_kind": self.error_kind.value,
            "message": self.message,
            "processing_time_ms": self.processing_time_ms,
        }


GenerationResult = Union[GenerationSuccess, GenerationFailure]


@dataclass(frozen=True)
class ProviderStatus:
    provider_id: str
    name: str
    configured: bool
    models: tuple[str, ...]
    default_model: str


@dataclass(frozen=True)
class ProbeResult:
    provider_id: str
    name: str
    status: str
    available: bool
    error: Union[str, None] = None
    error_kind: Union[str, None] = None


@dataclass(frozen=True)
class JudgementRequest:
    question: str
    responses: tuple[str, ...]


@dataclass
class Judgement:
    ranking: list[Union[int, str]]
    scores: list[str]
    reasoning: str
    raw_text: str
    is_mock: bool = False
    source: str = "primary"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class JudgeConfigStatus:
    is_valid: bool
    missing: tuple[str, ...] = ()
