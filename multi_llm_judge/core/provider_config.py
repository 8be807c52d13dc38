"""Provider registry for the multi-LLM orchestrator."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from ..adapters.catalog import ADAPTERS
from .errors import UnknownProviderError
from .types import ProviderConfig

logger = logging.getLogger(__name__)

PLACEHOLDER_KEYS = frozenset({"your-api-key-here", "changeme"})

DEFAULT_PROVIDERS: list[dict[str, Any]] = [
    {
        "id": "gemini",
        "name": "Google Gemini",
        "kind": "gemini",
        "endpoint": "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
        "api_key_env": "GEMINI_API_KEY",
        "models": ["gemini-2.5-flash", "gemini-pro"],
        "default_model": "gemini-2.5-flash",
    },
    {
        "id": "openai",
        "name": "OpenAI GPT",
        "kind": "openai",
        "endpoint": "https://api.openai.com/v1/chat/completions",
        "api_key_env": "OPENAI_API_KEY",
        "models": ["gpt-3.5-turbo", "gpt-3.5-turbo-16k"],
        "default_model": "gpt-3.5-turbo",
    },
    {
        "id": "claude",
        "name": "Anthropic Claude",
        "kind": "claude",
        "endpoint": "https://api.anthropic.com/v1/messages",
        "api_key_env": "CLAUDE_API_KEY",
        "models": [
            "claude-3-opus-20240229",
            "claude-3-sonnet-20240229",
            "claude-3-haiku-20240307",
        ],
        "default_model": "claude-3-sonnet-20240229",
    },
    {
        "id": "perplexity",
        "name": "Perplexity AI",
        "kind": "perplexity",
        "endpoint": "https://api.perplexity.ai/chat/completions",
        "api_key_env": "PERPLEXITY_API_KEY",
        "models": [
            "llama-3.1-sonar-large-128k-online",
            "llama-3.1-sonar-small-128k-online",
        ],
        "default_model": "llama-3.1-sonar-large-128k-online",
    },
]


def is_placeholder(value: str) -> bool:
    stripped = value.strip()
    return not stripped or stripped.lower() in PLACEHOLDER_KEYS or stripped.lower().startswith("your-")


def provider_from_dict(config_dict: Mapping[str, Any]) -> ProviderConfig:
    """Build a descriptor from a table entry.

    Raises ``ValueError`` when the entry has no endpoint or names a wire
    protocol no adapter speaks.
    """
    provider_id = config_dict["id"]
    kind = config_dict.get("kind") or provider_id
    if kind not in ADAPTERS:
        raise ValueError(
            f"provider '{provider_id}' has kind '{kind}'; expected one of {sorted(ADAPTERS)}"
        )
    if not config_dict.get("endpoint"):
        raise ValueError(f"provider '{provider_id}' has no endpoint")
    models = tuple(config_dict.get("models") or ())
    return ProviderConfig(
        id=provider_id,
        name=config_dict.get("name") or provider_id,
        kind=kind,
        endpoint_template=config_dict["endpoint"],
        api_key_env=config_dict.get("api_key_env") or f"{provider_id.upper()}_API_KEY",
        models=models,
        default_model=config_dict.get("default_model") or (models[0] if models else ""),
    )


class ProviderRegistry:
    """Read-only table of provider descriptors and their credentials.

    Credentials are captured once at construction; later changes to the
    process environment are not observed.
    """

    def __init__(
        self, providers: Iterable[ProviderConfig], credentials: Mapping[str, str]
    ) -> None:
        ordered: Dict[str, ProviderConfig] = {}
        for provider in providers:
            ordered[provider.id] = provider
        self._providers = MappingProxyType(ordered)
        self._credentials = MappingProxyType(
            {pid: credentials.get(pid, "") or "" for pid in ordered}
        )

    @classmethod
    def from_environ(
        cls, providers: Iterable[ProviderConfig], environ: Optional[Mapping[str, str]] = None
    ) -> "ProviderRegistry":
        env = os.environ if environ is None else environ
        providers = list(providers)
        credentials = {p.id: env.get(p.api_key_env, "") for p in providers}
        return cls(providers, credentials)

    def provider_ids(self) -> List[str]:
        return list(self._providers)

    def describe(self, provider_id: str) -> ProviderConfig:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id) from None

    def validate_config(self, provider_id: str) -> bool:
        """True iff a non-placeholder credential is present for ``provider_id``."""
        if provider_id not in self._providers:
            return False
        return not is_placeholder(self._credentials[provider_id])

    def available_providers(self) -> set[str]:
        return {pid for pid in self._providers if self.validate_config(pid)}

    def api_key(self, provider_id: str) -> str:
        self.describe(provider_id)
        return self._credentials[provider_id]

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def _default_config_path() -> Path:
    project_root = Path(__file__).parent.parent.parent
    return project_root / "config" / "providers.yaml"


def load_provider_configs(config_path: Optional[Path] = None) -> List[ProviderConfig]:
    """Merge the built-in provider table with ``config/providers.yaml`` when present.

    Entries in the file override built-ins field by field (matched on ``id``);
    unknown ids are appended in file order.
    """
    path = config_path or _default_config_path()
    merged: Dict[str, dict[str, Any]] = {p["id"]: dict(p) for p in DEFAULT_PROVIDERS}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            file_config = yaml.safe_load(handle) or {}
        for entry in file_config.get("providers", []) or []:
            if not isinstance(entry, dict) or not entry.get("id"):
                logger.warning("Ignoring provider entry without an id in %s", path)
                continue
            base = merged.get(entry["id"], {})
            base.update({k: v for k, v in entry.items() if v is not None})
            merged[entry["id"]] = base
        enabled = file_config.get("enabled")
        if isinstance(enabled, list):
            merged = {pid: merged[pid] for pid in enabled if pid in merged}
    configs: List[ProviderConfig] = []
    for entry in merged.values():
        try:
            configs.append(provider_from_dict(entry))
        except ValueError as e:
            logger.warning("Ignoring provider entry in %s: %s", path, e)
    return configs


def load_registry(
    config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> ProviderRegistry:
    registry = ProviderRegistry.from_environ(load_provider_configs(config_path), environ)
    logger.debug(
        "Loaded %d providers (%d configured)", len(registry), len(registry.available_providers())
    )
    return registry
