from __future__ import annotations

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping, Union

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..adapters.catalog import get_adapter
from . import normalizer
from .errors import NoProvidersAvailableError
from .provider_config import ProviderRegistry
from .types import (
    ErrorKind,
    GenerationFailure,
    GenerationRequest,
    GenerationResult,
    GenerationSettings,
)

logger = logging.getLogger(__name__)

SettingsLike = Union[GenerationSettings, Mapping[str, Any], None]

TRANSIENT_STATUSES = frozenset({502, 503, 504})


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUSES
    return isinstance(exc, httpx.ConnectError)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def build_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    proxy = os.environ.get("HTTPS_PROXY") or os.environ.get("HTTP_PROXY")
    if transport is not None:
        return httpx.AsyncClient(transport=transport)
    if proxy:
        return httpx.AsyncClient(proxy=proxy)
    return httpx.AsyncClient()


class Dispatcher:
    """Issues generation calls against the providers in a registry.

    ``generate`` and ``generate_many`` never raise for backend faults: every
    outcome is a ``GenerationSuccess`` or ``GenerationFailure``. The only
    exception that escapes is ``NoProvidersAvailableError`` from
    ``generate_many`` when nothing requested is configured.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        client: httpx.AsyncClient | None = None,
        defaults: GenerationSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.registry = registry
        self.client = client
        self.defaults = defaults or GenerationSettings()
        self.transport = transport

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with build_client(self.transport) as client:
            yield client

    async def generate(
        self, provider_id: str, prompt: str, settings: SettingsLike = None
    ) -> GenerationResult:
        request = GenerationRequest(provider_id, prompt, self.defaults.merged(settings))
        async with self._session() as client:
            return await self._isolated(client, request)

    async def generate_many(
        self, provider_ids: Iterable[str], prompt: str, settings: SettingsLike = None
    ) -> list[GenerationResult]:
        requested = list(provider_ids)
        available = self.registry.available_providers()
        selected = list(dict.fromkeys(pid for pid in requested if pid in available))
        if not selected:
            raise NoProvidersAvailableError(requested)

        merged = self.defaults.merged(settings)
        logger.info("Dispatching to %d provider(s): %s", len(selected), ", ".join(selected))
        async with self._session() as client:
            tasks = [
                self._isolated(client, GenerationRequest(pid, prompt, merged)) for pid in selected
            ]
            # gather returns results positionally, so order follows ``selected``
            results = await asyncio.gather(*tasks)
        return list(results)

    async def _isolated(
        self, client: httpx.AsyncClient, request: GenerationRequest
    ) -> GenerationResult:
        start = time.perf_counter()
        try:
            return await self._generate(client, request)
        except Exception as e:
            logger.exception("Unexpected fault while dispatching to %s", request.provider_id)
            return GenerationFailure(
                provider_id=request.provider_id,
                error_kind=ErrorKind.API_ERROR,
                message=str(e),
                processing_time_ms=_elapsed_ms(start),
            )

    async def _generate(
        self, client: httpx.AsyncClient, request: GenerationRequest
    ) -> GenerationResult:
        start = time.perf_counter()
        provider_id, settings = request.provider_id, request.settings
        if provider_id not in self.registry:
            return normalizer.failure(
                provider_id,
                ErrorKind.UNKNOWN_PROVIDER,
                f"Unsupported provider: {provider_id}",
                _elapsed_ms(start),
            )
        config = self.registry.describe(provider_id)
        if not self.registry.validate_config(provider_id):
            return normalizer.failure(
                provider_id,
                ErrorKind.AUTH_ERROR,
                f"{config.name} API key not configured",
                _elapsed_ms(start),
            )

        model = settings.model or config.default_model
        try:
            adapter = get_adapter(config.kind)
            wire_request = adapter.build_request(
                request.prompt, settings, config, self.registry.api_key(provider_id)
            )
            data = await asyncio.wait_for(
                self._post(client, wire_request, settings), timeout=settings.timeout_s
            )
            reply = adapter.parse_response(data)
            content = normalizer.ensure_content(reply.content, config.name)
        except Exception as e:
            result = normalizer.failure_from_exception(
                provider_id, e, config.name, _elapsed_ms(start)
            )
            logger.warning(
                "%s failed (%s): %s", provider_id, result.error_kind.value, result.message
            )
            return result

        elapsed = _elapsed_ms(start)
        logger.info("%s answered in %d ms", provider_id, elapsed)
        return normalizer.success(provider_id, content, model, reply.tokens, elapsed)

    async def _post(
        self, client: httpx.AsyncClient, request, settings: GenerationSettings
    ) -> dict[str, Any]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, settings.retries + 1)),
            wait=wait_exponential(min=1, max=4),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                resp = await client.post(
                    request.url,
                    json=request.json,
                    headers=request.headers,
                    params=request.params or None,
                    timeout=settings.timeout_s,
                )
                resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"unexpected response body of type {type(data).__name__}")
        return data
