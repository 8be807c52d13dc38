from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from .dispatcher import Dispatcher
from .provider_config import ProviderRegistry
from .types import GenerationSettings, ProbeResult, ProviderStatus

logger = logging.getLogger(__name__)

PROBE_PROMPT = "Hello, please respond with just 'OK' to test the connection."
PROBE_SETTINGS = GenerationSettings(max_tokens=10, temperature=0, timeout_ms=10000)


class ConnectionTester:
    def __init__(self, registry: ProviderRegistry, dispatcher: Dispatcher | None = None) -> None:
        self.registry = registry
        self.dispatcher = dispatcher or Dispatcher(registry)

    def status_report(self) -> dict[str, ProviderStatus]:
        """Configured/not-configured view of every provider. Makes no network calls."""
        report = {}
        for provider_id in self.registry.provider_ids():
            config = self.registry.describe(provider_id)
            report[provider_id] = ProviderStatus(
                provider_id=provider_id,
                name=config.name,
                configured=self.registry.validate_config(provider_id),
                models=config.models,
                default_model=config.default_model,
            )
        return report

    async def test_all(self) -> dict[str, ProbeResult]:
        provider_ids = self.registry.provider_ids()
        configured = [pid for pid in provider_ids if self.registry.validate_config(pid)]
        probes = await asyncio.gather(*(self._probe(pid) for pid in configured))
        probed = dict(zip(configured, probes))

        results: dict[str, ProbeResult] = {}
        for provider_id in provider_ids:
            if provider_id in probed:
                results[provider_id] = probed[provider_id]
            else:
                results[provider_id] = ProbeResult(
                    provider_id=provider_id,
                    name=self.registry.describe(provider_id).name,
                    status="not_configured",
                    available=False,
                    error="API key not configured",
                )
        return results

    async def _probe(self, provider_id: str) -> ProbeResult:
        name = self.registry.describe(provider_id).name
        result = await self.dispatcher.generate(provider_id, PROBE_PROMPT, PROBE_SETTINGS)
        # the dispatcher already turns blank content into an empty_response failure
        if result.success:
            return ProbeResult(provider_id=provider_id, name=name, status="connected", available=True)
        logger.info("Probe for %s failed: %s", provider_id, result.message)
        return ProbeResult(
            provider_id=provider_id,
            name=name,
            status="error",
            available=False,
            error=result.message,
            error_kind=result.error_kind.value,
        )


def summarize(results: Iterable[ProbeResult]) -> dict[str, int]:
    results = list(results)
    connected = sum(1 for r in results if r.status == "connected")
    return {
        "total": len(results),
        "configured": sum(1 for r in results if r.status != "not_configured"),
        "connected": connected,
        "available": connected,
    }
