"""Adapter registry — ranked providers with fast failover.

The registry exposes the same ``complete`` contract as a single adapter and
tries its adapters in priority order. A retryable failure (timeout, transport,
empty reply) moves straight on to the next adapter; each adapter has already
spent its own retry budget. A structural failure (rejected request) is
propagated at once, since another provider would reject it too.

Provider selection is configuration: build_registry() turns the
``llm_connections`` list from settings into adapters, so swapping providers
never touches the engine.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from cardplay.errors import AllProvidersExhausted, NoProvidersConfigured, ProviderError
from cardplay.llm import EchoAdapter, HttpAdapter, ProviderAdapter
from cardplay.models import AdapterResult, Message
from cardplay.policy import Disposition, ErrorPolicy, RetryConfig

logger = logging.getLogger(__name__)


class AdapterRegistry:
    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        policy: ErrorPolicy | None = None,
    ) -> None:
        if not adapters:
            raise NoProvidersConfigured()
        self._adapters = tuple(adapters)
        self._policy = policy or ErrorPolicy()

    @property
    def provider_ids(self) -> list[str]:
        return [a.provider_id for a in self._adapters]

    def budget(self, timeout: float) -> float:
        """Worst-case seconds one complete() call may take with ``timeout`` per adapter."""
        return timeout * len(self._adapters)

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[Message],
        user_message: str,
        timeout: float,
    ) -> AdapterResult:
        failures: list[ProviderError] = []
        for adapter in self._adapters:
            try:
                return await adapter.complete(system_prompt, history, user_message, timeout)
            except ProviderError as e:
                if not e.provider_id:
                    e.provider_id = adapter.provider_id
                if self._policy.across_adapters(e) is not Disposition.FAILOVER:
                    logger.warning(
                        "provider %s rejected the request, not failing over: %s",
                        adapter.provider_id, e,
                    )
                    raise
                logger.warning("provider %s failed, trying next: %s", adapter.provider_id, e)
                failures.append(e)
        raise AllProvidersExhausted(failures)


def build_adapter(
    conn: dict[str, Any],
    retry: RetryConfig | None = None,
    policy: ErrorPolicy | None = None,
) -> ProviderAdapter:
    """Build one adapter from a connection entry of the settings file."""
    name = conn.get("name") or conn.get("provider_url", "")
    provider_format = conn.get("provider_format", "openai")
    if provider_format == "echo":
        return EchoAdapter(provider_id=name or "echo")
    if provider_format not in ("openai", "anthropic", "koboldcpp"):
        raise ValueError(f"Unknown provider_format {provider_format!r} for connection {name!r}")
    if not conn.get("provider_url"):
        raise ValueError(f"Connection {name!r} has no provider_url")
    return HttpAdapter(
        provider_id=name,
        provider_url=conn["provider_url"],
        api_key=conn.get("api_key", ""),
        provider_format=provider_format,
        model=conn.get("model", ""),
        timeout=float(conn.get("timeout", 60.0)),
        max_tokens=int(conn.get("max_tokens", 512)),
        retry=retry,
        policy=policy,
    )


def build_registry(
    connections: Sequence[dict[str, Any]],
    retry: RetryConfig | None = None,
    policy: ErrorPolicy | None = None,
) -> AdapterRegistry:
    """Registry over the enabled connections, lowest ``priority`` first.

    Connections without a priority keep their list order (the sort is stable).
    """
    enabled = [c for c in connections if c.get("enabled", True)]
    ranked = sorted(enabled, key=lambda c: c.get("priority", 0))
    policy = policy or ErrorPolicy()
    return AdapterRegistry([build_adapter(c, retry, policy) for c in ranked], policy=policy)
