"""
Provider registry.

Holds several providers at once and routes a request to the best
initialized provider for a capability, falling through to the others (and
finally an optional fallback operation) when one fails.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from .config import get_logger
from .exceptions import RemoteFailureError, UnsupportedCapabilityError
from .models import Capability
from .providers.interface import TextIntelligenceProvider

logger = get_logger("registry")

T = TypeVar("T")

BENCHMARK_TEXT = "This is a test for benchmarking AI provider performance."
BENCHMARK_PROMPT = "Complete this sentence: AI providers are"


@dataclass
class ProviderRegistration:
    """A provider plus its routing attributes."""
    name: str
    provider: TextIntelligenceProvider
    priority: int = 10
    enabled: bool = True
    fallback: bool = False

    def supports(self, capability: str) -> bool:
        return capability in self.provider.get_provider_info().capabilities


def _capability_name(capability: Capability | str) -> str:
    return capability.value if isinstance(capability, Capability) else capability


class ProviderRegistry:
    """Registry of named providers with priority routing."""

    def __init__(self) -> None:
        self._providers: dict[str, ProviderRegistration] = {}
        self._default: str | None = None
        self._init_task: asyncio.Task[None] | None = None

    def register_provider(
        self,
        name: str,
        provider: TextIntelligenceProvider,
        priority: int = 10,
        enabled: bool = True,
        fallback: bool = False,
        set_as_default: bool = False,
    ) -> None:
        """Add a provider. The first one registered becomes the default."""
        self._providers[name] = ProviderRegistration(
            name=name,
            provider=provider,
            priority=priority,
            enabled=enabled,
            fallback=fallback,
        )
        if set_as_default or self._default is None:
            self._default = name
        logger.info("Registered provider %s (priority: %d)", name, priority)

    def unregister_provider(self, name: str) -> bool:
        if self._providers.pop(name, None) is None:
            return False
        if self._default == name:
            self._default = next(iter(self._providers), None)
        logger.info("Unregistered provider %s", name)
        return True

    def get_provider(self, name: str | None = None) -> TextIntelligenceProvider | None:
        """Provider by name (default provider when name is None), if enabled."""
        key = name or self._default
        registration = self._providers.get(key) if key else None
        if registration is None or not registration.enabled:
            return None
        return registration.provider

    def get_available_providers(self) -> list[ProviderRegistration]:
        """Enabled, initialized providers, highest priority first."""
        available = [
            reg for reg in self._providers.values()
            if reg.enabled and reg.provider.is_configured()
        ]
        return sorted(available, key=lambda reg: reg.priority, reverse=True)

    def get_best_provider(self, capability: Capability | str) -> TextIntelligenceProvider | None:
        name = _capability_name(capability)
        for registration in self.get_available_providers():
            if registration.supports(name):
                return registration.provider
        logger.warning("No providers found for capability: %s", name)
        return None

    def get_provider_with_fallback(
        self,
        capability: Capability | str,
    ) -> TextIntelligenceProvider | None:
        """Best provider for capability, else the first usable fallback provider."""
        provider = self.get_best_provider(capability)
        if provider is not None:
            return provider

        for registration in self._providers.values():
            if registration.fallback and registration.enabled and registration.provider.is_configured():
                logger.info("Using fallback provider %s for %s", registration.name,
                            _capability_name(capability))
                return registration.provider
        return None

    async def initialize_all(self) -> None:
        """Initialize every registered provider once; failures disable the provider."""
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize_providers())
        await self._init_task

    async def _initialize_providers(self) -> None:
        registrations = list(self._providers.values())

        async def init_one(registration: ProviderRegistration) -> bool:
            try:
                ok = await registration.provider.initialize()
            except Exception as e:
                logger.error("Error initializing provider %s: %s", registration.name, e)
                ok = False
            if not ok:
                logger.warning("Failed to initialize provider %s", registration.name)
                registration.enabled = False
            return ok

        results = await asyncio.gather(*(init_one(reg) for reg in registrations))
        logger.info("Initialized %d/%d providers", sum(results), len(results))
        if registrations and not any(results):
            logger.warning("No providers successfully initialized")

    async def route_request(
        self,
        capability: Capability | str,
        operation: Callable[[TextIntelligenceProvider], Awaitable[T]],
        fallback_operation: Callable[[], Awaitable[T]] | None = None,
    ) -> T:
        """
        Run operation on the best provider, then on every other capable one.

        Raises:
            UnsupportedCapabilityError: No provider offers the capability
                and there is no fallback operation
            RemoteFailureError: Every provider failed and there is no
                fallback operation
        """
        name = _capability_name(capability)
        provider = self.get_provider_with_fallback(name)

        if provider is None:
            if fallback_operation is not None:
                logger.info("No providers available for %s, using fallback", name)
                return await fallback_operation()
            raise UnsupportedCapabilityError(f"No providers available for capability: {name}")

        try:
            return await operation(provider)
        except Exception as first_error:
            logger.warning("Provider %s failed for %s: %s",
                           provider.get_provider_info().name, name, first_error)
            last_error: Exception = first_error

        for registration in self.get_available_providers():
            if registration.provider is provider or not registration.supports(name):
                continue
            try:
                logger.info("Retrying %s with provider %s", name, registration.name)
                return await operation(registration.provider)
            except Exception as e:
                logger.warning("Provider %s also failed: %s", registration.name, e)
                last_error = e

        if fallback_operation is not None:
            logger.info("All providers failed for %s, using fallback", name)
            return await fallback_operation()

        raise RemoteFailureError(
            f"All providers failed for capability: {name}. Last error: {last_error}"
        ) from last_error

    def set_provider_enabled(self, name: str, enabled: bool) -> bool:
        registration = self._providers.get(name)
        if registration is None:
            logger.warning("Provider not found: %s", name)
            return False
        registration.enabled = enabled
        return True

    def set_provider_priority(self, name: str, priority: int) -> bool:
        registration = self._providers.get(name)
        if registration is None:
            logger.warning("Provider not found: %s", name)
            return False
        registration.priority = priority
        return True

    def set_default_provider(self, name: str) -> bool:
        if name not in self._providers:
            logger.warning("Cannot set default: provider not found: %s", name)
            return False
        self._default = name
        return True

    def get_registry_info(self) -> dict[str, Any]:
        registrations = list(self._providers.values())
        enabled = [reg for reg in registrations if reg.enabled]
        return {
            "total": len(registrations),
            "enabled": len(enabled),
            "initialized": sum(1 for reg in enabled if reg.provider.is_configured()),
            "default_provider": self._default,
            "providers": [
                {
                    "name": reg.name,
                    "enabled": reg.enabled,
                    "initialized": reg.provider.is_configured(),
                    "priority": reg.priority,
                    "info": reg.provider.get_provider_info().model_dump(),
                    "usage": reg.provider.get_usage_stats().model_dump(),
                }
                for reg in registrations
            ],
        }

    async def benchmark_providers(self) -> dict[str, Any]:
        """One embedding and one completion per usable provider."""
        results: dict[str, Any] = {}

        for name, registration in self._providers.items():
            provider = registration.provider
            if not registration.enabled or not provider.is_configured():
                results[name] = {"skipped": "Provider not enabled or initialized"}
                continue

            info = provider.get_provider_info()
            benchmarks: dict[str, Any] = {}

            if Capability.EMBEDDINGS.value in info.capabilities:
                start = time.perf_counter()
                try:
                    embedding = await provider.generate_embeddings(BENCHMARK_TEXT)
                    benchmarks["embeddings"] = {
                        "success": True,
                        "duration_ms": (time.perf_counter() - start) * 1000,
                        "dimensions": len(embedding.embeddings),
                        "cost": embedding.cost,
                    }
                except Exception as e:
                    benchmarks["embeddings"] = {"success": False, "error": str(e)}

            if Capability.COMPLETION.value in info.capabilities:
                start = time.perf_counter()
                try:
                    completion = await provider.generate_completion(BENCHMARK_PROMPT, 50)
                    benchmarks["completion"] = {
                        "success": True,
                        "duration_ms": (time.perf_counter() - start) * 1000,
                        "token_count": completion.token_count,
                        "cost": completion.cost,
                    }
                except Exception as e:
                    benchmarks["completion"] = {"success": False, "error": str(e)}

            results[name] = {"info": info.model_dump(), "benchmarks": benchmarks}

        return results
