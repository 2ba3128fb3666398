"""
Direct API provider implementation.

Calls the OpenAI API (or any OpenAI-compatible endpoint via base_url) with
the caller's own key. Every call is priced from a static per-token table
and retried on transient failures.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator, Literal, Mapping

from openai import AsyncOpenAI

from ..catalog import (
    CATALOG_VERSION,
    DEFAULT_PRICE_PER_TOKEN,
    OPENAI_BENCHMARK_MODELS,
    OPENAI_MODEL_CATALOG,
    OPENAI_UPGRADE_ADVICE,
    PRICE_PER_TOKEN,
    PRICING_VERSION,
)
from ..config import get_logger, settings
from ..exceptions import RemoteFailureError
from ..models import (
    Capability,
    CompletionResult,
    EmbeddingResult,
    FinishReason,
    ProviderConfig,
    ProviderInfo,
)
from .interface import TextIntelligenceProvider

logger = get_logger("providers.openai")

BENCHMARK_TEXT = "This is a test for benchmarking AI models"


class OpenAIProvider(TextIntelligenceProvider):
    """
    Direct API provider with per-token cost accounting.

    The SDK client may be injected (tests, custom transports); otherwise it
    is built during initialize() from the configured key and endpoint.
    """

    def __init__(
        self,
        config: ProviderConfig,
        client: Any = None,
        pricing: Mapping[str, float] | None = None,
    ):
        super().__init__(config)
        self._client = client
        self._pricing = pricing if pricing is not None else PRICE_PER_TOKEN

        models = self._config.models
        if models.embeddings is None:
            models.embeddings = settings.OPENAI_EMBEDDING_MODEL
        if models.completion is None:
            models.completion = settings.OPENAI_COMPLETION_MODEL
        if models.chat is None:
            models.chat = models.completion

    async def initialize(self) -> bool:
        """Build the client and confirm the key with a minimal embedding call."""
        if self._initialized:
            return True

        try:
            if self._client is None:
                api_key = self._config.get_api_key()
                if not api_key:
                    logger.error("OpenAI provider requires an API key")
                    return False
                self._client = AsyncOpenAI(
                    api_key=api_key,
                    organization=self._config.organization,
                    base_url=self._config.base_url or settings.OPENAI_BASE_URL,
                    timeout=settings.REQUEST_TIMEOUT_SECONDS,
                    max_retries=0,  # retries are owned by with_retry()
                )

            await self._client.embeddings.create(
                model=self._config.models.embeddings,
                input="test",
                encoding_format="float",
            )
        except Exception as e:
            logger.error("Failed to initialize OpenAI provider: %s", e)
            return False

        self._initialized = True
        logger.info("OpenAI provider ready (embeddings=%s, completion=%s)",
                    self._config.models.embeddings, self._config.models.completion)
        return True

    async def generate_embeddings(self, text: str) -> EmbeddingResult:
        """Embed text via the API; cost from the price table."""
        self._require_initialized()
        model = self._config.models.embeddings

        start = time.perf_counter()
        try:
            response = await self.with_retry(
                lambda: self._client.embeddings.create(
                    model=model,
                    input=text,
                    encoding_format="float",
                )
            )
        except Exception as e:
            raise RemoteFailureError(f"OpenAI embeddings failed: {e}") from e

        vector = list(response.data[0].embedding)
        expected = OPENAI_MODEL_CATALOG["embeddings"].get(model, {}).get("dimensions")
        if expected is not None and len(vector) != expected:
            raise RemoteFailureError(
                f"OpenAI embeddings failed: {model} returned {len(vector)} dimensions",
                details=f"Catalog declares {expected}",
            )

        token_count = response.usage.total_tokens
        cost = self.calculate_cost(model, token_count)
        self.track_usage(token_count, cost)

        return EmbeddingResult(
            embeddings=vector,
            token_count=token_count,
            cost=cost,
            model=model,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

    async def generate_completion(
        self,
        prompt: str,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """Chat completion with the fixed system instruction."""
        self._require_initialized()
        model = self._config.models.completion
        temperature = (
            self._config.temperature
            if self._config.temperature is not None
            else settings.OPENAI_TEMPERATURE
        )

        # options carry extra API parameters; the fixed fields below win
        request: dict[str, Any] = dict(self._config.options)
        request.update(
            model=model,
            messages=[
                {"role": "system", "content": settings.SYSTEM_INSTRUCTION},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens or self._config.max_tokens or settings.OPENAI_MAX_TOKENS,
            temperature=temperature,
        )

        try:
            response = await self.with_retry(
                lambda: self._client.chat.completions.create(**request)
            )
        except Exception as e:
            raise RemoteFailureError(f"OpenAI completion failed: {e}") from e

        choice = response.choices[0]
        token_count = response.usage.total_tokens
        cost = self.calculate_cost(model, token_count)
        self.track_usage(token_count, cost)

        return CompletionResult(
            text=choice.message.content or "",
            token_count=token_count,
            cost=cost,
            model=model,
            finish_reason=FinishReason.from_raw(choice.finish_reason),
        )

    def get_provider_info(self) -> ProviderInfo:
        return ProviderInfo(
            name="OpenAI",
            type="api",
            capabilities=[
                Capability.EMBEDDINGS.value,
                Capability.COMPLETION.value,
                Capability.CHAT.value,
                Capability.SUMMARIZATION.value,
                Capability.RELEVANCE.value,
            ],
            requires_api_key=True,
            cost_estimate="low",
            privacy="api",
        )

    # =========================================================================
    # Pricing
    # =========================================================================

    def price_per_token(self, model: str) -> float:
        """Price per token for model; unlisted models use a conservative default."""
        return self._pricing.get(model, DEFAULT_PRICE_PER_TOKEN)

    def calculate_cost(self, model: str, token_count: int) -> float:
        return token_count * self.price_per_token(model)

    def estimate_cost(
        self,
        operation: Literal["embeddings", "completion"],
        token_count: int,
    ) -> float:
        """Projected cost of token_count tokens with the configured model."""
        models = self._config.models
        model = models.embeddings if operation == "embeddings" else models.completion
        return self.calculate_cost(model, token_count)

    def get_model_info(self) -> dict[str, Any]:
        """Static catalog: dimensions/context window, price, performance, recommended."""
        info: dict[str, Any] = {
            kind: {name: dict(entry) for name, entry in entries.items()}
            for kind, entries in OPENAI_MODEL_CATALOG.items()
        }
        info["catalog_version"] = CATALOG_VERSION
        info["pricing_version"] = PRICING_VERSION
        return info

    def get_usage_recommendations(self) -> list[str]:
        """Advisory strings derived from configuration and cumulative usage."""
        recommendations: list[str] = []
        models = self._config.models

        for model in (models.embeddings, models.completion):
            advice = OPENAI_UPGRADE_ADVICE.get(model)
            if advice:
                recommendations.append(advice)

        stats = self.get_usage_stats()
        if stats.estimated_cost > settings.COST_ADVISORY_THRESHOLD_USD:
            recommendations.append(
                f"Your costs are above ${settings.COST_ADVISORY_THRESHOLD_USD:.2f}. "
                "Consider using local models for basic tasks"
            )
        if stats.tokens_used > settings.TOKEN_ADVISORY_THRESHOLD:
            recommendations.append(
                "High usage detected. Consider the managed cloud for better rate limits "
                "and cost optimization"
            )

        return recommendations

    # =========================================================================
    # Benchmarking
    # =========================================================================

    @contextmanager
    def _embedding_model(self, model: str) -> Iterator[None]:
        """Temporarily use another embedding model; always restores the original."""
        original = self._config.models.embeddings
        self._config.models.embeddings = model
        try:
            yield
        finally:
            self._config.models.embeddings = original

    async def benchmark_models(
        self,
        test_text: str = BENCHMARK_TEXT,
        models: tuple[str, ...] | list[str] | None = None,
    ) -> dict[str, dict[str, Any]]:
        """Time one embedding request per candidate model."""
        results: dict[str, dict[str, Any]] = {}

        for model in models or OPENAI_BENCHMARK_MODELS:
            start = time.perf_counter()
            with self._embedding_model(model):
                try:
                    result = await self.generate_embeddings(test_text)
                except Exception as e:
                    results[model] = {"success": False, "error": str(e)}
                    continue
            results[model] = {
                "success": True,
                "duration_ms": (time.perf_counter() - start) * 1000,
                "token_count": result.token_count,
                "cost": result.cost,
                "dimensions": len(result.embeddings),
            }

        return results
