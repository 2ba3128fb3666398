"""
On-device provider implementation.

Runs embedding and completion models inside the host process. No network
access after the weights are cached and no per-call cost.

Model loading is injected: the provider takes an async ``loader(task,
model_id)`` returning a callable pipeline. The default loader builds
Hugging Face ``transformers`` pipelines.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

import numpy as np

from ..catalog import (
    CATALOG_VERSION,
    LOCAL_MODEL_CATALOG,
    LOCAL_SUPPORTED_MODELS,
    local_model_metadata,
)
from ..config import get_logger, settings
from ..exceptions import GenerationError, UnsupportedCapabilityError
from ..models import (
    Capability,
    CompletionResult,
    EmbeddingResult,
    FinishReason,
    ProviderConfig,
    ProviderInfo,
)
from ..utils import estimate_token_count
from .interface import TextIntelligenceProvider

logger = get_logger("providers.local")

ModelLoader = Callable[[str, str], Awaitable[Any]]

TASKS: dict[Capability, str] = {
    Capability.EMBEDDINGS: "feature-extraction",
    Capability.COMPLETION: "text-generation",
}

BENCHMARK_TEXT = "This is a benchmark test for local AI model performance."
BENCHMARK_PROMPT = "Complete this sentence: The local AI model is"


def pool_and_normalize(output: Any) -> list[float]:
    """Mean-pool token vectors and L2-normalize into one fixed-length vector."""
    arr = np.asarray(output, dtype=np.float64)
    if arr.ndim == 0 or arr.size == 0:
        raise ValueError("model returned an empty embedding")
    if arr.ndim > 1:
        arr = arr.reshape(-1, arr.shape[-1]).mean(axis=0)
    norm = np.linalg.norm(arr)
    if norm > 0:
        arr = arr / norm
    return arr.tolist()


class LocalProvider(TextIntelligenceProvider):
    """
    On-device provider backed by injected model pipelines.

    Embeddings are always available once initialized. Completion is an
    opt-in capability that only exists when a completion model loaded.
    """

    relevance_method = "local-semantic"

    def __init__(self, config: ProviderConfig, loader: ModelLoader | None = None):
        super().__init__(config)
        if loader is None:
            # transformers is heavy; only pulled in when no loader is injected
            from .loaders import load_transformers_pipeline
            loader = load_transformers_pipeline
        self._loader = loader
        self._embedding_pipeline: Any = None
        self._completion_pipeline: Any = None
        self._loading = False

        models = self._config.models
        if models.embeddings is None:
            models.embeddings = settings.LOCAL_EMBEDDING_MODEL
        if models.completion is None:
            models.completion = settings.LOCAL_COMPLETION_MODEL

    async def initialize(self) -> bool:
        """Load the embedding model, then the completion model if configured."""
        if self._initialized:
            return True
        if self._loading:
            logger.warning("Local provider initialization already in progress")
            return False

        self._loading = True
        try:
            models = self._config.models
            logger.info("Loading local embedding model %s", models.embeddings)
            self._embedding_pipeline = await self._loader(
                TASKS[Capability.EMBEDDINGS], models.embeddings
            )

            if models.completion:
                try:
                    self._completion_pipeline = await self._loader(
                        TASKS[Capability.COMPLETION], models.completion
                    )
                except Exception as e:
                    logger.warning(
                        "Could not load completion model %s, completion disabled: %s",
                        models.completion,
                        e,
                    )

            self._initialized = True
            logger.info(
                "Local models ready (embeddings=%s, completion=%s)",
                models.embeddings,
                models.completion if self._completion_pipeline is not None else "disabled",
            )
            return True

        except Exception as e:
            self._embedding_pipeline = None
            logger.error("Failed to initialize local provider: %s", e)
            return False
        finally:
            self._loading = False

    async def generate_embeddings(self, text: str) -> EmbeddingResult:
        """Embed text locally. Cost is always 0."""
        self._require_initialized()
        model = self._config.models.embeddings

        start = time.perf_counter()
        try:
            output = await asyncio.to_thread(self._embedding_pipeline, text)
            vector = pool_and_normalize(output)
        except Exception as e:
            raise GenerationError(f"Local embeddings failed: {e}") from e
        duration_ms = (time.perf_counter() - start) * 1000

        expected = LOCAL_MODEL_CATALOG.get(model, {}).get("dimensions")
        if expected is not None and len(vector) != expected:
            raise GenerationError(
                f"Local embeddings failed: {model} produced {len(vector)} dimensions",
                details=f"Catalog declares {expected}",
            )

        token_count = estimate_token_count(text)
        self.track_usage(token_count, 0.0)
        logger.debug("Generated %dD embedding locally in %.1fms", len(vector), duration_ms)

        return EmbeddingResult(
            embeddings=vector,
            token_count=token_count,
            cost=0.0,
            model=model,
            duration_ms=duration_ms,
        )

    async def generate_completion(
        self,
        prompt: str,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """Generate text locally, clamped to LOCAL_MAX_NEW_TOKENS."""
        self._require_initialized()
        if self._completion_pipeline is None:
            raise UnsupportedCapabilityError(
                "Local completion model not available",
                details="Only embeddings are supported in this configuration",
            )

        ceiling = settings.LOCAL_MAX_NEW_TOKENS
        max_new_tokens = min(max_tokens or ceiling, ceiling)
        temperature = (
            self._config.temperature
            if self._config.temperature is not None
            else settings.LOCAL_TEMPERATURE
        )
        generation_kwargs: dict[str, Any] = {"max_new_tokens": max_new_tokens}
        if temperature > 0:
            generation_kwargs.update(do_sample=True, temperature=temperature)

        start = time.perf_counter()
        try:
            output = await asyncio.to_thread(
                self._completion_pipeline, prompt, **generation_kwargs
            )
            generated = output[0]["generated_text"]
        except Exception as e:
            raise GenerationError(f"Local completion failed: {e}") from e

        if generated.startswith(prompt):
            generated = generated[len(prompt):]
        text = generated.strip()
        token_count = estimate_token_count(text)
        self.track_usage(token_count, 0.0)
        logger.debug(
            "Generated %d tokens locally in %.1fms",
            token_count,
            (time.perf_counter() - start) * 1000,
        )

        return CompletionResult(
            text=text,
            token_count=token_count,
            cost=0.0,
            model=self._config.models.completion,
            finish_reason=FinishReason.LENGTH if token_count >= max_new_tokens else FinishReason.STOP,
        )

    def get_provider_info(self) -> ProviderInfo:
        capabilities = [Capability.EMBEDDINGS.value, Capability.RELEVANCE.value]
        if self._completion_pipeline is not None:
            capabilities.insert(1, Capability.COMPLETION.value)
        return ProviderInfo(
            name="Local AI (transformers)",
            type="local",
            capabilities=capabilities,
            requires_api_key=False,
            cost_estimate="free",
            privacy="local",
        )

    async def switch_model(self, capability: Capability | str, model_id: str) -> bool:
        """
        Swap the active model for a capability.

        Args:
            capability: "embeddings" or "completion"
            model_id: Whitelisted model identifier

        Returns:
            True on success. False if loading failed (previous model stays active).

        Raises:
            UnsupportedCapabilityError: Unknown capability or non-whitelisted model
        """
        try:
            capability = Capability(capability)
        except ValueError:
            raise UnsupportedCapabilityError(f"Unknown capability: {capability}") from None

        whitelist = LOCAL_SUPPORTED_MODELS.get(capability)
        if whitelist is None:
            raise UnsupportedCapabilityError(
                f"Model switching is not supported for {capability.value}"
            )
        if model_id not in whitelist:
            raise UnsupportedCapabilityError(
                f"Unsupported {capability.value} model: {model_id}",
                details=f"Supported: {', '.join(whitelist)}",
            )

        logger.info("Switching %s model to %s", capability.value, model_id)
        try:
            pipeline = await self._loader(TASKS[capability], model_id)
        except Exception as e:
            logger.error("Failed to switch to model %s: %s", model_id, e)
            return False

        if capability is Capability.EMBEDDINGS:
            self._embedding_pipeline = pipeline
            self._config.models.embeddings = model_id
        else:
            self._completion_pipeline = pipeline
            self._config.models.completion = model_id
        return True

    async def benchmark_performance(self) -> dict[str, Any]:
        """Time one embedding and, when available, one completion."""
        results: dict[str, Any] = {}

        if self._embedding_pipeline is not None:
            start = time.perf_counter()
            try:
                embedding = await self.generate_embeddings(BENCHMARK_TEXT)
                results["embeddings"] = {
                    "success": True,
                    "duration_ms": (time.perf_counter() - start) * 1000,
                    "dimensions": len(embedding.embeddings),
                    "model": embedding.model,
                }
            except Exception as e:
                results["embeddings"] = {"success": False, "error": str(e)}

        if self._completion_pipeline is not None:
            start = time.perf_counter()
            try:
                completion = await self.generate_completion(BENCHMARK_PROMPT, 20)
                elapsed = time.perf_counter() - start
                results["completion"] = {
                    "success": True,
                    "duration_ms": elapsed * 1000,
                    "tokens_per_second": completion.token_count / elapsed if elapsed > 0 else 0.0,
                    "model": completion.model,
                }
            except Exception as e:
                results["completion"] = {"success": False, "error": str(e)}

        return results

    def get_model_metadata(self, model_id: str) -> dict[str, Any]:
        """Catalog entry for model_id (placeholder values for unknown models)."""
        return local_model_metadata(model_id)

    def get_available_models(self) -> dict[str, Any]:
        """Whitelisted models per capability with catalog metadata."""
        embeddings = []
        for model_id in LOCAL_SUPPORTED_MODELS[Capability.EMBEDDINGS]:
            meta = local_model_metadata(model_id)
            embeddings.append({
                "name": model_id,
                "dimensions": meta["dimensions"],
                "size": meta["size"],
                "speed": meta["speed"],
                "recommended": meta["recommended"],
            })

        completion = []
        for model_id in LOCAL_SUPPORTED_MODELS[Capability.COMPLETION]:
            meta = local_model_metadata(model_id)
            completion.append({
                "name": model_id,
                "size": meta["size"],
                "quality": meta["quality"],
                "experimental": True,
            })

        return {
            "embeddings": embeddings,
            "completion": completion,
            "catalog_version": CATALOG_VERSION,
        }

    def get_system_requirements(self) -> dict[str, Any]:
        """Host requirements for running the local models."""
        return {
            "minimum": {"ram": "4GB", "storage": "2GB for models", "cpu": "Any modern CPU"},
            "recommended": {
                "ram": "8GB+",
                "storage": "5GB for multiple models",
                "cpu": "Multi-core CPU for faster processing",
            },
            "gpu": {
                "supported": True,
                "note": "Used automatically by transformers when torch sees a CUDA device",
            },
        }
