"""
Abstract interface for text-intelligence providers.

All providers must implement this interface to ensure consistent
behavior and easy hot-swapping between on-device, direct API and managed
cloud backends.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

from ..config import settings
from ..exceptions import NotInitializedError
from ..models import (
    CompletionResult,
    EmbeddingResult,
    ProviderConfig,
    ProviderInfo,
    RelevanceScore,
    UsageStats,
)
from ..relevance import semantic_relevance_score
from ..utils import retry_async

T = TypeVar("T")

SUMMARY_PROMPT = (
    "Summarize the following text in approximately {target_tokens} tokens, "
    "preserving key information:\n\n{text}"
)


class TextIntelligenceProvider(ABC):
    """
    Abstract interface for text-intelligence providers.

    All implementations must provide:
    - initialize() reporting readiness as a boolean (never raising)
    - Embedding generation
    - Text completion
    - Provider metadata

    Relevance scoring, usage tracking and retry handling are supplied here.
    """

    #: Label reported by score_relevance() when embeddings succeed
    relevance_method = "semantic"

    def __init__(self, config: ProviderConfig) -> None:
        # Own copy: model switching must never touch the caller's object
        self._config = config.model_copy(deep=True)
        self._initialized = False
        self._usage = UsageStats()

    @property
    def config(self) -> ProviderConfig:
        """This provider's configuration."""
        return self._config

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Prepare the backend (credential check, model load, connectivity).

        Returns:
            True once ready. False on any failure, with the cause logged.
        """
        pass

    @abstractmethod
    async def generate_embeddings(self, text: str) -> EmbeddingResult:
        """
        Generate an embedding vector for text.

        Raises:
            NotInitializedError: Before a successful initialize()
        """
        pass

    @abstractmethod
    async def generate_completion(
        self,
        prompt: str,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """
        Generate a completion for prompt.

        Args:
            prompt: Input prompt
            max_tokens: Upper bound on generated length; backends may clamp lower

        Raises:
            NotInitializedError: Before a successful initialize()
        """
        pass

    @abstractmethod
    def get_provider_info(self) -> ProviderInfo:
        """Get static metadata about this provider."""
        pass

    async def score_relevance(self, context: str, query: str) -> RelevanceScore:
        """Score how relevant context is to query. Never raises."""
        return await semantic_relevance_score(self, context, query, self.relevance_method)

    async def summarize_text(self, text: str, target_tokens: int) -> CompletionResult:
        """Summarize text to roughly target_tokens tokens."""
        prompt = SUMMARY_PROMPT.format(target_tokens=target_tokens, text=text)
        return await self.generate_completion(prompt, target_tokens)

    def is_configured(self) -> bool:
        """True after a successful initialize()."""
        return self._initialized

    def get_usage_stats(self) -> UsageStats:
        """Snapshot of this instance's cumulative usage."""
        return self._usage.model_copy()

    def track_usage(self, tokens: int, cost: float = 0.0) -> None:
        """Account one request against this instance."""
        self._usage.record(tokens, cost)

    async def with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation with bounded retries and exponential backoff."""
        return await retry_async(
            operation,
            max_retries=settings.MAX_RETRIES,
            base_delay=settings.RETRY_BASE_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
        )

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError(
                f"{self.get_provider_info().name} provider not initialized",
                details="Call initialize() and check that it returned True",
            )
