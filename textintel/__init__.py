"""textintel - pluggable text-intelligence provider layer.

Uniform embeddings, completions and relevance scoring over an on-device
runtime, a direct API account, or a managed cloud subscription.

Example:
    >>> from textintel import ProviderConfig, ProviderType, create_provider
    >>>
    >>> provider = create_provider(ProviderConfig(type=ProviderType.LOCAL))
    >>> if await provider.initialize():
    ...     result = await provider.generate_embeddings("Hello!")
    ...     score = await provider.score_relevance("Python packaging", "pip")
    >>> print(provider.get_usage_stats())
"""

__version__ = "0.7.0"

from .config import configure_logging, get_settings
from .exceptions import (
    ConfigurationError,
    GenerationError,
    NotInitializedError,
    ProviderError,
    RemoteFailureError,
    TierRestrictionError,
    UnsupportedCapabilityError,
)
from .models import (
    Capability,
    CompletionResult,
    EmbeddingResult,
    FinishReason,
    ModelSelection,
    ProviderConfig,
    ProviderInfo,
    ProviderType,
    RelevanceScore,
    Tier,
    UsageStats,
)
from .providers import (
    CloudProvider,
    LocalProvider,
    OpenAIProvider,
    TextIntelligenceProvider,
    create_provider,
)
from .registry import ProviderRegistry

__all__ = [
    "Capability",
    "CloudProvider",
    "CompletionResult",
    "ConfigurationError",
    "EmbeddingResult",
    "FinishReason",
    "GenerationError",
    "LocalProvider",
    "ModelSelection",
    "NotInitializedError",
    "OpenAIProvider",
    "ProviderConfig",
    "ProviderError",
    "ProviderInfo",
    "ProviderRegistry",
    "ProviderType",
    "RelevanceScore",
    "RemoteFailureError",
    "TextIntelligenceProvider",
    "Tier",
    "TierRestrictionError",
    "UnsupportedCapabilityError",
    "UsageStats",
    "configure_logging",
    "create_provider",
    "get_settings",
]
