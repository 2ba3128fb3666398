"""
Pydantic models shared by every provider.

This module defines:
- Provider configuration (what the caller hands to a provider)
- Result models returned by embed/complete/score calls
- Usage accounting
- The managed cloud response envelope and tier descriptors

Usage:
    from textintel.models import ProviderConfig, ProviderType

    config = ProviderConfig(type=ProviderType.LOCAL)
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
)
from pydantic.alias_generators import to_camel


T = TypeVar("T")


# =============================================================================
# Enums
# =============================================================================

class ProviderType(str, Enum):
    """Configuration discriminant used to pick a backend."""
    LOCAL = "local"
    OPENAI = "openai"
    MANAGED = "managed"


class Capability(str, Enum):
    """Capabilities a provider may advertise."""
    EMBEDDINGS = "embeddings"
    COMPLETION = "completion"
    CHAT = "chat"
    RELEVANCE = "relevance"
    SUMMARIZATION = "summarization"
    OPTIMIZATION = "optimization"
    ANALYTICS = "analytics"
    TEAM_SHARING = "team-sharing"
    COLLABORATION = "collaboration"


class FinishReason(str, Enum):
    """Why a completion stopped."""
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    OTHER = "other"

    @classmethod
    def from_raw(cls, value: str | None) -> "FinishReason":
        """Map a backend-specific finish reason onto the closed set."""
        if value is None:
            return cls.OTHER
        normalized = str(value).lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


class Tier(str, Enum):
    """Managed cloud subscription tiers, lowest first."""
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


# =============================================================================
# Configuration
# =============================================================================

class ModelSelection(BaseModel):
    """
    Capability name -> model identifier.

    The only part of a provider configuration that may change after
    construction (on-device model switching, API benchmarking).
    """

    model_config = ConfigDict(validate_assignment=True)

    embeddings: str | None = None
    completion: str | None = None
    chat: str | None = None


class ProviderConfig(BaseModel):
    """
    Configuration handed to a provider at construction time.

    Example:
        >>> config = ProviderConfig(
        ...     type=ProviderType.OPENAI,
        ...     api_key="sk-...",
        ...     models=ModelSelection(embeddings="text-embedding-3-small"),
        ... )
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="default", description="Registry/display name")
    type: ProviderType = Field(..., description="Which backend to construct")
    api_key: SecretStr | None = Field(
        default=None,
        description="Bearer credential (required for non-local backends)",
    )
    base_url: str | None = Field(
        default=None,
        description="Endpoint override",
    )
    models: ModelSelection = Field(default_factory=ModelSelection)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)
    organization: str | None = Field(
        default=None,
        description="Organization identifier for the direct API",
    )
    tier: Tier = Field(
        default=Tier.BASIC,
        description="Subscription tier (managed cloud only)",
    )
    options: dict[str, Any] = Field(default_factory=dict)

    def get_api_key(self) -> str | None:
        """Reveal the credential for transport use only."""
        return self.api_key.get_secret_value() if self.api_key else None


# =============================================================================
# Results
# =============================================================================

class EmbeddingResult(BaseModel):
    """Vector representation of one input text."""

    embeddings: list[float]
    token_count: int = Field(..., ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    model: str
    duration_ms: float | None = Field(default=None, ge=0)


class CompletionResult(BaseModel):
    """Generated text for one prompt."""

    text: str
    token_count: int = Field(..., ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    model: str
    finish_reason: FinishReason = FinishReason.STOP


RelevanceMethod = Literal["semantic", "local-semantic", "keyword", "cloud-optimized"]


class RelevanceScore(BaseModel):
    """How relevant a context passage is to a query."""

    score: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    method: RelevanceMethod
    reasoning: str | None = None


class UsageStats(BaseModel):
    """Running totals for one provider instance. Never persisted."""

    tokens_used: int = 0
    request_count: int = 0
    estimated_cost: float = 0.0

    def record(self, tokens: int, cost: float = 0.0) -> None:
        """Add one request's usage."""
        self.tokens_used += max(0, int(tokens))
        self.request_count += 1
        self.estimated_cost += max(0.0, float(cost))


class ProviderInfo(BaseModel):
    """Static metadata describing a provider."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    capabilities: list[str]
    requires_api_key: bool
    cost_estimate: Literal["free", "low", "medium", "high", "managed"]
    privacy: Literal["local", "api", "managed"]


# =============================================================================
# Managed Cloud Envelope
# =============================================================================

class CloudUsage(BaseModel):
    """Usage snapshot attached to every managed cloud response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tokens_used: int = 0
    requests_remaining: int = 0
    reset_time: int = 0


class CloudResponse(BaseModel, Generic[T]):
    """
    Envelope returned by every managed cloud call, regardless of endpoint.

    Example:
        >>> response = CloudResponse(success=True, data={"url": "..."})
    """

    success: bool
    data: T | None = None
    error: str | None = None
    usage: CloudUsage = Field(default_factory=CloudUsage)
    status_code: int | None = Field(
        default=None,
        exclude=True,
        description="HTTP status (client-side only, not part of the wire shape)",
    )


class TierLimits(BaseModel):
    """Monthly quotas, with the internal sentinel rendered as "unlimited"."""

    monthly_tokens: int | Literal["unlimited"]
    monthly_requests: int | Literal["unlimited"]


class TierFeatures(BaseModel):
    """Feature flags unlocked by a tier."""

    ai_models: str
    analytics: bool = True
    optimization: bool = True
    team_features: bool = False
    priority_support: bool = False
    custom_models: bool = False


class TierInfo(BaseModel):
    """Tier descriptor reported to callers."""

    tier: Tier
    limits: TierLimits
    features: TierFeatures


class UsageLimitStatus(BaseModel):
    """Result of a quota check against the managed cloud."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    within_limits: bool = True
    warnings: list[str] = Field(default_factory=list)
    usage: dict[str, Any] = Field(default_factory=dict)
