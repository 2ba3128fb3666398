"""
Managed cloud provider implementation.

Talks to a subscription REST service that multiplexes several AI backends
behind one account. Every endpoint answers with the same envelope
(``CloudResponse``); cost to the caller is always 0 because usage is covered
by the subscription tier.
"""
from __future__ import annotations

from typing import Any, Literal
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .. import __version__
from ..catalog import TEAM_FEATURE_TIERS, TIER_LIMITS, UNLIMITED
from ..config import get_logger, settings
from ..exceptions import RemoteFailureError, TierRestrictionError
from ..models import (
    Capability,
    CloudResponse,
    CloudUsage,
    CompletionResult,
    EmbeddingResult,
    FinishReason,
    ProviderConfig,
    ProviderInfo,
    RelevanceScore,
    Tier,
    TierFeatures,
    TierInfo,
    TierLimits,
    UsageLimitStatus,
)
from .interface import TextIntelligenceProvider

logger = get_logger("providers.cloud")


class _CloudPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CloudEmbeddingData(_CloudPayload):
    embeddings: list[float]
    token_count: int = Field(..., ge=0)
    model: str = "managed-embeddings"


class CloudCompletionData(_CloudPayload):
    text: str
    token_count: int = Field(..., ge=0)
    model: str = "managed-completion"
    finish_reason: str | None = None


class CloudRelevanceData(_CloudPayload):
    score: float
    confidence: float
    insights: list[str] = Field(default_factory=list)


def _parse_usage(raw: Any) -> CloudUsage:
    try:
        return CloudUsage.model_validate(raw or {})
    except ValidationError:
        return CloudUsage()


def _is_transient(response: CloudResponse[Any]) -> bool:
    status = response.status_code
    return status is None or status == 429 or status >= 500


def _error_text(raw: Any) -> str | None:
    """Flatten a service error (string or structured object) to a message."""
    if raw is None or isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        message = raw.get("message") or raw.get("code")
        if isinstance(message, str):
            return message
    return str(raw)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


class CloudProvider(TextIntelligenceProvider):
    """
    Managed cloud provider with tier-gated features.

    The HTTP transport may be injected (tests); by default a fresh
    httpx.AsyncClient is opened per request so nothing needs closing.
    """

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self._transport = transport
        self._base_url = (self._config.base_url or settings.CLOUD_ENDPOINT).rstrip("/")
        self._tier = self._config.tier

        # Model choice happens server side
        models = self._config.models
        models.embeddings = "managed-embeddings"
        models.completion = "managed-completion"
        models.chat = "managed-chat"

    @property
    def tier(self) -> Tier:
        return self._tier

    async def initialize(self) -> bool:
        """Validate the account credential."""
        if self._initialized:
            return True
        if not self._config.get_api_key():
            logger.error("Cloud provider requires an account API key")
            return False

        response = await self._request("/auth/validate", "GET")
        if not response.success:
            logger.error("Cloud API key validation failed: %s", response.error)
            return False

        self._initialized = True
        logger.info("Connected to managed cloud (%s tier)", self._tier.value)
        return True

    async def generate_embeddings(self, text: str) -> EmbeddingResult:
        self._require_initialized()
        raw = await self._call_ai(
            "/ai/embeddings",
            {"text": text, "tier": self._tier.value, "optimize": True},
            "embeddings",
        )
        try:
            data = CloudEmbeddingData.model_validate(raw)
        except ValidationError as e:
            raise RemoteFailureError("Cloud embeddings failed: malformed response", details=str(e)) from e

        self.track_usage(data.token_count, 0.0)
        return EmbeddingResult(
            embeddings=data.embeddings,
            token_count=data.token_count,
            cost=0.0,
            model=data.model,
        )

    async def generate_completion(
        self,
        prompt: str,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        self._require_initialized()
        temperature = (
            self._config.temperature
            if self._config.temperature is not None
            else settings.CLOUD_TEMPERATURE
        )
        raw = await self._call_ai(
            "/ai/completion",
            {
                "prompt": prompt,
                "maxTokens": max_tokens or self._config.max_tokens or settings.CLOUD_MAX_TOKENS,
                "tier": self._tier.value,
                "temperature": temperature,
                "optimize": True,
            },
            "completion",
        )
        try:
            data = CloudCompletionData.model_validate(raw)
        except ValidationError as e:
            raise RemoteFailureError("Cloud completion failed: malformed response", details=str(e)) from e

        self.track_usage(data.token_count, 0.0)
        return CompletionResult(
            text=data.text,
            token_count=data.token_count,
            cost=0.0,
            model=data.model,
            finish_reason=FinishReason.from_raw(data.finish_reason),
        )

    async def score_relevance(self, context: str, query: str) -> RelevanceScore:
        """Server-optimized scoring, falling back to the local chain."""
        try:
            response = await self._request(
                "/ai/relevance",
                "POST",
                {"context": context, "query": query, "tier": self._tier.value},
            )
            if response.success and response.data is not None:
                data = CloudRelevanceData.model_validate(response.data)
                return RelevanceScore(
                    score=_clamp(data.score),
                    confidence=_clamp(data.confidence),
                    method="cloud-optimized",
                    reasoning="; ".join(data.insights) or None,
                )
            logger.info("Cloud relevance unavailable (%s), scoring locally", response.error)
        except Exception as e:
            logger.info("Cloud relevance failed, scoring locally: %s", e)

        return await super().score_relevance(context, query)

    def get_provider_info(self) -> ProviderInfo:
        capabilities = [
            Capability.EMBEDDINGS.value,
            Capability.COMPLETION.value,
            Capability.CHAT.value,
            Capability.RELEVANCE.value,
            Capability.OPTIMIZATION.value,
            Capability.ANALYTICS.value,
        ]
        if self._tier in TEAM_FEATURE_TIERS:
            capabilities += [Capability.TEAM_SHARING.value, Capability.COLLABORATION.value]
        return ProviderInfo(
            name=f"Context Sync Cloud ({self._tier.value})",
            type="managed",
            capabilities=capabilities,
            requires_api_key=True,
            cost_estimate="managed",
            privacy="managed",
        )

    # =========================================================================
    # Tiers and Team Features
    # =========================================================================

    def get_tier_info(self) -> TierInfo:
        """Quotas and feature flags for this account's tier."""
        limits = TIER_LIMITS[self._tier]
        paid = self._tier in TEAM_FEATURE_TIERS
        return TierInfo(
            tier=self._tier,
            limits=TierLimits(
                monthly_tokens="unlimited" if limits["tokens"] == UNLIMITED else limits["tokens"],
                monthly_requests="unlimited" if limits["requests"] == UNLIMITED else limits["requests"],
            ),
            features=TierFeatures(
                ai_models="Premium models" if paid else "Standard models",
                team_features=paid,
                priority_support=self._tier is Tier.ENTERPRISE,
                custom_models=self._tier is Tier.ENTERPRISE,
            ),
        )

    def _require_team_tier(self, feature: str) -> None:
        if self._tier not in TEAM_FEATURE_TIERS:
            raise TierRestrictionError(
                feature=feature,
                current_tier=self._tier.value,
                required_tiers=[t.value for t in TEAM_FEATURE_TIERS],
            )

    async def share_context(
        self,
        context_id: str,
        team_id: str,
        permissions: tuple[str, ...] | list[str] = ("read",),
    ) -> bool:
        """
        Share a stored context with a team.

        Returns:
            Whether the service accepted the share

        Raises:
            TierRestrictionError: On the basic tier (no request is made)
        """
        self._require_team_tier("Context sharing")
        response = await self._request(
            "/team/share-context",
            "POST",
            {"contextId": context_id, "teamId": team_id, "permissions": list(permissions)},
        )
        if not response.success:
            logger.warning("Context sharing rejected: %s", response.error)
        return response.success

    async def get_team_contexts(self, team_id: str) -> list[Any]:
        """
        List contexts shared with a team.

        Raises:
            TierRestrictionError: On the basic tier (no request is made)
        """
        self._require_team_tier("Team contexts")
        response = await self._request(f"/team/{quote(team_id, safe='')}/contexts", "GET")
        if not response.success:
            logger.warning("Could not fetch team contexts: %s", response.error)
            return []
        return list(response.data or [])

    # =========================================================================
    # Advisory Endpoints (never raise)
    # =========================================================================

    async def get_optimization_insights(self) -> Any | None:
        response = await self._request("/analytics/optimization", "GET")
        if not response.success:
            logger.warning("Could not fetch optimization insights: %s", response.error)
            return None
        return response.data

    async def get_usage_analytics(
        self,
        period: Literal["day", "week", "month"] = "month",
    ) -> Any | None:
        response = await self._request("/analytics/usage", "GET", params={"period": period})
        if not response.success:
            logger.warning("Could not fetch usage analytics: %s", response.error)
            return None
        return response.data

    async def check_usage_limits(self) -> UsageLimitStatus:
        response = await self._request("/usage/check-limits", "GET")
        if response.success and isinstance(response.data, dict):
            try:
                return UsageLimitStatus.model_validate(response.data)
            except ValidationError as e:
                logger.warning("Malformed usage limits response: %s", e)
        return UsageLimitStatus(warnings=["Could not check usage limits"])

    async def get_upgrade_url(self) -> str:
        response = await self._request(
            "/billing/upgrade-url",
            "POST",
            {"currentTier": self._tier.value},
        )
        if response.success and isinstance(response.data, dict) and response.data.get("url"):
            return response.data["url"]
        return settings.CLOUD_BILLING_URL

    # =========================================================================
    # Transport
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.get_api_key() or ''}",
            "Content-Type": "application/json",
            "X-Client": settings.CLOUD_CLIENT_NAME,
            "X-Client-Version": __version__,
        }

    async def _call_ai(self, path: str, body: dict[str, Any], operation: str) -> Any:
        """POST to an AI endpoint; non-success envelopes become RemoteFailureError."""
        async def attempt() -> CloudResponse[Any]:
            response = await self._request(path, "POST", body)
            if not response.success or response.data is None:
                raise RemoteFailureError(
                    response.error or f"Cloud {operation} request failed",
                    status_code=response.status_code,
                    retryable=_is_transient(response),
                )
            return response

        try:
            response = await self.with_retry(attempt)
        except RemoteFailureError as e:
            raise RemoteFailureError(
                f"Cloud {operation} failed: {e.message}",
                status_code=e.status_code,
            ) from e
        return response.data

    async def _request(
        self,
        path: str,
        method: Literal["GET", "POST", "PUT", "DELETE"] = "GET",
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> CloudResponse[Any]:
        """Make an authenticated request. Never raises; failures come back as envelopes."""
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers(),
                timeout=settings.REQUEST_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    json=body if method in ("POST", "PUT") else None,
                    params=params,
                )
        except httpx.HTTPError as e:
            return CloudResponse(success=False, error=f"Network error: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            error = None if response.is_success else f"HTTP {response.status_code}: {response.reason_phrase}"
            return CloudResponse(
                success=False,
                error=error or "Invalid response body",
                status_code=response.status_code,
            )

        usage = _parse_usage(payload.get("usage"))
        error = _error_text(payload.get("error"))
        try:
            if not response.is_success:
                return CloudResponse(
                    success=False,
                    error=error or f"HTTP {response.status_code}: {response.reason_phrase}",
                    usage=usage,
                    status_code=response.status_code,
                )

            return CloudResponse(
                success=payload.get("success", True),
                data=payload.get("data"),
                error=error,
                usage=usage,
                status_code=response.status_code,
            )
        except ValidationError as e:
            logger.warning("Malformed cloud envelope from %s: %s", path, e)
            return CloudResponse(
                success=False,
                error="Invalid response body",
                status_code=response.status_code,
            )
