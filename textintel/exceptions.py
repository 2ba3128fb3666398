"""
Custom exceptions for the provider layer.

This module provides a consistent exception hierarchy for error handling
across all providers.

Exception Hierarchy:
    ProviderError (base)
    ├── ConfigurationError
    ├── NotInitializedError
    ├── UnsupportedCapabilityError
    ├── TierRestrictionError
    ├── GenerationError
    └── RemoteFailureError

Initialization failures are deliberately absent: ``initialize()`` reports
them by returning False.

Usage:
    from textintel.exceptions import RemoteFailureError

    raise RemoteFailureError("OpenAI embeddings failed", details="HTTP 500")
"""
from __future__ import annotations

from typing import Any


class ProviderError(Exception):
    """
    Base exception for all provider errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (optional)
        error_code: Machine-readable error code
    """

    default_message: str = "Provider error"

    def __init__(
        self,
        message: str | None = None,
        details: str | None = None,
        error_code: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details
        self.error_code = error_code or self.__class__.__name__.upper()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for reporting.

        Returns:
            Dictionary with error details
        """
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"


class ConfigurationError(ProviderError):
    """
    Raised when a provider configuration is invalid.

    Examples:
        - Unknown provider type
        - Model selection missing a required capability
    """

    default_message = "Configuration error"


class NotInitializedError(ProviderError):
    """Raised when embed/complete is called before a successful initialize()."""

    default_message = "Provider not initialized"


class UnsupportedCapabilityError(ProviderError):
    """
    Raised when a capability is not available on this provider.

    Examples:
        - Completion requested without a loaded completion model
        - Switching to a model outside the whitelist
    """

    default_message = "Unsupported capability"


class TierRestrictionError(ProviderError):
    """
    Raised when a feature requires a higher subscription tier.

    Attributes:
        feature: Name of the gated feature
        current_tier: The account's tier
        required_tiers: Tiers that unlock the feature
    """

    default_message = "Upgrade required"

    def __init__(
        self,
        feature: str,
        current_tier: str,
        required_tiers: list[str],
    ) -> None:
        self.feature = feature
        self.current_tier = current_tier
        self.required_tiers = required_tiers
        super().__init__(
            f"Upgrade required: {feature} requires "
            f"{' or '.join(t.capitalize() for t in required_tiers)} tier",
            details=f"Current tier: {current_tier}",
        )


class GenerationError(ProviderError):
    """Raised when on-device inference fails."""

    default_message = "Local generation failed"


class RemoteFailureError(ProviderError):
    """
    Raised when a hosted service fails or returns a non-success envelope.

    Attributes:
        status_code: HTTP status reported by the service, if any
        retryable: Whether the retry helper may try again
    """

    default_message = "Remote service error"

    def __init__(
        self,
        message: str | None = None,
        details: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message, details=details)
