"""
Centralized configuration using Pydantic BaseSettings.

Process-wide defaults for every provider live here. The per-instance
``ProviderConfig`` (see ``textintel.models``) is what callers pass to a
provider; anything it leaves unset is filled from these settings.

Configuration Sources:
    1. Environment variables (prefixed with ``TEXTINTEL_``)
    2. .env file (if present)
    3. Default values (defined below)

Usage:
    from textintel.config import settings, get_logger

    print(settings.MAX_RETRIES)  # Type-safe access
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import ClassVar, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Library settings with environment variable support.

    All settings are validated on first access. Credentials are NOT read
    from here; they travel in the ProviderConfig handed to each provider.
    """

    model_config = SettingsConfigDict(
        env_prefix="TEXTINTEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # Logging
    # =========================================================================

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging verbosity level used by configure_logging()",
    )

    # =========================================================================
    # Retry Configuration
    # =========================================================================
    # Exponential backoff for transient failures (network issues, rate limits, etc.)

    MAX_RETRIES: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum retry attempts after the first failed request",
    )
    RETRY_BASE_DELAY: float = Field(
        default=1.0,
        ge=0,
        description="Initial delay between retries in seconds (grows exponentially)",
    )
    RETRY_MAX_DELAY: float = Field(
        default=10.0,
        ge=0,
        description="Maximum delay between retries (caps exponential growth)",
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout for HTTP-backed providers",
    )

    # =========================================================================
    # Token Accounting
    # =========================================================================

    CHARS_PER_TOKEN: int = Field(
        default=4,
        ge=1,
        description="Characters-per-token ratio used when no billing API reports usage",
    )

    # =========================================================================
    # On-Device Provider
    # =========================================================================

    LOCAL_EMBEDDING_MODEL: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Default on-device embedding model (must be whitelisted)",
    )
    LOCAL_COMPLETION_MODEL: str | None = Field(
        default="openai-community/gpt2",
        description="Default on-device completion model (None disables completion)",
    )
    LOCAL_MAX_NEW_TOKENS: int = Field(
        default=200,
        ge=1,
        description="Safety ceiling on generated units for on-device completion",
    )
    LOCAL_TEMPERATURE: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for on-device completion",
    )

    # =========================================================================
    # Direct API Provider (OpenAI)
    # =========================================================================

    OPENAI_BASE_URL: str = Field(
        default="https://api.openai.com/v1",
        description="API endpoint (override for OpenAI-compatible gateways)",
    )
    OPENAI_EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small",
        description="Default embedding model for the direct API provider",
    )
    OPENAI_COMPLETION_MODEL: str = Field(
        default="gpt-4o-mini",
        description="Default completion/chat model for the direct API provider",
    )
    OPENAI_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for direct API completions",
    )
    OPENAI_MAX_TOKENS: int = Field(
        default=1000,
        ge=1,
        description="Default completion length when the caller passes none",
    )
    SYSTEM_INSTRUCTION: str = Field(
        default="You are a helpful assistant that provides concise, accurate responses.",
        description="The single system instruction sent with every completion",
    )
    COST_ADVISORY_THRESHOLD_USD: float = Field(
        default=10.0,
        ge=0,
        description="Cumulative cost above which local models are recommended",
    )
    TOKEN_ADVISORY_THRESHOLD: int = Field(
        default=1_000_000,
        ge=0,
        description="Cumulative tokens above which the managed cloud is recommended",
    )

    # =========================================================================
    # Managed Cloud Provider
    # =========================================================================

    CLOUD_ENDPOINT: str = Field(
        default="https://api.context-sync.dev/v1",
        description="Managed cloud REST endpoint",
    )
    CLOUD_BILLING_URL: str = Field(
        default="https://cloud.context-sync.dev/billing",
        description="Fallback billing URL when the upgrade endpoint is unreachable",
    )
    CLOUD_CLIENT_NAME: str = Field(
        default="textintel",
        description="Client identity sent in the X-Client header",
    )
    CLOUD_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Sampling temperature forwarded to managed completions",
    )
    CLOUD_MAX_TOKENS: int = Field(
        default=1000,
        ge=1,
        description="Default managed completion length when the caller passes none",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Ensure LOG_LEVEL is uppercase."""
        return v.upper() if isinstance(v, str) else v


# =============================================================================
# Settings Factory with Caching
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache for singleton behavior while allowing
    cache invalidation in tests.
    """
    return Settings()


# Convenience alias for direct access
settings = get_settings()


# =============================================================================
# Logging Configuration
# =============================================================================

class SanitizingFormatter(logging.Formatter):
    """
    Logging formatter that redacts credentials.

    Automatically redacts:
    - Bearer tokens
    - API keys (including ``sk-`` style keys)
    - Tokens
    """

    SENSITIVE_PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = [
        (re.compile(r'(Bearer\s+)[^\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(api[_-]?key["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'\bsk-[A-Za-z0-9_\-]{8,}'), '[REDACTED]'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with sensitive data redaction."""
        message = super().format(record)
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


def configure_logging(log_level: str | None = None) -> None:
    """
    Configure logging for applications embedding this library.

    Args:
        log_level: Logging level (defaults to settings.LOG_LEVEL)
    """
    level_name = (log_level or settings.LOG_LEVEL).upper()
    log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    handler = logging.StreamHandler()
    handler.setFormatter(SanitizingFormatter(log_format))

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        handlers=[handler],
        force=True,
    )

    # Suppress noisy third-party loggers
    for logger_name in ("httpx", "httpcore", "openai", "urllib3", "transformers"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the library's namespace.

    Args:
        name: Logger name relative to ``textintel`` (e.g. "providers.local")

    Returns:
        Configured logging.Logger instance
    """
    return logging.getLogger(f"textintel.{name}")


# Libraries stay silent unless the host application configures logging
logging.getLogger("textintel").addHandler(logging.NullHandler())
