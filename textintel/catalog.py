"""
Static model, pricing and tier tables.

Everything here is built once at import time and exposed read-only so the
tables can be versioned and tested independently of request logic.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from .models import Capability, Tier

CATALOG_VERSION = "2025-01"
PRICING_VERSION = "2025-01"


def _freeze(table: dict[str, dict[str, Any]]) -> Mapping[str, Mapping[str, Any]]:
    return MappingProxyType({key: MappingProxyType(value) for key, value in table.items()})


# =============================================================================
# On-Device Models
# =============================================================================

LOCAL_SUPPORTED_MODELS: Mapping[Capability, tuple[str, ...]] = MappingProxyType({
    Capability.EMBEDDINGS: (
        "sentence-transformers/all-MiniLM-L6-v2",          # fast, 384 dims
        "sentence-transformers/all-mpnet-base-v2",         # better quality, 768 dims
        "sentence-transformers/sentence-t5-base",          # balanced, 768 dims
        "sentence-transformers/multi-qa-MiniLM-L6-cos-v1", # question answering
    ),
    Capability.COMPLETION: (
        "openai-community/gpt2",
        "distilbert/distilgpt2",
        "Salesforce/codegen-350M-mono",
    ),
})

LOCAL_MODEL_CATALOG = _freeze({
    "sentence-transformers/all-MiniLM-L6-v2": {
        "dimensions": 384, "size": "90MB", "speed": "fast", "recommended": True,
    },
    "sentence-transformers/all-mpnet-base-v2": {
        "dimensions": 768, "size": "438MB", "speed": "medium",
    },
    "sentence-transformers/sentence-t5-base": {
        "dimensions": 768, "size": "219MB", "speed": "medium",
    },
    "sentence-transformers/multi-qa-MiniLM-L6-cos-v1": {
        "dimensions": 384, "size": "90MB", "speed": "fast",
    },
    "openai-community/gpt2": {"size": "548MB", "quality": "basic"},
    "distilbert/distilgpt2": {"size": "353MB", "quality": "basic"},
    "Salesforce/codegen-350M-mono": {"size": "797MB", "quality": "good"},
})

# Returned for identifiers the catalog does not know
LOCAL_MODEL_PLACEHOLDER: Mapping[str, Any] = MappingProxyType({
    "dimensions": 384,
    "size": "Unknown",
    "speed": "medium",
    "quality": "basic",
    "recommended": False,
})


def local_model_metadata(model_id: str) -> dict[str, Any]:
    """Catalog entry for an on-device model, placeholder values filled in."""
    entry = dict(LOCAL_MODEL_PLACEHOLDER)
    entry.update(LOCAL_MODEL_CATALOG.get(model_id, {}))
    return entry


# =============================================================================
# Direct API Pricing
# =============================================================================

PRICE_PER_TOKEN: Mapping[str, float] = MappingProxyType({
    "text-embedding-3-small": 0.00000002,  # $0.02 per 1M tokens
    "text-embedding-3-large": 0.00000013,  # $0.13 per 1M tokens
    "text-embedding-ada-002": 0.0000001,   # $0.10 per 1M tokens
    "gpt-3.5-turbo": 0.0000005,            # $0.50 per 1M tokens (input)
    "gpt-4": 0.00003,                      # $30.00 per 1M tokens (input)
    "gpt-4o": 0.0000025,                   # $2.50 per 1M tokens (input)
    "gpt-4o-mini": 0.00000015,             # $0.15 per 1M tokens (input)
})

DEFAULT_PRICE_PER_TOKEN = 0.000001

OPENAI_MODEL_CATALOG: Mapping[str, Mapping[str, Mapping[str, Any]]] = MappingProxyType({
    "embeddings": _freeze({
        "text-embedding-3-small": {
            "dimensions": 1536, "cost_per_1m": 0.02,
            "performance": "fast", "recommended": True,
        },
        "text-embedding-3-large": {
            "dimensions": 3072, "cost_per_1m": 0.13,
            "performance": "best", "recommended": False,
        },
        "text-embedding-ada-002": {
            "dimensions": 1536, "cost_per_1m": 0.10,
            "performance": "good", "recommended": False, "deprecated": True,
        },
    }),
    "completion": _freeze({
        "gpt-4o-mini": {
            "context_window": 128000, "cost_per_1m": 0.15,
            "performance": "fast", "recommended": True,
        },
        "gpt-4o": {
            "context_window": 128000, "cost_per_1m": 2.50,
            "performance": "best", "recommended": False,
        },
        "gpt-3.5-turbo": {
            "context_window": 16385, "cost_per_1m": 0.50,
            "performance": "good", "recommended": False,
        },
    }),
})

OPENAI_BENCHMARK_MODELS: tuple[str, ...] = (
    "text-embedding-3-small",
    "text-embedding-3-large",
)

# Configured model -> advice shown by usage recommendations
OPENAI_UPGRADE_ADVICE: Mapping[str, str] = MappingProxyType({
    "text-embedding-ada-002": (
        "Consider upgrading to text-embedding-3-small for better performance at lower cost"
    ),
    "gpt-4": "Consider using gpt-4o-mini for routine tasks to reduce costs by 90%",
})


# =============================================================================
# Managed Cloud Tiers
# =============================================================================

UNLIMITED = -1

TIER_LIMITS: Mapping[Tier, Mapping[str, int]] = MappingProxyType({
    Tier.BASIC: MappingProxyType({"tokens": 50_000, "requests": 1_000}),
    Tier.PRO: MappingProxyType({"tokens": 500_000, "requests": 10_000}),
    Tier.ENTERPRISE: MappingProxyType({"tokens": UNLIMITED, "requests": UNLIMITED}),
})

TEAM_FEATURE_TIERS: tuple[Tier, ...] = (Tier.PRO, Tier.ENTERPRISE)
