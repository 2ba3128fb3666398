"""
Provider layer for swappable text-intelligence backends.

Each backend implements ``TextIntelligenceProvider`` directly and is
selected at construction time from ``ProviderConfig.type``.

Directory Structure:
    providers/
    ├── __init__.py        # This file - factory
    ├── interface.py       # Abstract interface all providers implement
    ├── loaders.py         # Default on-device model loader (transformers)
    ├── local_impl.py      # On-device implementation
    ├── openai_impl.py     # Direct API implementation
    └── cloud_impl.py      # Managed cloud implementation
"""
from __future__ import annotations

from typing import Any

from ..config import get_logger
from ..exceptions import ConfigurationError
from ..models import ProviderConfig, ProviderType
from .cloud_impl import CloudProvider
from .interface import TextIntelligenceProvider
from .local_impl import LocalProvider
from .openai_impl import OpenAIProvider

logger = get_logger("providers")

_PROVIDERS: dict[ProviderType, type[TextIntelligenceProvider]] = {
    ProviderType.LOCAL: LocalProvider,
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.MANAGED: CloudProvider,
}


def create_provider(config: ProviderConfig, **kwargs: Any) -> TextIntelligenceProvider:
    """
    Construct the provider selected by config.type.

    Args:
        config: Provider configuration
        **kwargs: Injection points forwarded to the implementation
            (``loader`` for local, ``client``/``pricing`` for openai,
            ``transport`` for managed)

    Raises:
        ConfigurationError: If the provider type is not supported
    """
    provider_cls = _PROVIDERS.get(config.type)
    if provider_cls is None:
        raise ConfigurationError(
            f"Unknown provider type: {config.type}. "
            f"Supported: {', '.join(t.value for t in _PROVIDERS)}"
        )
    logger.info("Provider: %s (%s)", config.name, config.type.value)
    return provider_cls(config, **kwargs)


__all__ = [
    "CloudProvider",
    "LocalProvider",
    "OpenAIProvider",
    "TextIntelligenceProvider",
    "create_provider",
]
