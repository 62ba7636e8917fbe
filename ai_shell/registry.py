"""
Provider Registry - process-wide lookup from provider name to instance.

Built once at import, read-only afterwards: providers hold no per-call
state, so the same instances are shared by every caller without locking.

Usage:
    provider = get_provider(config.provider)
    stream = await provider.generate_completion(request)
"""

from types import MappingProxyType
from typing import Mapping, TYPE_CHECKING

from ai_shell.adapters.local import LocalProvider
from ai_shell.adapters.openai import OpenAIProvider
from ai_shell.errors import UnknownProviderError

if TYPE_CHECKING:
    from ai_shell.adapters.base import Provider


def _build_registry(*providers: "Provider") -> Mapping[str, "Provider"]:
    registry: dict[str, "Provider"] = {}
    for provider in providers:
        if provider.name in registry:
            raise ValueError(f"Duplicate provider name: {provider.name}")
        registry[provider.name] = provider
    return MappingProxyType(registry)


PROVIDERS: Mapping[str, "Provider"] = _build_registry(
    OpenAIProvider(),
    LocalProvider(),
)


def get_provider(name: str) -> "Provider":
    """
    Get the registered provider by name.

    Raises:
        UnknownProviderError: If no provider is registered under ``name``
    """
    try:
        return PROVIDERS[name]
    except KeyError:
        raise UnknownProviderError(name) from None


def provider_names() -> list[str]:
    """Registered provider names, in registration order."""
    return list(PROVIDERS)
