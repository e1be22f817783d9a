"""Provider lookup by key."""

from typing import Dict, Iterable, List, Mapping, Optional

from infoprovider.config import load_settings
from infoprovider.errors import InfoProviderError
from infoprovider.fetcher import Fetcher
from infoprovider.logging_config import get_logger
from infoprovider.providers.base import InfoProvider
from infoprovider.providers.pollin import PollinProvider
from infoprovider.providers.reichelt import ReicheltProvider
from infoprovider.providers.structured_data import StructuredDataProvider
from infoprovider.schema_reader import SchemaReader

__all__ = ["ProviderRegistry", "ProviderNotFoundError", "ProviderInactiveError", "build_providers"]

logger = get_logger("registry")

PROVIDER_CLASSES = [StructuredDataProvider, ReicheltProvider, PollinProvider]


class ProviderNotFoundError(InfoProviderError):
    """No provider is registered under the requested key."""


class ProviderInactiveError(InfoProviderError):
    """The provider exists but is not enabled."""


class ProviderRegistry:
    """Holds providers by key; only active ones are handed out by ``get``."""

    def __init__(self, providers: Iterable[InfoProvider]):
        self._providers: Dict[str, InfoProvider] = {}
        for provider in providers:
            key = provider.get_provider_key()
            if key in self._providers:
                raise ValueError(f"Duplicate provider key: {key}")
            self._providers[key] = provider

    def all(self) -> List[InfoProvider]:
        return list(self._providers.values())

    def active(self) -> List[InfoProvider]:
        return [p for p in self._providers.values() if p.is_active()]

    def keys(self) -> List[str]:
        return list(self._providers.keys())

    def get(self, key: str) -> InfoProvider:
        """Active provider for a key.

        Raises:
            ProviderNotFoundError: If no provider has this key
            ProviderInactiveError: If the provider is disabled
        """
        provider = self._providers.get(key)
        if provider is None:
            raise ProviderNotFoundError(f"Unknown provider '{key}'. Available: {self.keys()}")
        if not provider.is_active():
            help_text = provider.get_provider_info().get("disabled_help", "")
            raise ProviderInactiveError(f"Provider '{key}' is not active. {help_text}".strip())
        return provider


def build_providers(
    env: Optional[Mapping[str, str]] = None,
    fetcher: Optional[Fetcher] = None,
) -> ProviderRegistry:
    """Create all known providers with settings read from the environment.

    Providers share one fetcher (one HTTP session) and one reader.
    """
    fetcher = fetcher or Fetcher()
    reader = SchemaReader()
    providers = []
    for cls in PROVIDER_CLASSES:
        settings = load_settings(cls.PROVIDER_KEY, env)
        providers.append(cls(settings, fetcher=fetcher, reader=reader))
        logger.debug(f"Provider {cls.PROVIDER_KEY}: {'enabled' if settings.enable else 'disabled'}")
    return ProviderRegistry(providers)
