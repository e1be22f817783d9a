"""Part info providers built on schema.org structured data."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from infoprovider.config import ProviderSettings, load_settings
from infoprovider.errors import DomainNotTrustedError, FetchError, InfoProviderError, ParseError
from infoprovider.models import (
    Capability,
    FileDTO,
    ParameterDTO,
    PartDetail,
    PartSummary,
    PriceDTO,
    PurchaseInfoDTO,
)
from infoprovider.providers import PollinProvider, ReicheltProvider, StructuredDataProvider
from infoprovider.registry import ProviderRegistry, build_providers

__all__ = [
    # Version
    "__version__",
    # Config
    "ProviderSettings",
    "load_settings",
    # Errors
    "InfoProviderError",
    "ParseError",
    "DomainNotTrustedError",
    "FetchError",
    # Models
    "Capability",
    "FileDTO",
    "ParameterDTO",
    "PriceDTO",
    "PurchaseInfoDTO",
    "PartSummary",
    "PartDetail",
    # Providers
    "StructuredDataProvider",
    "ReicheltProvider",
    "PollinProvider",
    "ProviderRegistry",
    "build_providers",
]
