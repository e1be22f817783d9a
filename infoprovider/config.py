"""Configuration and constants for the info providers."""

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

__all__ = [
    "HEADERS",
    "REQUEST_TIMEOUT",
    "MAX_REDIRECTS",
    "CATEGORY_SEPARATOR",
    "DISTRIBUTOR_PLACEHOLDER",
    "MASS_UNIT_FACTORS",
    "CURRENCY_ALIASES",
    "REICHELT_BASE_URL",
    "REICHELT_SELLER",
    "POLLIN_BASE_URL",
    "POLLIN_SELLER",
    "ProviderSettings",
    "load_settings",
]

# HTTP headers sent with every request
HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; infoprovider/0.1; parts database lookup)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

# Request timeout in seconds (connect + read)
REQUEST_TIMEOUT = 15

# Redirect hops followed when every target has to be checked
MAX_REDIRECTS = 10

# Joiner for category path segments
CATEGORY_SEPARATOR = " -> "

# Used as distributor name when neither the offer nor the page names a seller
DISTRIBUTOR_PLACEHOLDER = "<PLEASE REMOVE & SELECT ANOTHER DISTRIBUTOR>"

# UN/CEFACT Rec. 20 unit codes -> factor to grams
MASS_UNIT_FACTORS: Dict[str, float] = {
    "KGM": 1000.0,
    "MGM": 0.001,
    "GRM": 1.0,
    "LBR": 453.59237,
    "ONZ": 283.4952,
}

# Non-ISO currency spellings seen in the wild (lcsc.com uses "US$")
CURRENCY_ALIASES: Dict[str, str] = {
    "US$": "USD",
    "€": "EUR",
}

REICHELT_BASE_URL = "https://www.reichelt.com"
REICHELT_SELLER = "reichelt elektronik GmbH & Co. KG"

POLLIN_BASE_URL = "https://www.pollin.de"
POLLIN_SELLER = "Pollin Electronic GmbH"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ProviderSettings:
    """Options recognized by providers. Read-only after construction."""

    enable: bool = False
    trusted_domains: Optional[str] = None
    add_gtin_to_orderno: bool = False
    country: str = "DE"
    lang: str = "en"
    currency: str = "EUR"
    net_prices: bool = False


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def load_settings(provider_key: str, env: Optional[Mapping[str, str]] = None) -> ProviderSettings:
    """Build settings for a provider from PROVIDER_<KEY>_* environment variables.

    Args:
        provider_key: Provider key, e.g. 'reichelt'
        env: Mapping to read from (default: os.environ)

    Returns:
        ProviderSettings instance
    """
    source = os.environ if env is None else env
    prefix = f"PROVIDER_{provider_key.upper()}_"
    defaults = ProviderSettings()

    def get(name: str) -> Optional[str]:
        return source.get(prefix + name)

    trusted = get("TRUSTED_DOMAINS")
    return ProviderSettings(
        enable=_env_bool(get("ENABLE"), defaults.enable),
        trusted_domains=trusted.strip() if trusted and trusted.strip() else None,
        add_gtin_to_orderno=_env_bool(get("ADD_GTIN_TO_ORDERNO"), defaults.add_gtin_to_orderno),
        country=(get("COUNTRY") or defaults.country).strip(),
        lang=(get("LANG") or defaults.lang).strip(),
        currency=(get("CURRENCY") or defaults.currency).strip(),
        net_prices=_env_bool(get("NET_PRICES"), defaults.net_prices),
    )
