"""
Tests for PROVIDER_<KEY>_* settings.
"""
from infoprovider.config import ProviderSettings, load_settings


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings("reichelt", env={})

        assert settings == ProviderSettings()
        assert settings.enable is False
        assert settings.country == "DE"
        assert settings.lang == "en"
        assert settings.currency == "EUR"

    def test_reads_prefixed_variables(self):
        env = {
            "PROVIDER_REICHELT_ENABLE": "1",
            "PROVIDER_REICHELT_ADD_GTIN_TO_ORDERNO": "true",
            "PROVIDER_REICHELT_COUNTRY": "AT",
            "PROVIDER_REICHELT_LANG": "de",
            "PROVIDER_REICHELT_CURRENCY": "CHF",
            "PROVIDER_REICHELT_NET_PRICES": "yes",
            "PROVIDER_POLLIN_ENABLE": "1",
        }

        settings = load_settings("reichelt", env=env)

        assert settings.enable is True
        assert settings.add_gtin_to_orderno is True
        assert (settings.country, settings.lang, settings.currency) == ("AT", "de", "CHF")
        assert settings.net_prices is True

    def test_other_providers_not_affected(self):
        settings = load_settings("strucdata", env={"PROVIDER_POLLIN_ENABLE": "1"})

        assert settings.enable is False

    def test_false_values(self):
        for value in ("0", "false", "no", "off", "nonsense"):
            assert load_settings("pollin", env={"PROVIDER_POLLIN_ENABLE": value}).enable is False

    def test_trusted_domains(self):
        env = {"PROVIDER_STRUCDATA_TRUSTED_DOMAINS": r" (^|\.)lcsc\.com$ "}

        assert load_settings("strucdata", env=env).trusted_domains == r"(^|\.)lcsc\.com$"
        assert load_settings("strucdata", env={"PROVIDER_STRUCDATA_TRUSTED_DOMAINS": "  "}).trusted_domains is None

    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_POLLIN_ENABLE", "on")

        assert load_settings("pollin").enable is True
