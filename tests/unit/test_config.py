"""
Unit Tests for Configuration Module

These tests verify that the configuration system works correctly:
- Default values are applied when needed
- Comma-separated strings are parsed into lists and mappings
- Validation catches invalid configurations

Run with:
    pytest tests/unit/test_config.py -v
"""

import pytest

from core.config import KNOWN_SOURCES, Settings, settings, validate_configuration


class TestConfigurationLoading:
    """Test that configuration loads with sane values"""

    def test_binance_base_url_loaded(self):
        """Verify Binance API URL is set"""
        assert "binance" in settings.binance_base_url.lower()
        assert settings.binance_base_url.startswith("http")

    def test_app_port_is_valid_integer(self):
        assert isinstance(settings.app_port, int)
        assert 1 <= settings.app_port <= 65535

    def test_debug_mode_is_boolean(self):
        assert isinstance(settings.debug, bool)

    def test_defaults(self):
        config = Settings(_env_file=None)
        assert config.sources_list == ["binance", "coingecko"]
        assert config.exchange_rates_map == {}
        assert config.cache_ttl == 300
        assert config.coingecko_per_page == 100


class TestSourcesParsing:
    """enabled_sources -> sources_list"""

    def test_sources_are_lowercased_and_stripped(self):
        config = Settings(enabled_sources=" CoinGecko , BINANCE ")
        assert config.sources_list == ["coingecko", "binance"]

    def test_empty_entries_are_ignored(self):
        assert Settings(enabled_sources="binance,,").sources_list == ["binance"]
        assert Settings(enabled_sources="").sources_list == []

    def test_known_sources(self):
        assert set(KNOWN_SOURCES) == {"binance", "coingecko"}


class TestExchangeRatesParsing:
    """exchange_rates -> exchange_rates_map"""

    def test_pairs_are_parsed(self):
        config = Settings(exchange_rates="eur:0.92, GBP:0.79")
        assert config.exchange_rates_map == {"EUR": 0.92, "GBP": 0.79}

    @pytest.mark.parametrize("raw", ["EUR", "EUR:abc", ":0.9", "EUR=0.9"])
    def test_malformed_pairs_raise(self, raw):
        with pytest.raises(ValueError):
            Settings(exchange_rates=raw).exchange_rates_map


class TestCorsOrigins:
    def test_cors_origins_list(self):
        config = Settings(cors_origins="http://a.test, http://b.test,")
        assert config.cors_origins_list == ["http://a.test", "http://b.test"]


class TestValidateConfiguration:
    """validate_configuration rejects bad settings"""

    def test_valid_configuration_passes(self):
        validate_configuration(Settings(enabled_sources="binance", exchange_rates="EUR:0.9"))

    def test_unknown_source_rejected(self):
        with pytest.raises(ValueError, match="Unknown source"):
            validate_configuration(Settings(enabled_sources="binance,kraken"))

    @pytest.mark.parametrize("rates", ["EUR:0", "EUR:-1", "EUR:inf", "EUR:nan"])
    def test_invalid_rates_rejected(self, rates):
        with pytest.raises(ValueError):
            validate_configuration(Settings(exchange_rates=rates))

    def test_invalid_port_rejected(self):
        with pytest.raises(ValueError, match="port"):
            validate_configuration(Settings(app_port=70000))

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            validate_configuration(Settings(log_level="VERBOSE"))

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValueError, match="REQUEST_TIMEOUT"):
            validate_configuration(Settings(request_timeout=0))

    def test_negative_cache_ttl_rejected(self):
        with pytest.raises(ValueError, match="CACHE_TTL"):
            validate_configuration(Settings(cache_ttl=-1))
