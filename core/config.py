"""
Configuration Management Module

This module handles loading, validating, and providing access to application
configuration from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Converts comma-separated strings to lists (sources, CORS origins)
- Parses initial exchange rates ("EUR:0.92,GBP:0.79")
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    print(settings.sources_list)        # ['binance', 'coingecko']
    print(settings.exchange_rates_map)  # {'EUR': 0.92}
"""

import math
from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


KNOWN_SOURCES = ("binance", "coingecko")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        environment: Current environment (development, staging, production)
        debug: Enable debug mode
        log_level: Logging level
        app_host: Host address for the HTTP server
        app_port: Port number for the HTTP server
        request_timeout: Timeout for source HTTP requests in seconds
        cache_ttl: Lifetime of cached aggregation results in seconds
        enabled_sources: Comma-separated source names registered at startup
        binance_base_url: Base URL for the Binance spot API
        coingecko_base_url: Base URL for the CoinGecko API
        coingecko_per_page: Number of coins requested from CoinGecko
        exchange_rates: Initial rates as "CODE:rate" pairs (foreign units per USD)
        cors_origins: Comma-separated list of allowed CORS origins
    """

    # ============================================
    # Application Configuration
    # ============================================

    environment: str = Field(
        default="development",
        description="Application environment (development, staging, production)"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    app_host: str = Field(
        default="0.0.0.0",
        description="HTTP server host address"
    )

    app_port: int = Field(
        default=8000,
        description="HTTP server port"
    )

    # ============================================
    # Source Configuration
    # ============================================

    enabled_sources: str = Field(
        default="binance,coingecko",
        description="Comma-separated list of sources registered at startup"
    )

    binance_base_url: str = Field(
        default="https://api.binance.com",
        description="Binance spot API base URL"
    )

    coingecko_base_url: str = Field(
        default="https://api.coingecko.com",
        description="CoinGecko API base URL"
    )

    coingecko_per_page: int = Field(
        default=100,
        ge=1,
        le=250,
        description="Number of coins requested from CoinGecko markets endpoint"
    )

    request_timeout: int = Field(
        default=10,
        description="HTTP request timeout in seconds"
    )

    # ============================================
    # Aggregation Configuration
    # ============================================

    exchange_rates: str = Field(
        default="",
        description="Initial exchange rates as comma-separated CODE:rate pairs (foreign units per USD)"
    )

    cache_ttl: int = Field(
        default=300,
        description="Cache TTL for aggregated assets in seconds"
    )

    # ============================================
    # CORS Configuration
    # ============================================

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    # ============================================
    # Computed Properties
    # ============================================

    @property
    def sources_list(self) -> List[str]:
        """
        Convert comma-separated source names to a list.

        Example:
            >>> settings.sources_list
            ['binance', 'coingecko']
        """
        return [s.strip().lower() for s in self.enabled_sources.split(",") if s.strip()]

    @property
    def exchange_rates_map(self) -> Dict[str, float]:
        """
        Parse the exchange_rates string into a mapping.

        Raises:
            ValueError: If a pair is not "CODE:number"

        Example:
            >>> Settings(exchange_rates="eur:0.92, GBP:0.79").exchange_rates_map
            {'EUR': 0.92, 'GBP': 0.79}
        """
        rates: Dict[str, float] = {}
        for pair in self.exchange_rates.split(","):
            pair = pair.strip()
            if not pair:
                continue
            code, sep, value = pair.partition(":")
            if not sep or not code.strip():
                raise ValueError(f"Invalid exchange rate entry '{pair}', expected CODE:rate")
            try:
                rates[code.strip().upper()] = float(value)
            except ValueError:
                raise ValueError(f"Invalid rate in '{pair}': '{value}' is not a number")
        return rates

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert comma-separated CORS origins string to a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings to check (defaults to the global settings)

    Raises:
        ValueError: If configuration is invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    for name in config.sources_list:
        if name not in KNOWN_SOURCES:
            raise ValueError(
                f"Unknown source: '{name}'. "
                f"Must be one of: {', '.join(KNOWN_SOURCES)}"
            )

    for code, rate in config.exchange_rates_map.items():
        if not math.isfinite(rate) or rate <= 0:
            raise ValueError(f"Exchange rate for {code} must be a finite number > 0, got {rate}")

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    if config.log_level.upper() not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if config.request_timeout <= 0:
        raise ValueError(f"REQUEST_TIMEOUT must be positive, got {config.request_timeout}")

    if config.cache_ttl < 0:
        raise ValueError(f"CACHE_TTL cannot be negative, got {config.cache_ttl}")

    logger.info("Configuration validated successfully")
    logger.info(f"Sources: {', '.join(config.sources_list) or 'none'}")
    logger.info(f"Initial exchange rates: {config.exchange_rates_map or 'USD only'}")
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
    logger.info(f"Cache TTL: {config.cache_ttl}s")
