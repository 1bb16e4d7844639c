"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Aggregation cycle started")

    log = get_logger(__name__)   # -> "marketagg.core.aggregator"
    log.warning("Source failed")

Log Levels (from most to least verbose):
    DEBUG    - Detailed diagnostic information (e.g., "Fetched 412 records")
    INFO     - General informational messages (e.g., "Aggregated 230 assets")
    WARNING  - Degraded but recovered (e.g., "coingecko fetch failed")
    ERROR    - Unexpected failures that were isolated (e.g., adapter bug)
    CRITICAL - Severe errors that may stop the service

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
    If not set, defaults to INFO.
"""

import logging
import sys
from typing import Optional


ROOT_LOGGER_NAME = "marketagg"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] marketagg Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level
except ImportError:
    # Settings not importable yet (partial initialization)
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger named "marketagg.<name>"

    Example:
        # In sources/binance/__init__.py:
        logger = get_logger(__name__)  # "marketagg.sources.binance"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Example:
        >>> set_log_level("DEBUG")
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(source: str, endpoint: str, params: dict = None) -> None:
    """
    Log an outgoing source API request with consistent formatting.

    Example:
        >>> log_api_request("coingecko", "/api/v3/coins/markets", {"vs_currency": "usd"})
        [DEBUG] API Request: coingecko /api/v3/coins/markets | Params: {'vs_currency': 'usd'}
    """
    if params:
        logger.debug(f"API Request: {source} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {source} {endpoint}")


def log_api_response(source: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log a source API response with status and timing information.

    Example:
        >>> log_api_response("binance", "/api/v3/ticker/24hr", 200, 0.342)
        [DEBUG] API Response: binance /api/v3/ticker/24hr | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {source} {endpoint} | Status: {status}{time_str}")


def log_source_failure(source: str, reason: str, message: str, unexpected: bool = False) -> None:
    """
    Log a source whose fetch failed and was replaced by an empty result.

    Expected failures (SourceFetchError) log at WARNING; anything else is an
    adapter bug and logs at ERROR with the active traceback.

    Example:
        >>> log_source_failure("coingecko", "rate_limit", "HTTP 429")
        [WARNING] Source failed: coingecko (rate_limit) | HTTP 429 | contributing no records
    """
    level = logging.ERROR if unexpected else logging.WARNING
    logger.log(
        level,
        f"Source failed: {source} ({reason}) | {message} | contributing no records",
        exc_info=unexpected
    )


logger.debug("Logging system initialized")
