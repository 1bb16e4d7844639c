"""
Test Suite

Structure:
- tests/unit/: Tests for individual components (matcher, rate table,
  aggregator, sources, cache, config, HTTP API)

Uses pytest with pytest-asyncio for testing async functionality. Nothing here
touches the network: sources are faked in-module and HTTP clients are
monkeypatched or driven through httpx.MockTransport.
"""
