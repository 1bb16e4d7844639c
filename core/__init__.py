"""
Core Package

Contains the source-agnostic aggregation engine:
- SourceInterface: Abstract base class defining the contract for all sources
- matcher: Name normalization, similarity scoring and anchor-based clustering
- ExchangeRateTable: Currency -> USD conversion factors
- Aggregator: Concurrent fetch, matching and folding into canonical assets
- Schemas: Pydantic models for raw records, canonical assets and reports

Concrete feeds live in the `sources` package and only depend on this layer.
"""
