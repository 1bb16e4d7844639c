"""
FastAPI Application Package

HTTP entry point serving the aggregator's canonical assets.
"""
