"""
Gateway Metrics - live metrics for deployed functions.

This package enriches the provider's function listing with invocation counts,
average latency, CPU and memory usage queried from Prometheus, and exports
per-function gauges for Prometheus to scrape.
"""

__version__ = "1.0.0"
__author__ = "Gateway Metrics Team"
