"""HTTP clients for the metrics backend and the function provider."""

from .prometheus import PrometheusQueryFetcher, QueryFetcher, fetch_or_empty
from .provider import BasicAuthCredentials, ProviderClient

__all__ = [
    "BasicAuthCredentials",
    "PrometheusQueryFetcher",
    "ProviderClient",
    "QueryFetcher",
    "fetch_or_empty",
]
