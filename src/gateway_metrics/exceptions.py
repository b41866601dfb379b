"""Exceptions raised at the HTTP client boundaries."""

from typing import Optional


class GatewayMetricsError(Exception):
    """Base exception for gateway metrics errors."""


class QueryError(GatewayMetricsError):
    """A Prometheus query could not be completed or parsed."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class ProviderError(GatewayMetricsError):
    """The function provider could not be listed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
