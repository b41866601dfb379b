"""Prometheus instant-query client."""

import asyncio
import logging
from typing import Protocol
from urllib.parse import quote_plus

import aiohttp
from pydantic import ValidationError
from yarl import URL

from ..exceptions import QueryError
from ..models import VectorQueryResponse


logger = logging.getLogger(__name__)


class QueryFetcher(Protocol):
    """Anything that can run an already URL-encoded instant query."""

    async def fetch(self, encoded_query: str) -> VectorQueryResponse:
        ...


class PrometheusQueryFetcher:
    """
    Runs instant queries against the Prometheus HTTP API.

    Every call opens its own session with keep-alive disabled, so no
    connection outlives a single query. There is no retry: a failed query
    raises QueryError and the caller decides what to do with it.
    """

    def __init__(self, base_url: str, timeout_seconds: float = 5.0):
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_host(cls, host: str, port: int, scheme: str = "http",
                  timeout_seconds: float = 5.0) -> "PrometheusQueryFetcher":
        return cls(f"{scheme}://{host}:{port}", timeout_seconds)

    async def fetch(self, encoded_query: str) -> VectorQueryResponse:
        url = URL(f"{self.base_url}/api/v1/query?query={encoded_query}", encoded=True)

        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                connector=aiohttp.TCPConnector(force_close=True),
            ) as session:
                async with session.get(url) as response:
                    raw = await response.read()
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise QueryError(f"Prometheus request failed: {e!r}") from e

        # Decoded only for error reporting; validation runs on the raw bytes.
        body = raw.decode(errors="replace")

        if status != 200:
            raise QueryError(
                f"Unexpected status code from Prometheus: {status}, body: {body}",
                status=status,
                body=body,
            )

        try:
            return VectorQueryResponse.model_validate_json(raw)
        except ValidationError as e:
            raise QueryError(
                f"Error unmarshalling Prometheus response: {body}, error: {e}",
                status=status,
                body=body,
            ) from e


def encode_query(query: str) -> str:
    """URL-encode a PromQL expression for use as the `query` parameter."""
    return quote_plus(query)


async def fetch_or_empty(fetcher: QueryFetcher, query: str, label: str) -> VectorQueryResponse:
    """
    Run `query` and map any failure to an empty result.

    This is the only place query errors are absorbed; the merge functions
    always receive a response.
    """
    try:
        return await fetcher.fetch(encode_query(query))
    except (QueryError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Error querying Prometheus for {label}: {e}", extra={"metric_query": label})
        return VectorQueryResponse.empty()
