"""Client for the function provider's listing endpoints."""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import aiohttp
from pydantic import TypeAdapter, ValidationError

from ..exceptions import ProviderError
from ..models import FunctionStatus


logger = logging.getLogger(__name__)

_NAMESPACES = TypeAdapter(List[str])
_FUNCTIONS = TypeAdapter(List[FunctionStatus])


def _printable(body: bytes) -> str:
    return body.decode(errors="replace")


@dataclass
class BasicAuthCredentials:
    """Credentials sent with every provider request."""
    user: str
    password: str


class ProviderClient:
    """
    Lists namespaces and functions from the provider.

    Like the query client, each request gets a fresh session with keep-alive
    disabled and a short total timeout.
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional[BasicAuthCredentials] = None,
        timeout_seconds: float = 5.0,
    ):
        self.base_url = base_url.rstrip('/')
        self.credentials = credentials
        self.timeout_seconds = timeout_seconds

    def _auth(self) -> Optional[aiohttp.BasicAuth]:
        if self.credentials is None:
            return None
        return aiohttp.BasicAuth(self.credentials.user, self.credentials.password)

    async def _get(self, path: str, params: Optional[dict] = None) -> Tuple[int, bytes]:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                connector=aiohttp.TCPConnector(force_close=True),
            ) as session:
                async with session.get(url, params=params, auth=self._auth()) as response:
                    return response.status, await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderError(f"Request to {url} failed: {e!r}") from e

    async def list_functions_raw(self, query_string: str = "") -> Tuple[int, bytes]:
        """Proxy a listing request, returning the provider's (status, body) untouched."""
        path = "/system/functions"
        if query_string:
            path = f"{path}?{query_string}"
        return await self._get(path)

    async def get_namespaces(self) -> List[str]:
        """List namespaces. A 404 means the provider has no namespace support."""
        status, body = await self._get("/system/namespaces")

        if status == 404:
            return []
        if status != 200:
            raise ProviderError(
                f"Unexpected status listing namespaces: {status}, body: {_printable(body)}",
                status=status,
            )

        try:
            return _NAMESPACES.validate_json(body)
        except ValidationError as e:
            raise ProviderError(
                f"Error unmarshalling response: {_printable(body)}, error: {e}", status=status
            ) from e

    async def get_functions(self, namespace: str = "") -> List[FunctionStatus]:
        """List the functions of one namespace, or the provider default when empty."""
        params = {"namespace": namespace} if namespace else None
        status, body = await self._get("/system/functions", params=params)

        if status != 200:
            raise ProviderError(
                f"Unexpected status listing functions in {namespace or 'default namespace'}: "
                f"{status}, body: {_printable(body)}",
                status=status,
            )

        try:
            return _FUNCTIONS.validate_json(body)
        except ValidationError as e:
            raise ProviderError(
                f"Error unmarshalling response: {_printable(body)}, error: {e}", status=status
            ) from e
