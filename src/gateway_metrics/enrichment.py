"""Wraps a function-listing handler and adds live metrics to its response."""

import json
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from aiohttp import web
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .clients.prometheus import QueryFetcher, fetch_or_empty
from .join import mix_average_time, mix_cpu, mix_invocations, mix_memory
from .models import FunctionStatus
from .queries import (
    DEFAULT_FUNCTION_NAMESPACE,
    average_request_time_query,
    cpu_usage_query,
    invocation_total_query,
    memory_usage_query,
)


logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

PARSE_ERROR_MESSAGE = "Unable to parse list of functions from provider"
SERIALIZE_ERROR_MESSAGE = "Error writing response after adding metrics"

_FUNCTION_LIST = TypeAdapter(List[FunctionStatus])


async def _capture(upstream: Handler, request: web.Request) -> Tuple[int, Optional[bytes]]:
    """Run the upstream handler and return its status and buffered body, if any."""
    try:
        response = await upstream(request)
    except web.HTTPException as exc:
        return exc.status, exc.text.encode() if exc.text is not None else None

    body = getattr(response, "body", None)
    if not isinstance(body, (bytes, bytearray)):
        # Streamed or payload-backed responses leave nothing to enrich.
        return response.status, None
    return response.status, bytes(body)


async def add_metrics(
    functions: List[FunctionStatus],
    fetcher: QueryFetcher,
    function_namespace: str = DEFAULT_FUNCTION_NAMESPACE,
) -> List[FunctionStatus]:
    """
    Merge invocation, CPU, memory and latency metrics onto ``functions``.

    Only the invocation query is scoped to a namespace, the namespace of the
    first function. CPU and memory are pinned to ``function_namespace`` and
    latency is not filtered at all. Each query fails open: an error leaves
    its fields at zero and the remaining queries still run.
    """
    if not functions:
        return functions

    namespace = functions[0].namespace

    results = await fetch_or_empty(fetcher, invocation_total_query(namespace), "invocations")
    mix_invocations(functions, results)

    results = await fetch_or_empty(fetcher, cpu_usage_query(function_namespace), "cpu")
    mix_cpu(functions, results)

    results = await fetch_or_empty(fetcher, memory_usage_query(function_namespace), "memory")
    mix_memory(functions, results)

    results = await fetch_or_empty(fetcher, average_request_time_query(), "average time")
    mix_average_time(functions, results)

    return functions


def add_metrics_handler(
    upstream: Handler,
    fetcher: QueryFetcher,
    function_namespace: str = DEFAULT_FUNCTION_NAMESPACE,
) -> Handler:
    """Return a handler that calls ``upstream`` and enriches its function list."""

    async def handler(request: web.Request) -> web.StreamResponse:
        status, upstream_body = await _capture(upstream, request)

        if upstream_body is None:
            # Nothing to forward; the client gets an empty reply.
            logger.warning("Upstream call had empty body.")
            return web.Response()

        if status != 200:
            logger.warning(
                f"List functions responded with code {status}, "
                f"body: {upstream_body.decode(errors='replace')}"
            )
            return web.Response(status=status, body=upstream_body, content_type="text/plain")

        try:
            parsed = _FUNCTION_LIST.validate_json(upstream_body)
        except ValidationError as e:
            logger.error(
                f"Metrics upstream error: {e}, value: {upstream_body.decode(errors='replace')}"
            )
            return web.Response(status=500, text=PARSE_ERROR_MESSAGE)

        functions = [function.with_zeroed_metrics() for function in parsed]
        await add_metrics(functions, fetcher, function_namespace)

        try:
            bytes_out = json.dumps(
                [function.to_json_dict() for function in functions], allow_nan=False
            )
        except (TypeError, ValueError, PydanticSerializationError) as e:
            logger.error(f"Error serializing functions: {e}")
            return web.Response(status=500, text=SERIALIZE_ERROR_MESSAGE)

        return web.Response(status=200, text=bytes_out, content_type="application/json")

    return handler
