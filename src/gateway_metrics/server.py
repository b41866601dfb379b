"""HTTP endpoints: enriched function listing, metrics scrape and health probes."""

import logging
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web

from .clients.prometheus import QueryFetcher
from .clients.provider import ProviderClient
from .enrichment import Handler, add_metrics_handler
from .exceptions import ProviderError
from .exporter import Exporter
from .queries import DEFAULT_FUNCTION_NAMESPACE
from .watcher import ServiceWatcher


logger = logging.getLogger(__name__)

EXPORTER_KEY = web.AppKey("exporter", Exporter)
WATCHER_KEY = web.AppKey("watcher", ServiceWatcher)


def provider_list_handler(provider: ProviderClient) -> Handler:
    """Forward a listing request to the provider and return its reply as-is."""

    async def handler(request: web.Request) -> web.Response:
        try:
            status, body = await provider.list_functions_raw(request.query_string)
        except ProviderError as e:
            logger.error(f"Error listing functions from provider: {e}")
            return web.Response(status=502, text="Can't reach service for: system/functions")
        return web.Response(status=status, body=body, content_type="application/json")

    return handler


async def metrics_handler(request: web.Request) -> web.Response:
    exporter = request.app[EXPORTER_KEY]
    body = await exporter.scrape()
    # CONTENT_TYPE_LATEST carries its own charset parameter.
    response = web.Response(body=body)
    response.headers["Content-Type"] = exporter.registry.content_type
    return response


async def health(request: web.Request) -> web.Response:
    """Basic health check endpoint."""
    watcher = request.app.get(WATCHER_KEY)
    health_data = {
        "service": "gateway-metrics",
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {}
    }

    if watcher is not None:
        watcher_health = await watcher.health_check()
        health_data["components"]["watcher"] = watcher_health
        if watcher_health["status"] in ("degraded", "stopped"):
            health_data["status"] = "degraded"

    return web.json_response(health_data, status=200)


async def ready(request: web.Request) -> web.Response:
    """Readiness probe: ready once the watcher has produced a snapshot."""
    watcher = request.app.get(WATCHER_KEY)
    is_ready = watcher is None or watcher.last_refresh is not None
    return web.json_response(
        {
            "ready": is_ready,
            "timestamp": datetime.now(timezone.utc).isoformat()
        },
        status=200 if is_ready else 503
    )


async def live(request: web.Request) -> web.Response:
    """Liveness probe."""
    return web.json_response(
        {
            "alive": True,
            "timestamp": datetime.now(timezone.utc).isoformat()
        },
        status=200
    )


def create_app(
    exporter: Exporter,
    fetcher: QueryFetcher,
    provider: ProviderClient,
    watcher: Optional[ServiceWatcher] = None,
    function_namespace: str = DEFAULT_FUNCTION_NAMESPACE,
) -> web.Application:
    """Assemble the aiohttp application."""
    app = web.Application()
    app[EXPORTER_KEY] = exporter
    if watcher is not None:
        app[WATCHER_KEY] = watcher

    list_functions = add_metrics_handler(
        provider_list_handler(provider), fetcher, function_namespace
    )

    app.router.add_get('/system/functions', list_functions)
    app.router.add_get('/metrics', metrics_handler)
    app.router.add_get('/health', health)
    app.router.add_get('/ready', ready)
    app.router.add_get('/live', live)

    return app


class GatewayMetricsServer:
    """Runs the aiohttp application on a TCP site."""

    def __init__(self, app: web.Application, host: str = "0.0.0.0", port: int = 8082):
        self.app = app
        self.host = host
        self.port = port
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None

    async def start(self) -> None:
        logger.info(f"Starting HTTP server on {self.host}:{self.port}")

        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()

        logger.info(f"HTTP server started on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        logger.info("Stopping HTTP server")

        if self.site:
            await self.site.stop()

        if self.runner:
            await self.runner.cleanup()

        logger.info("HTTP server stopped")
