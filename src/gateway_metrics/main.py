"""Gateway Metrics Service - enriched function listings and Prometheus export."""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from .clients.prometheus import PrometheusQueryFetcher
from .clients.provider import BasicAuthCredentials, ProviderClient
from .config.settings import GatewayMetricsSettings, load_config
from .exporter import Exporter
from .metrics import MetricRegistry, build_metric_options
from .server import GatewayMetricsServer, create_app
from .utils.logging import setup_logging
from .watcher import ServiceWatcher


logger = logging.getLogger(__name__)


class GatewayMetricsService:
    """Wires the exporter, watcher and HTTP server together."""

    def __init__(self, config: GatewayMetricsSettings, registry: Optional[MetricRegistry] = None):
        self.config = config
        self.registry = registry if registry is not None else MetricRegistry()
        self._shutdown_event = asyncio.Event()

        self.fetcher = PrometheusQueryFetcher.from_host(
            config.prometheus.host,
            config.prometheus.port,
            scheme=config.prometheus.scheme,
            timeout_seconds=config.prometheus.timeout_seconds,
        )

        credentials = None
        if config.provider.username:
            credentials = BasicAuthCredentials(config.provider.username, config.provider.password or "")
        self.provider = ProviderClient(
            config.provider.url,
            credentials=credentials,
            timeout_seconds=config.provider.timeout_seconds,
        )

        self.exporter = Exporter(
            build_metric_options(),
            self.fetcher,
            registry=self.registry,
            function_namespace=config.function_namespace,
        )
        self.registry.register_exporter(self.exporter)

        self.watcher: Optional[ServiceWatcher] = None
        if config.watcher.enabled:
            self.watcher = ServiceWatcher(
                self.exporter,
                self.provider,
                interval_seconds=config.watcher.interval_seconds,
                default_namespace=config.provider.default_namespace,
            )

        self.app = create_app(
            self.exporter,
            self.fetcher,
            self.provider,
            watcher=self.watcher,
            function_namespace=config.function_namespace,
        )
        self.server = GatewayMetricsServer(self.app, config.server.host, config.server.port)

        logger.info("Gateway Metrics Service initialized")

    async def start(self) -> None:
        """Start the service and block until a shutdown signal arrives."""
        logger.info("Starting Gateway Metrics Service")

        self._setup_signal_handlers()

        await self.server.start()
        if self.watcher:
            await self.watcher.start()

        await self._shutdown_event.wait()

        logger.info("Shutting down Gateway Metrics Service")
        if self.watcher:
            await self.watcher.stop()
        await self.server.stop()

        logger.info("Gateway Metrics Service stopped")

    def shutdown(self) -> None:
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._on_signal, signum)
            except NotImplementedError:
                # Windows event loops have no signal handler support.
                signal.signal(signum, lambda s, frame: self._on_signal(s))

    def _on_signal(self, signum: int) -> None:
        logger.info(f"Received signal {signum}, initiating shutdown")
        self.shutdown()


async def main() -> None:
    """Main entry point."""
    config = load_config(os.getenv("CONFIG_FILE", "config/local.yaml"))
    setup_logging(config.logging, config.service_name)

    try:
        service = GatewayMetricsService(config)
        await service.start()
    except Exception as e:
        logger.error(f"Service failed: {e}", exc_info=True)
        sys.exit(1)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
