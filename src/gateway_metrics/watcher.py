"""Periodic refresh of the exporter's service snapshot."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .clients.provider import ProviderClient
from .exceptions import ProviderError
from .exporter import Exporter
from .models import FunctionStatus


logger = logging.getLogger(__name__)


class ServiceWatcher:
    """Lists functions from the provider on a fixed interval and hands them to the exporter."""

    def __init__(
        self,
        exporter: Exporter,
        provider: ProviderClient,
        interval_seconds: float = 5.0,
        default_namespace: str = "",
    ):
        self.exporter = exporter
        self.provider = provider
        self.interval_seconds = interval_seconds
        self.default_namespace = default_namespace

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.last_refresh: Optional[datetime] = None
        self.refresh_errors = 0

        logger.info(f"Service watcher initialized with interval: {interval_seconds}s")

    async def start(self) -> None:
        """Start the background ticking task."""
        if self._running:
            logger.warning("Service watcher already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._watch_loop())
        logger.info("Service watcher started")

    async def stop(self) -> None:
        """Stop the watcher and wait for the task to finish."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Service watcher stopped")

    async def _watch_loop(self) -> None:
        # The first refresh happens one interval after start.
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.refresh()
            except Exception as e:
                self.refresh_errors += 1
                logger.error(f"Service watcher tick failed: {e}", exc_info=True)

    async def refresh(self) -> Optional[List[FunctionStatus]]:
        """
        Run one tick: list namespaces, fetch their functions and replace the snapshot.

        Returns the new snapshot, or None when the snapshot was left unchanged.
        """
        try:
            namespaces = await self.provider.get_namespaces()
        except ProviderError as e:
            logger.error(f"Unable to list namespaces: {e}")
            namespaces = []

        services: List[FunctionStatus] = []

        # Providers like faasd have no namespaces.
        if not namespaces:
            try:
                services = await self.provider.get_functions(self.default_namespace)
            except ProviderError as e:
                logger.error(f"Unable to list functions: {e}")
                self.refresh_errors += 1
                return None
        else:
            for namespace in namespaces:
                try:
                    services.extend(await self.provider.get_functions(namespace))
                except ProviderError as e:
                    logger.error(
                        f"Unable to list functions in namespace {namespace}: {e}",
                        extra={"namespace": namespace},
                    )
                    self.refresh_errors += 1

        self.exporter.set_services(services)
        self.last_refresh = datetime.now(timezone.utc)
        logger.debug(f"Service snapshot refreshed: {len(services)} functions in {len(namespaces)} namespaces")
        return services

    async def health_check(self) -> Dict[str, Any]:
        """Report the watcher state."""
        status = "healthy" if self._running else "stopped"
        if self._running and self.last_refresh is None and self.refresh_errors > 0:
            status = "degraded"

        return {
            "status": status,
            "interval_seconds": self.interval_seconds,
            "services": len(self.exporter.services),
            "refresh_errors": self.refresh_errors,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
            "last_check": datetime.now(timezone.utc).isoformat()
        }
