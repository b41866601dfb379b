"""Prometheus exporter for function replicas, CPU and memory."""

import asyncio
import logging
import threading
from typing import Iterable, Iterator, Optional, Set, Tuple

import aiohttp
from prometheus_client import Gauge
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .clients.prometheus import QueryFetcher, encode_query
from .exceptions import QueryError
from .metrics import MetricOptions, MetricRegistry
from .models import FunctionStatus, VectorQueryResponse
from .join import sample_value
from .queries import DEFAULT_FUNCTION_NAMESPACE, cpu_usage_query, memory_usage_query


logger = logging.getLogger(__name__)


class Exporter(Collector):
    """
    Collector for the gateway function metrics.

    The watcher replaces the service snapshot; every scrape reads it once.
    The snapshot is an immutable tuple swapped under a lock, so a scrape sees
    either the old list or the new one, never a mix.

    A scrape is two steps: ``scrape()`` refreshes the replica, CPU and memory
    gauges from the snapshot and the metrics backend, then the registry
    renders ``collect()``. Backend errors are logged and never fail a scrape.
    """

    def __init__(
        self,
        metric_options: MetricOptions,
        fetcher: QueryFetcher,
        registry: Optional[MetricRegistry] = None,
        function_namespace: str = DEFAULT_FUNCTION_NAMESPACE,
    ):
        self.metric_options = metric_options
        self.fetcher = fetcher
        self.registry = registry
        self.function_namespace = function_namespace

        self._services: Tuple[FunctionStatus, ...] = ()
        self._services_lock = threading.Lock()
        # Every function_name label ever given a CPU/memory value.
        self._usage_labels: Set[str] = set()
        self._scrape_lock = asyncio.Lock()

    @property
    def services(self) -> Tuple[FunctionStatus, ...]:
        with self._services_lock:
            return self._services

    def set_services(self, services: Iterable[FunctionStatus]) -> None:
        """Replace the whole snapshot."""
        snapshot = tuple(services)
        with self._services_lock:
            self._services = snapshot

    def _metrics(self):
        options = self.metric_options
        return (
            options.gateway_function_invocation,
            options.gateway_functions_histogram,
            options.gateway_function_invocation_started,
            options.gateway_function_request_histogram,
            options.pod_cpu_usage_seconds_total,
            options.pod_memory_working_set_bytes,
            options.service_replicas_gauge,
        )

    def describe(self) -> Iterator[Metric]:
        for metric in self._metrics():
            yield from metric.describe()

    def collect(self) -> Iterator[Metric]:
        for metric in self._metrics():
            yield from metric.collect()

    def reset_service_gauges(self) -> None:
        """Republish replica counts and zero CPU/memory for known and previously seen services."""
        options = self.metric_options
        services = self.services

        options.service_replicas_gauge.clear()

        stale = set(self._usage_labels)
        for service in services:
            options.service_replicas_gauge.labels(service.service_name).set(service.replicas)
            stale.add(service.service_name)

        # Services dropped from the snapshot stay exported at zero.
        for label in stale:
            options.pod_cpu_usage_seconds_total.labels(label).set(0)
            options.pod_memory_working_set_bytes.labels(label).set(0)
        self._usage_labels = stale

    async def refresh_usage(self) -> None:
        """Set the CPU and memory gauges from one query each. A failed CPU query skips memory."""
        try:
            cpu = await self._fetch(cpu_usage_query(self.function_namespace))
        except QueryError as e:
            logger.error(f"Error querying cpu usage: {e}")
            return
        self._set_gauge(self.metric_options.pod_cpu_usage_seconds_total, cpu)

        try:
            memory = await self._fetch(memory_usage_query(self.function_namespace))
        except QueryError as e:
            logger.error(f"Error querying memory usage: {e}")
            return
        self._set_gauge(self.metric_options.pod_memory_working_set_bytes, memory)

    async def _fetch(self, query: str) -> VectorQueryResponse:
        try:
            return await self.fetcher.fetch(encode_query(query))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise QueryError(str(e)) from e

    def _set_gauge(self, gauge: Gauge, results: VectorQueryResponse) -> None:
        for sample in results.data.result:
            value = sample_value(sample)
            if value is None:
                continue
            label = f"{sample.metric.container}.{sample.metric.namespace}"
            gauge.labels(label).set(value)
            self._usage_labels.add(label)

    async def scrape(self) -> bytes:
        """Run one full collection pass and return the exposition text."""
        if self.registry is None:
            raise RuntimeError("Exporter has no registry to render")

        async with self._scrape_lock:
            self.reset_service_gauges()
            await self.refresh_usage()
            return self.registry.render()
