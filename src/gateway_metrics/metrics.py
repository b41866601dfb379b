"""Prometheus metric definitions and one-time registration."""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from prometheus_client.registry import Collector


logger = logging.getLogger(__name__)

REQUEST_SECONDS_BUCKETS = (.5, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 15)


@dataclass
class MetricOptions:
    """Metrics exposed by the exporter.

    None of them is registered on its own; the exporter collects them.
    """
    gateway_function_invocation: Counter
    gateway_functions_histogram: Histogram
    gateway_function_invocation_started: Counter
    service_replicas_gauge: Gauge
    gateway_function_request_histogram: Histogram
    pod_cpu_usage_seconds_total: Gauge
    pod_memory_working_set_bytes: Gauge


def build_metric_options() -> MetricOptions:
    """Build the gateway metrics, unregistered."""
    return MetricOptions(
        gateway_functions_histogram=Histogram(
            'gateway_functions_seconds',
            'Function time taken',
            ['function_name', 'code'],
            registry=None,
        ),
        gateway_function_invocation=Counter(
            'invocation_total',
            'Function metrics',
            ['function_name', 'code'],
            namespace='gateway',
            subsystem='function',
            registry=None,
        ),
        service_replicas_gauge=Gauge(
            'service_count',
            'Current count of replicas for function',
            ['function_name'],
            namespace='gateway',
            registry=None,
        ),
        gateway_function_invocation_started=Counter(
            'invocation_started',
            'The total number of function HTTP requests started.',
            ['function_name'],
            namespace='gateway',
            subsystem='function',
            registry=None,
        ),
        gateway_function_request_histogram=Histogram(
            'gateway_function_request_seconds',
            'Function request time taken',
            ['function_name'],
            buckets=REQUEST_SECONDS_BUCKETS,
            registry=None,
        ),
        pod_cpu_usage_seconds_total=Gauge(
            'cpu_usage_seconds_total',
            'CPU seconds consumed by all the replicas of a given function.',
            ['function_name'],
            subsystem='pod',
            registry=None,
        ),
        pod_memory_working_set_bytes=Gauge(
            'memory_working_set_bytes',
            'Bytes of RAM consumed by all the replicas of a given function',
            ['function_name'],
            subsystem='pod',
            registry=None,
        ),
    )


class MetricRegistry:
    """
    The collector registry served on the scrape endpoint.

    Created once by the service bootstrap and handed to whoever needs it.
    ``register_exporter`` only registers on its first call; later calls are
    no-ops, so repeated wiring cannot raise duplicate-timeseries errors.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._lock = threading.Lock()
        self._exporter: Optional[Collector] = None

    @property
    def registered(self) -> bool:
        return self._exporter is not None

    def register_exporter(self, exporter: Collector) -> bool:
        """Register ``exporter`` once. Returns True only for the call that registered."""
        with self._lock:
            if self._exporter is not None:
                if self._exporter is not exporter:
                    logger.warning("Exporter already registered, ignoring a second exporter")
                return False
            self.registry.register(exporter)
            self._exporter = exporter
            logger.info("Exporter registered with metrics registry")
            return True

    def render(self) -> bytes:
        """Render every registered collector in the text exposition format."""
        return generate_latest(self.registry)

    content_type = CONTENT_TYPE_LATEST
