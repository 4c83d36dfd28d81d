"""
Metrics Collection

Prometheus metrics for source loads and tile requests. Every collector owns
its own CollectorRegistry so several workers (or tests) in one process never
clash over metric names.
"""

import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Union

import structlog
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class MetricsCollector:
    """
    Records load and retrieval metrics.

    Metric failures are logged and never interrupt the operation being
    measured.
    """

    def __init__(self, enabled: bool = True, namespace: str = "geojson_tiles"):
        """
        Args:
            enabled: Record metrics; a disabled collector accepts every call
                and does nothing
            namespace: Prefix of every metric name
        """
        self.enabled = enabled
        self.namespace = namespace

        self.logger = structlog.get_logger(collector_type="MetricsCollector")
        self.lock = threading.RLock()

        self.registry = CollectorRegistry()
        self.counters: Dict[str, Counter] = {}
        self.histograms: Dict[str, Histogram] = {}
        self.gauges: Dict[str, Gauge] = {}

        if self.enabled:
            self._init_metrics()

    def _init_metrics(self) -> None:
        self._create_metric(
            'counter', 'source_loads_total',
            'Total number of source loads',
            ['mode', 'status']
        )
        self._create_metric(
            'counter', 'stale_loads_total',
            'Loads discarded because a newer load of the source completed first'
        )
        self._create_metric(
            'counter', 'tile_requests_total',
            'Total number of tile requests',
            ['status']
        )
        self._create_metric(
            'histogram', 'source_load_duration_seconds',
            'Duration of source loads including fetch and index build',
            ['mode']
        )
        self._create_metric(
            'histogram', 'tile_retrieval_duration_seconds',
            'Duration of tile lookups against a built index'
        )
        self._create_metric(
            'gauge', 'registered_sources',
            'Number of sources with an installed index'
        )

    def _create_metric(
        self,
        metric_type: str,
        name: str,
        description: str,
        labels: Optional[List[str]] = None
    ) -> None:
        """Create a Prometheus metric in this collector's registry."""
        labels = labels or []
        full_name = f"{self.namespace}_{name}"

        if metric_type == 'counter':
            self.counters[name] = Counter(full_name, description, labels, registry=self.registry)
        elif metric_type == 'histogram':
            self.histograms[name] = Histogram(full_name, description, labels, registry=self.registry)
        elif metric_type == 'gauge':
            self.gauges[name] = Gauge(full_name, description, labels, registry=self.registry)
        else:
            raise ValueError(f"Unknown metric type: {metric_type}")

    def increment_counter(
        self,
        name: str,
        value: Union[int, float] = 1,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        if not self.enabled or name not in self.counters:
            return
        try:
            with self.lock:
                metric = self.counters[name]
                (metric.labels(**labels) if labels else metric).inc(value)
        except Exception as e:
            self.logger.error("Failed to increment counter", metric_name=name, error=str(e))

    def record_histogram(
        self,
        name: str,
        value: Union[int, float],
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        if not self.enabled or name not in self.histograms:
            return
        try:
            with self.lock:
                metric = self.histograms[name]
                (metric.labels(**labels) if labels else metric).observe(value)
        except Exception as e:
            self.logger.error("Failed to record histogram", metric_name=name, error=str(e))

    def set_gauge(
        self,
        name: str,
        value: Union[int, float],
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        if not self.enabled or name not in self.gauges:
            return
        try:
            with self.lock:
                metric = self.gauges[name]
                (metric.labels(**labels) if labels else metric).set(value)
        except Exception as e:
            self.logger.error("Failed to set gauge", metric_name=name, error=str(e))

    @contextmanager
    def timer(self, name: str, labels: Optional[Dict[str, str]] = None) -> Iterator[None]:
        """Record the duration of the ``with`` block in a histogram."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_histogram(name, time.perf_counter() - start, labels)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """
        Current value of a counter or gauge sample.

        Args:
            name: Metric name without namespace; counters use the ``_total``
                sample name they were created with
            labels: Label values of the sample

        Returns:
            The sample value, or None if it was never recorded
        """
        return self.registry.get_sample_value(f"{self.namespace}_{name}", labels or {})

    def export(self) -> bytes:
        """Metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry)
