"""
Prometheus metrics collection and export for the digest pipeline.
"""
import time
from contextlib import contextmanager
from typing import Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server
import structlog

logger = structlog.get_logger()


class MetricsCollector:
    """Collect Prometheus metrics for digest runs.

    Uses its own registry so several collectors can coexist (tests, repeated
    CLI invocations in one process). The HTTP exporter only starts when
    `start_server` is called.
    """

    def __init__(self, port: Optional[int] = None):
        self.port = port
        self.start_time = time.time()
        self.registry = CollectorRegistry()
        self._init_metrics()

    def _init_metrics(self):
        """Initialize Prometheus metrics."""
        self.records_total = Counter(
            'records_total',
            'Activity records seen by the aggregator',
            ['status'],  # accepted, dropped
            registry=self.registry
        )

        self.work_units_total = Counter(
            'work_units_total',
            'Work units classified, by status',
            ['status'],  # done, in_progress, blocked, planned, unknown
            registry=self.registry
        )

        self.summarizer_fallbacks_total = Counter(
            'summarizer_fallbacks_total',
            'Summarizer hook results replaced by rule-based highlights',
            ['reason'],  # error, invalid, empty
            registry=self.registry
        )

        self.runs_total = Counter(
            'runs_total',
            'Total digest runs',
            ['status'],  # ok, failed
            registry=self.registry
        )

        self.pipeline_stage_duration = Histogram(
            'pipeline_stage_duration_seconds',
            'Duration of pipeline stages',
            ['stage'],  # collect, aggregate, annotate, assemble, render
            registry=self.registry
        )

    def start_server(self, port: Optional[int] = None) -> bool:
        """Start the HTTP exporter. Returns False if it could not bind."""
        port = port or self.port
        if not port:
            return False
        try:
            start_http_server(port, registry=self.registry)
            logger.info("Prometheus metrics server started", port=port)
            return True
        except OSError as e:
            logger.warning("Failed to start metrics server", port=port, error=str(e))
            return False

    def record_records(self, accepted: int, dropped: int) -> None:
        self.records_total.labels(status="accepted").inc(accepted)
        self.records_total.labels(status="dropped").inc(dropped)

    def record_work_unit(self, status: str) -> None:
        self.work_units_total.labels(status=status).inc()

    def record_summarizer_fallback(self, reason: str) -> None:
        self.summarizer_fallbacks_total.labels(reason=reason).inc()

    def record_run_total(self, status: str) -> None:
        self.runs_total.labels(status=status).inc()

    @contextmanager
    def time_stage(self, stage: str):
        """Measure a pipeline stage."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.pipeline_stage_duration.labels(stage=stage).observe(time.perf_counter() - start)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current sample value, 0.0 when the series does not exist yet."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0
