"""Prometheus metrics for ingestion, analysis and the job queue."""

from typing import Iterable, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info, generate_latest
from prometheus_client.core import REGISTRY

from .. import __version__
from ..config import config


class MetricsCollector:
    """Centralized metrics collection for the risk profiler."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics collector."""
        self.registry = registry or REGISTRY
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up all Prometheus metrics."""
        # Job queue metrics
        self.jobs_total = Counter(
            'code_risk_jobs_total',
            'Total jobs finished',
            ['queue', 'status'],
            registry=self.registry
        )

        self.job_retries_total = Counter(
            'code_risk_job_retries_total',
            'Total job retry attempts',
            ['queue'],
            registry=self.registry
        )

        self.job_duration_seconds = Histogram(
            'code_risk_job_duration_seconds',
            'Job duration in seconds, across all attempts',
            ['queue'],
            buckets=[0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0],
            registry=self.registry
        )

        self.queue_depth = Gauge(
            'code_risk_queue_depth',
            'Jobs waiting in a queue',
            ['queue'],
            registry=self.registry
        )

        # Ingestion metrics
        self.files_ingested_total = Counter(
            'code_risk_files_ingested_total',
            'Source files stored during ingestion',
            registry=self.registry
        )

        self.files_skipped_total = Counter(
            'code_risk_files_skipped_total',
            'Source files skipped during ingestion',
            ['reason'],
            registry=self.registry
        )

        # Analysis metrics
        self.findings_total = Counter(
            'code_risk_findings_total',
            'Security findings produced',
            ['severity'],
            registry=self.registry
        )

        self.entities_total = Counter(
            'code_risk_entities_total',
            'Code entities extracted',
            registry=self.registry
        )

        self.analysis_duration_seconds = Histogram(
            'code_risk_analysis_duration_seconds',
            'Single analysis run duration in seconds',
            buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 600.0],
            registry=self.registry
        )

        self.system_info = Info(
            'code_risk_system',
            'Risk profiler build information',
            registry=self.registry
        )
        self.system_info.info({
            'version': __version__,
            'environment': config.app.environment,
        })

    def record_job(self, queue: str, status: str, duration: float):
        """Record a job reaching a terminal state."""
        self.jobs_total.labels(queue=queue, status=status).inc()
        self.job_duration_seconds.labels(queue=queue).observe(duration)

    def record_retry(self, queue: str):
        """Record a retry attempt."""
        self.job_retries_total.labels(queue=queue).inc()

    def update_queue_depth(self, queue: str, size: int):
        """Update number of waiting jobs."""
        self.queue_depth.labels(queue=queue).set(size)

    def record_file_ingested(self):
        """Record one stored file."""
        self.files_ingested_total.inc()

    def record_file_skipped(self, reason: str):
        """Record one skipped file."""
        self.files_skipped_total.labels(reason=reason).inc()

    def record_analysis(self, duration: float, entity_count: int, severities: Iterable[str]):
        """Record the outcome of one analysis run."""
        self.analysis_duration_seconds.observe(duration)
        self.entities_total.inc(entity_count)
        for severity in severities:
            self.findings_total.labels(severity=severity).inc()

    def get_metrics(self) -> str:
        """Get all metrics in Prometheus format."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
metrics = MetricsCollector()
