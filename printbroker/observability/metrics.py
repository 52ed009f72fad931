"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from printbroker.constants import (
    METRIC_CLAIMS,
    METRIC_CLEANUP_DELETED,
    METRIC_JOBS_FINISHED,
    METRIC_JOBS_SUBMITTED,
    METRIC_PRINT_DURATION,
    METRIC_PROVISIONS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the print broker.

    Collects metrics for:
    - Job submissions and terminal outcomes
    - Print duration
    - Claims won and lost
    - Destination provisioning
    - Cleanup deletions
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_submitted = Counter(
            METRIC_JOBS_SUBMITTED,
            "Total number of print jobs submitted",
            ["client_id"],
            registry=self._registry,
        )

        self.jobs_finished = Counter(
            METRIC_JOBS_FINISHED,
            "Total number of print jobs reaching a terminal status",
            ["client_id", "status"],
            registry=self._registry,
        )

        self.print_duration = Histogram(
            METRIC_PRINT_DURATION,
            "Time from claim to terminal status in seconds",
            ["client_id", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        # outcome: won | lost
        self.claims = Counter(
            METRIC_CLAIMS,
            "Total number of claim attempts",
            ["client_id", "outcome"],
            registry=self._registry,
        )

        # outcome: success | failure
        self.provisions = Counter(
            METRIC_PROVISIONS,
            "Total number of destination provisioning attempts",
            ["protocol", "outcome"],
            registry=self._registry,
        )

        # kind: job | blob
        self.cleanup_deleted = Counter(
            METRIC_CLEANUP_DELETED,
            "Total number of records removed by cleanup",
            ["kind"],
            registry=self._registry,
        )

    def record_job_submitted(self, client_id: str) -> None:
        """Record a job submission."""
        self.jobs_submitted.labels(client_id=client_id).inc()

    def record_job_finished(
        self,
        client_id: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a job reaching a terminal status."""
        self.jobs_finished.labels(client_id=client_id, status=status).inc()
        self.print_duration.labels(client_id=client_id, status=status).observe(
            duration_seconds
        )

    def record_claim(self, client_id: str, won: bool) -> None:
        """Record a claim attempt."""
        self.claims.labels(client_id=client_id, outcome="won" if won else "lost").inc()

    def record_provision(self, protocol: str, success: bool) -> None:
        """Record a provisioning attempt."""
        self.provisions.labels(
            protocol=protocol,
            outcome="success" if success else "failure",
        ).inc()

    def record_cleanup(self, jobs: int, blobs: int) -> None:
        """Record cleanup deletions."""
        if jobs:
            self.cleanup_deleted.labels(kind="job").inc(jobs)
        if blobs:
            self.cleanup_deleted.labels(kind="blob").inc(blobs)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
