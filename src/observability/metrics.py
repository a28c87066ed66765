"""
Prometheus metrics for the verification service.

Defines and exposes metrics for:
- Report submissions and rejections
- Published status transitions
- Votes and vote flips
- Confidence score distribution
- Batch job outcomes and durations

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)

# Buckets for batch job durations (in seconds)
JOB_DURATION_BUCKETS = (0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 300.0, 900.0, 3600.0)

SCORE_BUCKETS = (10, 20, 30, 40, 50, 60, 70, 80, 90, 100)


class MetricsCollector:
    """
    Prometheus metrics collector for provider-verify.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_submission("CROWDSOURCE", latency=0.02)
        metrics.record_rejection("duplicate_ip")
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Submissions
        self.reports_submitted = Counter(
            "provider_verify_reports_submitted_total",
            "Total reports accepted into the verification log",
            ["source"],
        )

        self.submissions_rejected = Counter(
            "provider_verify_submissions_rejected_total",
            "Total report submissions rejected",
            ["reason"],  # duplicate_ip, duplicate_identity, not_found, storage
        )

        self.status_transitions = Counter(
            "provider_verify_status_transitions_total",
            "Published acceptance status changes",
            ["from_status", "to_status"],
        )

        self.operation_latency = Histogram(
            "provider_verify_operation_latency_seconds",
            "Latency of core verification operations",
            ["operation"],
            buckets=LATENCY_BUCKETS,
        )

        # Votes
        self.votes_recorded = Counter(
            "provider_verify_votes_total",
            "Total votes by direction and outcome",
            ["direction", "outcome"],  # outcome: new, flipped, duplicate
        )

        # Confidence
        self.confidence_scores = Histogram(
            "provider_verify_confidence_score",
            "Distribution of computed confidence scores",
            ["trigger"],  # submission, vote, decay
            buckets=SCORE_BUCKETS,
        )

        # Batch jobs
        self.batch_job_runs = Counter(
            "provider_verify_batch_job_runs_total",
            "Batch job runs by outcome",
            ["job", "outcome"],  # outcome: completed, cancelled, dry_run
        )

        self.batch_job_records = Counter(
            "provider_verify_batch_job_records_total",
            "Rows touched by batch jobs",
            ["job", "result"],
        )

        self.batch_job_duration = Histogram(
            "provider_verify_batch_job_duration_seconds",
            "Wall-clock duration of batch job runs",
            ["job"],
            buckets=JOB_DURATION_BUCKETS,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on (default from settings)
        """
        settings = get_settings()
        port = port or settings.metrics_port

        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    # Convenience methods

    def record_submission(self, source: str, latency: float | None = None) -> None:
        """
        Record an accepted report.

        Args:
            source: Verification source channel
            latency: Optional end-to-end submit latency in seconds
        """
        self.reports_submitted.labels(source=source).inc()
        if latency is not None:
            self.operation_latency.labels(operation="submit").observe(latency)

    def record_rejection(self, reason: str) -> None:
        self.submissions_rejected.labels(reason=reason).inc()

    def record_status_transition(self, from_status: str, to_status: str) -> None:
        self.status_transitions.labels(
            from_status=from_status,
            to_status=to_status,
        ).inc()

    def record_vote(self, direction: str, outcome: str, latency: float | None = None) -> None:
        """
        Record a vote attempt.

        Args:
            direction: up or down
            outcome: new, flipped or duplicate
            latency: Optional vote latency in seconds
        """
        self.votes_recorded.labels(direction=direction, outcome=outcome).inc()
        if latency is not None:
            self.operation_latency.labels(operation="vote").observe(latency)

    def record_confidence(self, score: float, trigger: str) -> None:
        self.confidence_scores.labels(trigger=trigger).observe(score)

    def record_batch_job(
        self,
        job: str,
        outcome: str,
        duration: float,
        records: dict[str, int] | None = None,
    ) -> None:
        """
        Record a finished batch job run.

        Args:
            job: Job name (decay, cleanup)
            outcome: completed, cancelled or dry_run
            duration: Wall-clock seconds
            records: Row counts keyed by result label
        """
        self.batch_job_runs.labels(job=job, outcome=outcome).inc()
        self.batch_job_duration.labels(job=job).observe(duration)
        for result, count in (records or {}).items():
            if count:
                self.batch_job_records.labels(job=job, result=result).inc(count)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
