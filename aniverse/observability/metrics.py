"""
Metrics Collection with Prometheus.

Exposes business and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from aniverse.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    STAGE = "stage"
    ERROR_TYPE = "error_type"


class AniverseMetrics:
    """
    Centralized metrics for the AniVerse API.

    Covers:
    - HTTP requests (rate, duration, in flight)
    - Generations by outcome
    - Provider calls by stage
    - Credit movements and payments
    """

    def __init__(self) -> None:
        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "aniverse_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "aniverse_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "aniverse_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
        )

        self.http_requests_in_progress = Gauge(
            "aniverse_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Generation Metrics
        # ====================================================================
        self.generations_total = Counter(
            "aniverse_generations_total",
            "Generation requests by outcome",
            [MetricLabels.OUTCOME],
        )

        self.provider_call_duration_seconds = Histogram(
            "aniverse_provider_call_duration_seconds",
            "AI provider call duration in seconds",
            [MetricLabels.STAGE],
            buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0),
        )

        # ====================================================================
        # Credit / Payment Metrics
        # ====================================================================
        self.credits_debited_total = Counter(
            "aniverse_credits_debited_total",
            "Total credits consumed by generations",
        )

        self.credits_granted_total = Counter(
            "aniverse_credits_granted_total",
            "Total credits granted",
            ["reason"],
        )

        self.payments_total = Counter(
            "aniverse_payments_total",
            "Payment webhook events by status",
            ["status"],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "aniverse_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_generation(self, outcome: str) -> None:
        """Record a generation outcome (success, demo, denied, error)."""
        self.generations_total.labels(outcome=outcome).inc()

    def record_provider_call(self, stage: str, duration: float) -> None:
        self.provider_call_duration_seconds.labels(stage=stage).observe(duration)

    def record_credit_debit(self, amount: int = 1) -> None:
        self.credits_debited_total.inc(amount)

    def record_credit_grant(self, reason: str, amount: int) -> None:
        self.credits_granted_total.labels(reason=reason).inc(amount)

    def record_payment(self, status: str) -> None:
        self.payments_total.labels(status=status).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = AniverseMetrics()
