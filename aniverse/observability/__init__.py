"""
Observability module - Logging, Metrics, and Tracing.
"""

from aniverse.observability.logging import get_logger, log_context, setup_logging
from aniverse.observability.metrics import metrics
from aniverse.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
