"""
Observability Module for the Farm Sync Layer

Provides:
- Structured logging with correlation IDs
- Metrics collection (cache reads, invalidations, remote writes, durations)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
