"""
Observability Module for the Record Pipeline

Provides:
- Structured logging with correlation IDs
- Metrics collection (batches, record outcomes, processing times)
"""

from core.observability.metrics import (
    PipelineMetrics,
    get_metrics,
    record_batch_processed,
    record_batch_failed,
    record_processing_time,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "PipelineMetrics",
    "get_metrics",
    "record_batch_processed",
    "record_batch_failed",
    "record_processing_time",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
