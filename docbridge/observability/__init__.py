"""
Observability components.

Provides structured logging, per-service metrics collection and health checks.
"""

from .health import HealthChecker, HealthCheckResult, HealthStatus, check_backend_health
from .logging import (
    ContextualLoggerAdapter,
    bind_data_context,
    get_correlation_id,
    get_logger,
    get_logging_context,
    log_operation,
    operation_scope,
)
from .metrics import MetricsCollector, OperationMetrics, timed_operation

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationMetrics",
    "timed_operation",
    # Logging
    "operation_scope",
    "bind_data_context",
    "get_correlation_id",
    "get_logging_context",
    "ContextualLoggerAdapter",
    "get_logger",
    "log_operation",
    # Health
    "HealthStatus",
    "HealthCheckResult",
    "HealthChecker",
    "check_backend_health",
]
