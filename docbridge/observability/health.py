"""
Health check utilities for DOCBRIDGE.

Provides health check functions for monitoring the connected backend.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..exceptions import DocBridgeError

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    name: str
    status: HealthStatus
    message: str
    details: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class HealthChecker:
    """
    Runs registered health checks and folds them into one overall status.
    """

    def __init__(self):
        self._checks: list[Callable[[], Awaitable[HealthCheckResult]]] = []

    def register_check(self, check_func: Callable[[], Awaitable[HealthCheckResult]]) -> None:
        """
        Register a health check function.

        Args:
            check_func: Async function that returns HealthCheckResult
        """
        self._checks.append(check_func)

    async def check_all(self) -> dict[str, Any]:
        """
        Run all registered health checks.

        Returns:
            Dictionary with overall status and individual check results
        """
        results: list[HealthCheckResult] = []

        for check_func in self._checks:
            try:
                results.append(await check_func())
            except (RuntimeError, ValueError, TypeError, AttributeError, OSError) as e:
                name = getattr(check_func, "__name__", "check")
                logger.error(f"Health check {name} failed: {e}", exc_info=True)
                results.append(
                    HealthCheckResult(
                        name=name,
                        status=HealthStatus.UNKNOWN,
                        message=f"Check failed: {str(e)}",
                    )
                )

        statuses = [r.status for r in results]
        if HealthStatus.UNHEALTHY in statuses:
            overall_status = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall_status = HealthStatus.DEGRADED
        elif statuses and all(s == HealthStatus.HEALTHY for s in statuses):
            overall_status = HealthStatus.HEALTHY
        else:
            overall_status = HealthStatus.UNKNOWN

        return {
            "status": overall_status.value,
            "timestamp": datetime.now().isoformat(),
            "checks": [r.to_dict() for r in results],
        }


async def check_backend_health(
    backend: Any | None, timeout_seconds: float = 5.0
) -> HealthCheckResult:
    """
    Check that the backend session is connected and answers a ping.

    Args:
        backend: DocumentBackend instance
        timeout_seconds: Timeout for the ping

    Returns:
        HealthCheckResult
    """
    if backend is None or not backend.connected:
        return HealthCheckResult(
            name="backend",
            status=HealthStatus.UNHEALTHY,
            message="Backend not connected",
        )

    try:
        await asyncio.wait_for(backend.ping(), timeout=timeout_seconds)
        return HealthCheckResult(
            name="backend",
            status=HealthStatus.HEALTHY,
            message=f"{backend.name} backend is healthy",
            details={"backend": backend.name, "timeout_seconds": timeout_seconds},
        )
    except asyncio.TimeoutError:
        return HealthCheckResult(
            name="backend",
            status=HealthStatus.UNHEALTHY,
            message=f"{backend.name} ping timed out after {timeout_seconds}s",
        )
    except DocBridgeError as e:
        return HealthCheckResult(
            name="backend",
            status=HealthStatus.UNHEALTHY,
            message=f"{backend.name} health check failed: {e.message}",
        )
