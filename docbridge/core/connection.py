"""
Connection management for DOCBRIDGE.

Wraps one backend session with a single-flight connect: concurrent connect()
calls share one in-flight attempt and all observe its outcome. A failed
attempt is not cached; the next call starts a fresh one.

This module is part of DOCBRIDGE.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from typing import Any

from ..backends.base import DocumentBackend
from ..observability import get_logger as get_contextual_logger

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class ConnectionManager:
    """
    Manages the backend session lifecycle.

    Handles single-flight connect and idempotent disconnect.
    """

    def __init__(self, backend: DocumentBackend) -> None:
        self.backend = backend
        self._pending: asyncio.Task | None = None

    @property
    def connected(self) -> bool:
        return self.backend.connected

    @property
    def connecting(self) -> bool:
        return self._pending is not None

    async def connect(self, credentials: Mapping[str, Any] | None = None) -> None:
        """
        Open the backend session, or join the attempt already in flight.

        Connecting an already connected session is a no-op.

        Raises:
            InvalidCredentialsError: If required credentials are missing
            BackendFailureError: If the backend refuses the connection
        """
        if self._pending is None:
            if self.backend.connected:
                return
            self._pending = asyncio.ensure_future(self._connect(credentials))
        else:
            logger.debug("Connect already in progress; waiting for it")

        # Shielded so a cancelled waiter does not abort the shared attempt
        await asyncio.shield(self._pending)

    async def _connect(self, credentials: Mapping[str, Any] | None) -> None:
        start_time = time.time()
        contextual_logger.info("Connecting backend", extra={"backend": self.backend.name})
        try:
            await self.backend.connect(credentials)
        except Exception as e:
            contextual_logger.error(
                "Backend connection failed",
                extra={
                    "backend": self.backend.name,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            raise
        finally:
            self._pending = None

        contextual_logger.info(
            "Backend connected",
            extra={
                "backend": self.backend.name,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            },
        )

    async def disconnect(self) -> None:
        """
        Tear the session down. Safe to call multiple times.

        A connect still in flight is allowed to finish first so its session
        is not leaked.
        """
        pending = self._pending
        if pending is not None:
            await asyncio.wait([pending])

        if not self.backend.connected:
            return
        await self.backend.disconnect()
        contextual_logger.info("Backend disconnected", extra={"backend": self.backend.name})
