"""
Abstract Backend Contract

Defines the primitive operations every document store must provide. The
catalog, document store, batch engine, query translator and search engine are
written once against this interface; each backend only translates the neutral
primitives below into its native calls.

Primitives:
    connect / disconnect / ping     session lifecycle
    new_ref                         allocate a backend-native identity
    get / set / update / delete     single-document access
    find / count                    filtered, ordered reads
    commit                          multi-document write batch
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from ..config import DatabaseConfig, missing_credentials, normalize_credentials
from ..exceptions import BackendFailureError, InvalidCredentialsError, NotConnectedError

logger = logging.getLogger(__name__)

ComparisonOp = Literal["==", ">", "<", ">=", "<=", "in"]
WriteKind = Literal["set", "update", "delete"]


@dataclass(frozen=True)
class Condition:
    """One native comparison: ``field <op> value``."""

    field: str
    op: ComparisonOp
    value: Any


@dataclass(frozen=True)
class SortKey:
    """One native sort key."""

    field: str
    descending: bool = False


@dataclass
class NativeQuery:
    """
    A compiled, backend-neutral query.

    Conditions are ANDed and kept in the order they were compiled; sort keys
    are applied in order as a multi-key sort.
    """

    conditions: list[Condition] = field(default_factory=list)
    order: list[SortKey] = field(default_factory=list)

    def where(self, field_name: str, op: ComparisonOp, value: Any) -> "NativeQuery":
        self.conditions.append(Condition(field_name, op, value))
        return self

    def order_by(self, field_name: str, descending: bool = False) -> "NativeQuery":
        self.order.append(SortKey(field_name, descending))
        return self


@dataclass
class WriteOp:
    """One write inside a batch."""

    kind: WriteKind
    space: str
    ref: str
    data: dict[str, Any] | None = None

    @classmethod
    def set(cls, space: str, ref: str, data: dict[str, Any]) -> "WriteOp":
        return cls("set", space, ref, data)

    @classmethod
    def update(cls, space: str, ref: str, data: dict[str, Any]) -> "WriteOp":
        return cls("update", space, ref, data)

    @classmethod
    def delete(cls, space: str, ref: str) -> "WriteOp":
        return cls("delete", space, ref)


@dataclass(frozen=True)
class BackendCapabilities:
    """
    What a backend can guarantee natively.

    Attributes:
        atomic_batches: commit() applies all writes or none
        cursor_pagination: find() honours start_after natively
        max_batch_size: Maximum writes per commit (None = unbounded)
    """

    atomic_batches: bool = True
    cursor_pagination: bool = False
    max_batch_size: int | None = None


class DocumentBackend(ABC):
    """
    Abstract document store session.

    Subclasses set ``name`` and ``capabilities`` and implement the primitives.
    Documents returned by get()/find() are plain dicts that always carry the
    identity under constants.ID_FIELD; documents passed to set()/update() never
    contain it.

    Every primitive except connect() raises NotConnectedError when no session
    is open. Native driver failures surface as BackendFailureError with the
    native exception chained.
    """

    name: str = "base"
    capabilities: BackendCapabilities = BackendCapabilities()

    def __init__(self, config: DatabaseConfig | None = None):
        self.config = config

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def connect(self, credentials: Mapping[str, Any] | None = None) -> None:
        """
        Open a session.

        Credentials default to the ones in the backend's config and are
        validated for the backend's required fields before any network call.
        An already open session is closed first.

        Raises:
            InvalidCredentialsError: If required credential fields are missing
            BackendFailureError: If the backend refuses the connection
        """
        if credentials is None and self.config is not None:
            credentials = self.config.credentials
        creds = normalize_credentials(credentials)

        missing = missing_credentials(self.name, creds)
        if missing:
            raise InvalidCredentialsError(
                f"Missing required credentials for {self.name}: {', '.join(missing)}",
                backend=self.name,
                missing_fields=missing,
            )

        if self.connected:
            await self.disconnect()

        await self._open(creds)

    @abstractmethod
    async def _open(self, credentials: dict[str, Any]) -> None:
        """Create the native session from validated credentials."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Tear the session down. Idempotent."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while a session is open."""

    @abstractmethod
    async def ping(self) -> None:
        """Round-trip to the backend; raises on failure."""

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def new_ref(self, space: str) -> str:
        """
        Allocate a fresh backend-native reference in ``space``.

        No write happens; the reference is used by a later set()/commit().
        """

    @abstractmethod
    async def get(self, space: str, ref: str) -> dict[str, Any] | None:
        """Return the document or None when absent."""

    @abstractmethod
    async def set(self, space: str, ref: str, data: dict[str, Any]) -> None:
        """Create or overwrite the document at ``ref``."""

    @abstractmethod
    async def update(self, space: str, ref: str, data: dict[str, Any]) -> bool:
        """
        Merge ``data`` into an existing document.

        Returns:
            False when the document does not exist (nothing written)
        """

    @abstractmethod
    async def delete(self, space: str, ref: str) -> None:
        """Delete a document; deleting a missing document is not an error."""

    @abstractmethod
    async def find(
        self,
        space: str,
        query: NativeQuery | None = None,
        *,
        limit: int | None = None,
        skip: int = 0,
        start_after: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Run a filtered, ordered read.

        Args:
            space: Data space (collection) name
            query: Compiled conditions and sort keys
            limit: Maximum number of documents (None = unbounded)
            skip: Native number of documents to skip
            start_after: A document previously returned for the same query;
                results resume strictly after it (cursor_pagination backends)
        """

    @abstractmethod
    async def count(self, space: str, query: NativeQuery | None = None) -> int:
        """Count documents matching ``query``."""

    @abstractmethod
    async def commit(self, ops: list[WriteOp]) -> None:
        """
        Apply a batch of writes.

        Atomic when ``capabilities.atomic_batches`` is True. An update whose
        target does not exist raises NotFoundError and fails the batch.
        """

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _failure(
        self, operation: str, error: Exception, **context: Any
    ) -> BackendFailureError | NotConnectedError:
        """
        Log a native failure and build the wrapping BackendFailureError.

        A failure raised because disconnect() closed the session while the
        operation was in flight is reported as NotConnectedError.
        """
        if operation != "connect" and not self.connected:
            logger.debug(f"{self.name} backend operation '{operation}' lost its session")
            return NotConnectedError(backend=self.name)
        logger.exception(f"{self.name} backend operation '{operation}' failed")
        return BackendFailureError(
            f"{self.name} {operation} failed: {error}",
            backend=self.name,
            operation=operation,
            native_message=str(error),
            context=context or None,
        )

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"<{type(self).__name__} {state}>"
