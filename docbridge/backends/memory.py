"""
In-memory backend.

Stores every data space as an ordered dictionary inside the process. Useful for
unit tests and local development without a database; it honours the full
uniform contract, including atomic batches and cursor pagination.
"""

import copy
import logging
from datetime import datetime
from typing import Any

from ..constants import BACKEND_MEMORY, ID_FIELD
from ..core.ids import new_id
from ..exceptions import NotConnectedError, NotFoundError
from .base import BackendCapabilities, Condition, DocumentBackend, NativeQuery, SortKey, WriteOp

logger = logging.getLogger(__name__)

Space = dict[str, dict[str, Any]]


def _type_rank(value: Any) -> int:
    """Order of value types when sorting mixed values (nulls first)."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, datetime):
        return 3
    if isinstance(value, str):
        return 4
    return 5


def _sort_value(value: Any) -> tuple:
    rank = _type_rank(value)
    if rank == 0:
        return (rank, 0)
    if rank == 5:
        return (rank, repr(value))
    return (rank, value)


def _matches(data: dict[str, Any], condition: Condition) -> bool:
    """Compare only values of the same type family, like the native stores do."""
    if condition.field not in data:
        return False
    actual = data[condition.field]
    expected = condition.value

    if condition.op == "in":
        return any(
            _type_rank(actual) == _type_rank(candidate) and actual == candidate
            for candidate in expected
        )
    if _type_rank(actual) != _type_rank(expected):
        return False
    if condition.op == "==":
        return actual == expected
    if _type_rank(actual) in (0, 5):
        return False
    if condition.op == ">":
        return actual > expected
    if condition.op == "<":
        return actual < expected
    if condition.op == ">=":
        return actual >= expected
    if condition.op == "<=":
        return actual <= expected
    return False


def _apply_order(documents: list[dict[str, Any]], order: list[SortKey]) -> list[dict[str, Any]]:
    ordered = list(documents)
    # Stable sorts applied from the least significant key up
    for key in reversed(order):
        ordered.sort(key=lambda doc: _sort_value(doc.get(key.field)), reverse=key.descending)
    return ordered


class InMemoryBackend(DocumentBackend):
    """
    Process-local backend.

    Data survives disconnect()/connect() cycles on the same instance; use
    clear() to reset it between tests.
    """

    name = BACKEND_MEMORY
    capabilities = BackendCapabilities(atomic_batches=True, cursor_pagination=True)

    def __init__(self, config=None):
        super().__init__(config)
        self._spaces: dict[str, Space] = {}
        self._connected = False

    async def _open(self, credentials: dict[str, Any]) -> None:
        self._connected = True
        logger.info("In-memory backend connected")

    async def disconnect(self) -> None:
        if self._connected:
            logger.info("In-memory backend disconnected")
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def ping(self) -> None:
        self._require_session()

    def _require_session(self) -> None:
        if not self._connected:
            raise NotConnectedError(backend=self.name)

    def _space(self, space: str) -> Space:
        return self._spaces.setdefault(space, {})

    @staticmethod
    def _surface(ref: str, data: dict[str, Any]) -> dict[str, Any]:
        document = copy.deepcopy(data)
        document[ID_FIELD] = ref
        return document

    def new_ref(self, space: str) -> str:
        self._require_session()
        refs = self._space(space)
        ref = new_id()
        while ref in refs:
            ref = new_id()
        return ref

    async def get(self, space: str, ref: str) -> dict[str, Any] | None:
        self._require_session()
        data = self._spaces.get(space, {}).get(ref)
        if data is None:
            return None
        return self._surface(ref, data)

    async def set(self, space: str, ref: str, data: dict[str, Any]) -> None:
        self._require_session()
        self._write(self._spaces, WriteOp.set(space, ref, data))

    async def update(self, space: str, ref: str, data: dict[str, Any]) -> bool:
        self._require_session()
        if ref not in self._spaces.get(space, {}):
            return False
        self._write(self._spaces, WriteOp.update(space, ref, data))
        return True

    async def delete(self, space: str, ref: str) -> None:
        self._require_session()
        self._spaces.get(space, {}).pop(ref, None)

    def _select(self, space: str, query: NativeQuery | None) -> list[dict[str, Any]]:
        query = query or NativeQuery()
        documents = [self._surface(ref, data) for ref, data in self._spaces.get(space, {}).items()]
        matched = [doc for doc in documents if all(_matches(doc, c) for c in query.conditions)]
        return _apply_order(matched, query.order)

    async def find(
        self,
        space: str,
        query: NativeQuery | None = None,
        *,
        limit: int | None = None,
        skip: int = 0,
        start_after: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        self._require_session()
        results = self._select(space, query)

        if start_after is not None:
            cursor_ref = start_after.get(ID_FIELD)
            positions = [i for i, doc in enumerate(results) if doc[ID_FIELD] == cursor_ref]
            if positions:
                results = results[positions[0] + 1:]
            else:
                # Cursor document vanished; place it by its sort values instead
                cursor = dict(start_after)
                ordered = _apply_order(results + [cursor], (query or NativeQuery()).order)
                position = next(i for i, doc in enumerate(ordered) if doc is cursor)
                results = ordered[position + 1:]

        results = results[skip:]
        if limit is not None:
            results = results[:limit]
        return results

    async def count(self, space: str, query: NativeQuery | None = None) -> int:
        self._require_session()
        return len(self._select(space, query))

    async def commit(self, ops: list[WriteOp]) -> None:
        """Apply all writes to a working copy and swap it in only on success."""
        self._require_session()
        working = {op.space: dict(self._space(op.space)) for op in ops}
        for op in ops:
            self._write(working, op)
        self._spaces.update(working)

    def _write(self, spaces: dict[str, Space], op: WriteOp) -> None:
        space = spaces.setdefault(op.space, {})
        if op.kind == "set":
            space[op.ref] = copy.deepcopy(op.data or {})
        elif op.kind == "update":
            if op.ref not in space:
                raise NotFoundError(
                    f"Document '{op.ref}' not found", collection_id=op.space, document_id=op.ref
                )
            # Replace rather than mutate so committed snapshots stay untouched
            space[op.ref] = {**space[op.ref], **copy.deepcopy(op.data or {})}
        elif op.kind == "delete":
            space.pop(op.ref, None)
        else:
            raise ValueError(f"Unknown write kind '{op.kind}'")

    def clear(self) -> None:
        """Drop all data spaces (useful for test setup)."""
        self._spaces.clear()
