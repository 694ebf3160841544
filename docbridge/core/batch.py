"""
Batch Engine

Groups multi-document creates, updates and deletes into one backend commit.
Identities and a single shared timestamp are assigned client-side before the
commit so the full document shapes can be returned in input order.

Atomicity contract: a batch commits entirely or not at all. Backends that
cannot guarantee this raise CapabilityError unless the service explicitly
opted into best-effort batches.

This module is part of DOCBRIDGE.
"""

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from ..backends.base import DocumentBackend, WriteOp
from ..constants import CREATED_AT_FIELD, ID_FIELD, UPDATED_AT_FIELD
from ..exceptions import CapabilityError, NotFoundError, PayloadValidationError
from .serialization import prepare_fields
from .types import Document, as_utc, next_timestamp, utcnow

logger = logging.getLogger(__name__)


async def commit_writes(
    backend: DocumentBackend, ops: list[WriteOp], allow_non_atomic_batches: bool = False
) -> None:
    """
    Submit ``ops`` as one batch after checking the backend's capabilities.

    Raises:
        CapabilityError: If the batch exceeds the backend's size limit, or the
            backend cannot commit atomically and best-effort was not allowed
    """
    capabilities = backend.capabilities
    if capabilities.max_batch_size is not None and len(ops) > capabilities.max_batch_size:
        raise CapabilityError(
            f"Batch of {len(ops)} writes exceeds the {backend.name} limit of "
            f"{capabilities.max_batch_size}",
            backend=backend.name,
            capability="max_batch_size",
            context={"writes": len(ops)},
        )

    if not capabilities.atomic_batches:
        if not allow_non_atomic_batches:
            raise CapabilityError(
                f"{backend.name} backend cannot commit batches atomically",
                backend=backend.name,
                capability="atomic_batches",
            )
        logger.warning(
            f"Committing {len(ops)} writes without atomicity on {backend.name}; "
            "a failure may leave the batch partially applied"
        )

    await backend.commit(ops)


def _split_update(item: Mapping[str, Any]) -> tuple[str, Mapping[str, Any]]:
    if not isinstance(item, Mapping) or not item.get(ID_FIELD):
        raise PayloadValidationError(
            "Batch update items must be mappings with an 'id'", error_paths=[ID_FIELD]
        )
    fields = item.get("fields", item.get("data"))
    if fields is None:
        fields = {k: v for k, v in item.items() if k != ID_FIELD}
    return str(item[ID_FIELD]), fields


class BatchEngine:
    """Multi-document writes against one backend."""

    def __init__(self, backend: DocumentBackend, allow_non_atomic_batches: bool = False):
        self.backend = backend
        self.allow_non_atomic_batches = allow_non_atomic_batches

    async def commit(self, ops: list[WriteOp]) -> None:
        await commit_writes(self.backend, ops, self.allow_non_atomic_batches)

    async def create_many(self, space: str, items: Sequence[Mapping[str, Any]]) -> list[Document]:
        """
        Create every item in one batch.

        Returns:
            The stored documents, in input order
        """
        if not items:
            return []

        timestamp = utcnow()
        ops: list[WriteOp] = []
        documents: list[Document] = []
        for item in items:
            stored = prepare_fields(item)
            stored[CREATED_AT_FIELD] = timestamp
            stored[UPDATED_AT_FIELD] = timestamp
            ref = self.backend.new_ref(space)
            ops.append(WriteOp.set(space, ref, stored))
            documents.append({**stored, ID_FIELD: ref})

        await self.commit(ops)
        logger.debug(f"Created {len(documents)} documents in '{space}'")
        return documents

    async def update_many(
        self, space: str, updates: Sequence[Mapping[str, Any]]
    ) -> list[Document]:
        """
        Apply ``[{"id": ..., "fields": {...}}, ...]`` in one batch.

        Any id that does not resolve fails the whole batch with NotFoundError.

        Returns:
            The documents read back after the commit, in input order
        """
        if not updates:
            return []

        patches = [_split_update(item) for item in updates]

        # One shared stamp, later than every target's current updated_at
        latest = None
        for ref, _ in patches:
            current = await self.backend.get(space, ref)
            if current is None:
                raise NotFoundError(
                    f"Document '{ref}' not found", collection_id=space, document_id=ref
                )
            previous = current.get(UPDATED_AT_FIELD)
            if isinstance(previous, datetime) and (latest is None or as_utc(previous) > latest):
                latest = as_utc(previous)
        timestamp = next_timestamp(latest)

        ops: list[WriteOp] = []
        refs: list[str] = []
        for ref, fields in patches:
            patch = prepare_fields(fields)
            patch[UPDATED_AT_FIELD] = timestamp
            ops.append(WriteOp.update(space, ref, patch))
            refs.append(ref)

        await self.commit(ops)

        documents: list[Document] = []
        for ref in refs:
            document = await self.backend.get(space, ref)
            if document is None:
                raise NotFoundError(
                    f"Document '{ref}' disappeared after batch update",
                    collection_id=space,
                    document_id=ref,
                )
            documents.append(document)
        return documents

    async def delete_many(self, space: str, ids: Sequence[str]) -> None:
        """Delete every id in one batch; missing ids are ignored."""
        if not ids:
            return
        await self.commit([WriteOp.delete(space, str(ref)) for ref in ids])
        logger.debug(f"Deleted {len(ids)} documents from '{space}'")
