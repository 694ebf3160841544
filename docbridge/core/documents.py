"""
Document Store

Single-document CRUD against one data space. The store stamps created_at and
updated_at; callers can never supply the identity or the timestamps.
"""

import logging
from collections.abc import Mapping
from typing import Any

from ..backends.base import DocumentBackend
from ..constants import CREATED_AT_FIELD, ID_FIELD, UPDATED_AT_FIELD
from ..exceptions import NotFoundError
from .serialization import prepare_fields
from .types import Document, next_timestamp, utcnow

logger = logging.getLogger(__name__)


class DocumentStore:
    """Single-document access for one backend."""

    def __init__(self, backend: DocumentBackend):
        self.backend = backend

    async def get(self, space: str, document_id: str) -> Document | None:
        """Return the document, or None when it does not exist."""
        return await self.backend.get(space, document_id)

    async def create(self, space: str, fields: Mapping[str, Any]) -> Document:
        """
        Store a new document under a backend-allocated identity.

        Returns:
            The stored shape: caller fields, identity and both timestamps
        """
        stored = prepare_fields(fields)
        timestamp = utcnow()
        stored[CREATED_AT_FIELD] = timestamp
        stored[UPDATED_AT_FIELD] = timestamp

        ref = self.backend.new_ref(space)
        await self.backend.set(space, ref, stored)
        logger.debug(f"Created document '{ref}' in '{space}'")
        return {**stored, ID_FIELD: ref}

    async def update(self, space: str, document_id: str, fields: Mapping[str, Any]) -> Document:
        """
        Merge ``fields`` over the stored document.

        Identity and timestamp keys in ``fields`` are ignored. updated_at is
        re-stamped strictly later than its previous value.

        Returns:
            The document as read back from the backend after the write

        Raises:
            NotFoundError: If the document does not exist
        """
        existing = await self.backend.get(space, document_id)
        if existing is None:
            raise NotFoundError(
                f"Document '{document_id}' not found",
                collection_id=space,
                document_id=document_id,
            )

        patch = prepare_fields(fields)
        patch[UPDATED_AT_FIELD] = next_timestamp(existing.get(UPDATED_AT_FIELD))

        if not await self.backend.update(space, document_id, patch):
            raise NotFoundError(
                f"Document '{document_id}' not found",
                collection_id=space,
                document_id=document_id,
            )

        updated = await self.backend.get(space, document_id)
        if updated is None:
            raise NotFoundError(
                f"Document '{document_id}' was deleted during update",
                collection_id=space,
                document_id=document_id,
            )
        return updated

    async def delete(self, space: str, document_id: str) -> None:
        """Delete a document; deleting a missing document succeeds."""
        await self.backend.delete(space, document_id)
