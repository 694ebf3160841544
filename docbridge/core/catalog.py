"""
Collection Catalog

Stores collection definitions in the reserved COLLECTIONS_SPACE and manages
their lifecycle. Every definition has two identities: a logical id derived
from its name, and the backend-native reference of its catalog record. The
reference also names the data space holding the collection's documents.

Names are unique catalog-wide after normalization (trim + lower-case);
creating an existing name returns the stored definition unchanged.

This module is part of DOCBRIDGE.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Union

from ..backends.base import DocumentBackend, NativeQuery, WriteOp
from ..constants import (
    CATALOG_ID_FIELD,
    COLLECTIONS_SPACE,
    CREATED_AT_FIELD,
    ID_FIELD,
    MAX_IN_QUERY_VALUES,
    PROTECTED_COLLECTION_KEYS,
    UPDATED_AT_FIELD,
)
from ..exceptions import (
    BackendFailureError,
    DocBridgeError,
    DuplicateCollectionError,
    NotFoundError,
    SeedingError,
)
from .batch import commit_writes
from .ids import new_id, normalize_name
from .serialization import parse_seed_item, prepare_fields
from .types import CollectionDefinition, next_timestamp, utcnow

logger = logging.getLogger(__name__)

DefinitionInput = Union[CollectionDefinition, Mapping[str, Any]]


def data_space(definition: CollectionDefinition) -> str:
    """Name of the data space holding a collection's documents."""
    return definition.ref


class CollectionCatalog:
    """Collection definition registry for one backend."""

    def __init__(self, backend: DocumentBackend, allow_non_atomic_batches: bool = False):
        self.backend = backend
        self.allow_non_atomic_batches = allow_non_atomic_batches

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _find_record(self, field_name: str, value: Any) -> dict[str, Any] | None:
        query = NativeQuery().where(field_name, "==", value)
        records = await self.backend.find(COLLECTIONS_SPACE, query, limit=1)
        return records[0] if records else None

    async def find_by_name(self, name: str) -> CollectionDefinition | None:
        """Return the definition with this (normalized) name, if any."""
        record = await self._find_record("name", normalize_name(name))
        return CollectionDefinition.from_record(record) if record else None

    async def get(self, collection_id: str) -> CollectionDefinition:
        """
        Get a definition by logical id, falling back to its backend reference.

        Raises:
            NotFoundError: If neither identity matches
        """
        record = await self._find_record(CATALOG_ID_FIELD, collection_id)
        if record is None:
            record = await self.backend.get(COLLECTIONS_SPACE, collection_id)
        if record is None:
            raise NotFoundError(
                f"Collection '{collection_id}' not found", collection_id=collection_id
            )
        return CollectionDefinition.from_record(record)

    async def resolve(self, key: str) -> CollectionDefinition:
        """
        Map a caller's collection key to its definition.

        Accepts a logical id, a backend reference or a collection name.
        """
        try:
            return await self.get(key)
        except NotFoundError:
            definition = await self.find_by_name(key)
            if definition is None:
                raise
            return definition

    async def get_many(self, names: Iterable[str]) -> list[CollectionDefinition]:
        """
        Return every definition whose name is in ``names``.

        Unknown names are omitted. Results follow the order of ``names``.
        """
        wanted = list(dict.fromkeys(normalize_name(n) for n in names if normalize_name(n)))
        found: dict[str, CollectionDefinition] = {}
        for start in range(0, len(wanted), MAX_IN_QUERY_VALUES):
            chunk = wanted[start : start + MAX_IN_QUERY_VALUES]
            query = NativeQuery().where("name", "in", chunk)
            for record in await self.backend.find(COLLECTIONS_SPACE, query):
                definition = CollectionDefinition.from_record(record)
                found.setdefault(definition.name, definition)
        return [found[name] for name in wanted if name in found]

    async def list_all(self) -> list[CollectionDefinition]:
        records = await self.backend.find(COLLECTIONS_SPACE)
        return [CollectionDefinition.from_record(record) for record in records]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create(
        self,
        definition: DefinitionInput,
        seed_data: Sequence[Mapping[str, Any]] | None = None,
    ) -> CollectionDefinition:
        """
        Create a collection, or return the existing one with the same name.

        The definition is persisted before any seed items are written; seed
        items go in one atomic batch, each with its own reference and the
        creation timestamp. Batches are never split, so seeding more items
        than the backend's max_batch_size (500 on Firestore) always fails.

        Raises:
            PayloadValidationError: If the definition is malformed
            SeedingError: If seeding fails (the collection itself exists),
                including when the seed exceeds the backend batch limit
        """
        definition = CollectionDefinition.coerce(definition)

        existing = await self.find_by_name(definition.name)
        if existing is not None:
            logger.info(f"Collection '{definition.name}' already exists ({existing.id})")
            return existing

        timestamp = utcnow()
        ref = self.backend.new_ref(COLLECTIONS_SPACE)
        definition.id = new_id(definition.name)
        definition.ref = None
        definition.created_at = timestamp
        definition.updated_at = timestamp

        await self.backend.set(COLLECTIONS_SPACE, ref, definition.to_record())
        definition.ref = ref
        logger.info(f"Created collection '{definition.name}' ({definition.id})")

        if seed_data:
            await self._seed(definition, seed_data)
        return definition

    async def _seed(
        self, definition: CollectionDefinition, seed_data: Sequence[Mapping[str, Any]]
    ) -> None:
        space = data_space(definition)
        try:
            ops = []
            for item in seed_data:
                stored = prepare_fields(parse_seed_item(item))
                stored[CREATED_AT_FIELD] = definition.created_at
                stored[UPDATED_AT_FIELD] = definition.created_at
                ops.append(WriteOp.set(space, self.backend.new_ref(space), stored))
            await commit_writes(self.backend, ops, self.allow_non_atomic_batches)
        except DocBridgeError as e:
            native = e.native_message if isinstance(e, BackendFailureError) else e.message
            logger.error(f"Seeding collection '{definition.id}' failed: {native}")
            raise SeedingError(
                f"Collection '{definition.id}' was created but seeding failed: {e.message}",
                collection_id=definition.id,
                backend=self.backend.name,
                native_message=native,
            ) from e
        logger.info(f"Seeded collection '{definition.id}' with {len(ops)} documents")

    async def update(
        self, collection_id: str, partial: DefinitionInput
    ) -> CollectionDefinition:
        """
        Shallow-merge ``partial`` into a definition and re-stamp updated_at.

        Identity and creation keys in ``partial`` are ignored; a rename is
        normalized and must not collide with another collection.

        Returns:
            The merged definition as read back from the store

        Raises:
            NotFoundError: If the collection does not exist
            DuplicateCollectionError: If the new name is taken
            PayloadValidationError: If the merged definition is malformed
        """
        current = await self.get(collection_id)

        if isinstance(partial, CollectionDefinition):
            partial = partial.model_dump(mode="python", exclude_unset=True)
        changes = {
            key: value
            for key, value in dict(partial).items()
            if key not in PROTECTED_COLLECTION_KEYS and key not in (UPDATED_AT_FIELD, "updatedAt")
        }

        if "name" in changes:
            new_name = normalize_name(changes["name"])
            if new_name != current.name:
                other = await self.find_by_name(new_name)
                if other is not None and other.id != current.id:
                    raise DuplicateCollectionError(
                        f"A collection named '{new_name}' already exists", name=new_name
                    )

        merged = {**current.to_dict(), **changes}
        merged[UPDATED_AT_FIELD] = next_timestamp(current.updated_at)
        definition = CollectionDefinition.coerce(merged)

        if not await self.backend.update(COLLECTIONS_SPACE, current.ref, definition.to_record()):
            raise NotFoundError(
                f"Collection '{collection_id}' not found", collection_id=collection_id
            )

        record = await self.backend.get(COLLECTIONS_SPACE, current.ref)
        if record is None:
            raise NotFoundError(
                f"Collection '{collection_id}' was deleted during update",
                collection_id=collection_id,
            )
        logger.info(f"Updated collection '{current.id}'")
        return CollectionDefinition.from_record(record)

    async def delete(self, collection_id: str) -> None:
        """
        Delete a collection and every document in its data space.

        Both happen in one atomic batch. Batches are never split, so on a
        backend with a max_batch_size (500 on Firestore) a collection holding
        that many documents or more cannot be deleted this way and is left
        untouched.

        Raises:
            NotFoundError: If the collection does not exist
            CapabilityError: If the cascade exceeds the backend batch limit
        """
        definition = await self.get(collection_id)
        space = data_space(definition)

        documents = await self.backend.find(space)
        ops = [WriteOp.delete(space, document[ID_FIELD]) for document in documents]
        ops.append(WriteOp.delete(COLLECTIONS_SPACE, definition.ref))

        await commit_writes(self.backend, ops, self.allow_non_atomic_batches)
        logger.info(f"Deleted collection '{definition.id}' and {len(documents)} documents")
