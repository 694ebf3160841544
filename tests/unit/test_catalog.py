"""
Unit tests for the collection catalog.

Tests idempotent creation, identity resolution, seeding, renames and cascade
deletes against the in-memory backend.
"""

import pytest
import pytest_asyncio

from docbridge.backends.base import BackendCapabilities
from docbridge.backends.memory import InMemoryBackend
from docbridge.constants import CATALOG_ID_FIELD, COLLECTIONS_SPACE
from docbridge.core.catalog import CollectionCatalog, data_space
from docbridge.exceptions import (CapabilityError, DuplicateCollectionError,
                                  NotFoundError, PayloadValidationError,
                                  SeedingError)


class FailingCommitBackend(InMemoryBackend):
    """In-memory backend whose batch commits always fail."""

    async def commit(self, ops):
        raise NotFoundError("simulated batch failure")


class CappedBatchBackend(InMemoryBackend):
    """In-memory backend that accepts at most three writes per batch."""

    capabilities = BackendCapabilities(
        atomic_batches=True, cursor_pagination=True, max_batch_size=3
    )


@pytest_asyncio.fixture
async def capped_catalog(memory_config):
    backend = CappedBatchBackend(memory_config)
    await backend.connect()
    return CollectionCatalog(backend)


@pytest.fixture
def catalog(memory_backend):
    return CollectionCatalog(memory_backend)


class TestCreate:
    """Test collection creation."""

    @pytest.mark.asyncio
    async def test_create_assigns_both_identities(self, catalog, product_definition):
        definition = await catalog.create(product_definition)
        assert definition.name == "products"
        assert definition.id.startswith("products_")
        assert definition.ref
        assert definition.created_at == definition.updated_at
        assert data_space(definition) == definition.ref

    @pytest.mark.asyncio
    async def test_record_stores_logical_id(self, catalog, memory_backend, product_definition):
        definition = await catalog.create(product_definition)
        record = await memory_backend.get(COLLECTIONS_SPACE, definition.ref)
        assert record[CATALOG_ID_FIELD] == definition.id
        assert record["id"] == definition.ref

    @pytest.mark.asyncio
    async def test_create_is_idempotent_by_name(self, catalog, memory_backend):
        first = await catalog.create({"name": "Products"})
        second = await catalog.create({"name": "  PRODUCTS  ", "description": "ignored"})
        assert second.id == first.id
        assert second.ref == first.ref
        assert second.description is None
        assert await memory_backend.count(COLLECTIONS_SPACE) == 1

    @pytest.mark.asyncio
    async def test_invalid_definition(self, catalog):
        with pytest.raises(PayloadValidationError):
            await catalog.create({"name": ""})

    @pytest.mark.asyncio
    async def test_seed_data(self, catalog, memory_backend):
        definition = await catalog.create(
            {"name": "posts"},
            seed_data=[
                {"title": "First", "published": "2024-01-31T10:00:00Z"},
                {"title": "Second", "id": "forged"},
            ],
        )
        documents = await memory_backend.find(definition.ref)
        assert sorted(doc["title"] for doc in documents) == ["First", "Second"]
        assert all(doc["created_at"] == definition.created_at for doc in documents)
        assert all(doc["id"] != "forged" for doc in documents)

    @pytest.mark.asyncio
    async def test_seeding_failure_keeps_definition(self, memory_config):
        backend = FailingCommitBackend(memory_config)
        await backend.connect()
        catalog = CollectionCatalog(backend)

        with pytest.raises(SeedingError) as exc_info:
            await catalog.create({"name": "posts"}, seed_data=[{"title": "First"}])

        definition = await catalog.find_by_name("posts")
        assert definition is not None
        assert exc_info.value.collection_id == definition.id
        assert exc_info.value.native_message == "simulated batch failure"

    @pytest.mark.asyncio
    async def test_seed_larger_than_batch_limit(self, capped_catalog):
        seed = [{"n": i} for i in range(4)]
        with pytest.raises(SeedingError) as exc_info:
            await capped_catalog.create({"name": "posts"}, seed_data=seed)

        assert isinstance(exc_info.value.__cause__, CapabilityError)
        definition = await capped_catalog.find_by_name("posts")
        assert await capped_catalog.backend.count(definition.ref) == 0


class TestLookup:
    """Test get, resolve and get_many."""

    @pytest.mark.asyncio
    async def test_get_by_logical_id_and_ref(self, catalog):
        created = await catalog.create({"name": "posts"})
        assert (await catalog.get(created.id)).ref == created.ref
        assert (await catalog.get(created.ref)).id == created.id

    @pytest.mark.asyncio
    async def test_get_missing(self, catalog):
        with pytest.raises(NotFoundError) as exc_info:
            await catalog.get("nope")
        assert exc_info.value.collection_id == "nope"

    @pytest.mark.asyncio
    async def test_resolve_by_name(self, catalog):
        created = await catalog.create({"name": "posts"})
        assert (await catalog.resolve(" Posts ")).id == created.id
        with pytest.raises(NotFoundError):
            await catalog.resolve("unknown")

    @pytest.mark.asyncio
    async def test_get_many_follows_input_order(self, catalog):
        for name in ("alpha", "beta", "gamma"):
            await catalog.create({"name": name})
        found = await catalog.get_many(["Gamma", "missing", "alpha", "gamma"])
        assert [d.name for d in found] == ["gamma", "alpha"]

    @pytest.mark.asyncio
    async def test_get_many_chunks_large_inputs(self, catalog):
        names = [f"c{i:02d}" for i in range(35)]
        for name in names:
            await catalog.create({"name": name})
        found = await catalog.get_many(reversed(names))
        assert [d.name for d in found] == list(reversed(names))

    @pytest.mark.asyncio
    async def test_list_all(self, catalog):
        await catalog.create({"name": "alpha"})
        await catalog.create({"name": "beta"})
        assert sorted(d.name for d in await catalog.list_all()) == ["alpha", "beta"]


class TestUpdate:
    """Test definition updates."""

    @pytest.mark.asyncio
    async def test_update_merges_and_restamps(self, catalog):
        created = await catalog.create({"name": "posts", "description": "old"})
        updated = await catalog.update(
            created.id, {"description": "new", "id": "forged", "createdAt": "forged"}
        )
        assert updated.description == "new"
        assert updated.id == created.id
        assert updated.ref == created.ref
        assert updated.created_at == created.created_at
        assert updated.updated_at > created.updated_at

    @pytest.mark.asyncio
    async def test_rename_is_normalized(self, catalog):
        created = await catalog.create({"name": "posts"})
        updated = await catalog.update(created.id, {"name": "  Articles "})
        assert updated.name == "articles"
        assert (await catalog.find_by_name("articles")).id == created.id

    @pytest.mark.asyncio
    async def test_rename_collision(self, catalog):
        await catalog.create({"name": "posts"})
        other = await catalog.create({"name": "pages"})
        with pytest.raises(DuplicateCollectionError) as exc_info:
            await catalog.update(other.id, {"name": "Posts"})
        assert exc_info.value.name == "posts"

    @pytest.mark.asyncio
    async def test_update_missing(self, catalog):
        with pytest.raises(NotFoundError):
            await catalog.update("nope", {"description": "x"})


class TestDelete:
    """Test cascade deletes."""

    @pytest.mark.asyncio
    async def test_delete_removes_definition_and_documents(self, catalog, memory_backend):
        definition = await catalog.create(
            {"name": "posts"}, seed_data=[{"title": "a"}, {"title": "b"}]
        )
        await catalog.delete(definition.id)

        assert await memory_backend.count(definition.ref) == 0
        assert await catalog.find_by_name("posts") is None
        with pytest.raises(NotFoundError):
            await catalog.get(definition.id)

    @pytest.mark.asyncio
    async def test_delete_larger_than_batch_limit(self, capped_catalog):
        definition = await capped_catalog.create(
            {"name": "posts"}, seed_data=[{"n": 1}, {"n": 2}, {"n": 3}]
        )

        with pytest.raises(CapabilityError) as exc_info:
            await capped_catalog.delete(definition.id)

        assert exc_info.value.capability == "max_batch_size"
        assert await capped_catalog.backend.count(definition.ref) == 3
        assert (await capped_catalog.get(definition.id)).ref == definition.ref

    @pytest.mark.asyncio
    async def test_delete_missing(self, catalog):
        with pytest.raises(NotFoundError):
            await catalog.delete("nope")
