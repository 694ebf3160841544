"""
Pytest configuration and shared fixtures for DOCBRIDGE tests.

This module provides:
- In-memory backend and service fixtures
- Mock motor client fixtures
- Mock Firestore client fixtures
- Test data factories
"""

from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from docbridge.backends.memory import InMemoryBackend
from docbridge.config import DatabaseConfig
from docbridge.core.service import DataService

# ============================================================================
# IN-MEMORY FIXTURES
# ============================================================================


@pytest.fixture
def memory_config() -> DatabaseConfig:
    """Configuration selecting the in-memory backend."""
    return DatabaseConfig(type="memory")


@pytest_asyncio.fixture
async def memory_backend(memory_config: DatabaseConfig):
    """Connected in-memory backend."""
    backend = InMemoryBackend(memory_config)
    await backend.connect()
    yield backend
    await backend.disconnect()


@pytest_asyncio.fixture
async def service(memory_config: DatabaseConfig):
    """Connected DataService over the in-memory backend."""
    data_service = DataService(memory_config)
    await data_service.connect()
    yield data_service
    await data_service.disconnect()


# ============================================================================
# MOCK MONGODB FIXTURES
# ============================================================================


def make_mock_collection(name: str) -> MagicMock:
    """Create a mock motor collection with async CRUD methods."""
    collection = MagicMock()
    collection.name = name

    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.skip.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value = cursor
    collection.cursor = cursor

    collection.find_one = AsyncMock(return_value=None)
    collection.replace_one = AsyncMock(return_value=MagicMock(matched_count=1))
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.count_documents = AsyncMock(return_value=0)
    return collection


@pytest.fixture
def mock_mongo_database() -> MagicMock:
    """Mock motor database; collections are created on first access and reused."""
    collections: Dict[str, MagicMock] = {}

    def get_collection(name: str) -> MagicMock:
        if name not in collections:
            collections[name] = make_mock_collection(name)
        return collections[name]

    db = MagicMock()
    db.name = "test_db"
    db.__getitem__.side_effect = get_collection
    db.collections = collections
    return db


@pytest.fixture
def mock_mongo_client(mock_mongo_database: MagicMock) -> MagicMock:
    """Mock AsyncIOMotorClient with ping, database access and sessions."""
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.__getitem__.side_effect = lambda name: mock_mongo_database
    client.get_default_database.return_value = mock_mongo_database

    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=transaction)
    transaction.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    session.start_transaction.return_value = transaction

    client.start_session = AsyncMock(return_value=session)
    client.session = session
    client.transaction = transaction
    return client


@pytest.fixture
def mongo_config() -> DatabaseConfig:
    """Configuration selecting the MongoDB backend."""
    return DatabaseConfig(
        type="mongodb",
        credentials={"uri": "mongodb://localhost:27017"},
        database="test_db",
        max_pool_size=10,
        min_pool_size=1,
    )


# ============================================================================
# MOCK FIRESTORE FIXTURES
# ============================================================================


def make_snapshot(doc_id: str, data: Dict[str, Any] | None) -> MagicMock:
    """Create a mock DocumentSnapshot."""
    snapshot = MagicMock()
    snapshot.id = doc_id
    snapshot.exists = data is not None
    snapshot.to_dict.return_value = dict(data) if data is not None else None
    return snapshot


@pytest.fixture
def snapshot_factory():
    """Factory fixture building mock DocumentSnapshots."""
    return make_snapshot


@pytest.fixture
def mock_firestore_client() -> MagicMock:
    """
    Mock Firestore AsyncClient.

    Every collection shares one chainable query mock (``client.query``) and
    one document reference mock (``client.doc_ref``).
    """
    client = MagicMock()

    query = MagicMock()
    for method in ("where", "order_by", "limit", "offset", "start_after"):
        getattr(query, method).return_value = query
    query.get = AsyncMock(return_value=[])
    aggregation = MagicMock()
    aggregation.get = AsyncMock(return_value=[[MagicMock(value=0)]])
    query.count.return_value = aggregation

    doc_ref = MagicMock()
    doc_ref.id = "auto_generated_id"
    doc_ref.get = AsyncMock(return_value=make_snapshot("auto_generated_id", None))
    doc_ref.set = AsyncMock()
    doc_ref.update = AsyncMock()
    doc_ref.delete = AsyncMock()

    collection = MagicMock()
    collection.document.return_value = doc_ref
    for method in ("where", "order_by", "limit", "offset", "start_after"):
        getattr(collection, method).return_value = query
    collection.get = AsyncMock(return_value=[])
    collection.count.return_value = aggregation

    batch = MagicMock()
    batch.commit = AsyncMock(return_value=[])

    client.collection.return_value = collection
    client.batch.return_value = batch
    client.query = query
    client.aggregation = aggregation
    client.doc_ref = doc_ref
    client.collection_ref = collection
    client.write_batch = batch
    return client


@pytest.fixture
def firestore_config() -> DatabaseConfig:
    """Configuration selecting the Firestore backend."""
    return DatabaseConfig(type="firebase", credentials={"projectId": "demo-project"})


# ============================================================================
# TEST DATA
# ============================================================================


@pytest.fixture
def product_definition() -> Dict[str, Any]:
    """Sample collection definition."""
    return {
        "name": "  Products ",
        "description": "Catalog products",
        "fields": [
            {"name": "title", "type": "text", "isSearchable": True, "isSortable": True},
            {"name": "sku", "type": "text", "isSearchable": True},
            {"name": "price", "type": "number", "isSortable": True},
        ],
        "settings": {"isPublic": True, "hooks": {"beforeCreate": "validate_product"}},
    }
