"""
Unit tests for the Firestore backend.

Uses a mocked firestore.AsyncClient; no emulator is required.
"""

from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from google.api_core.exceptions import InternalServerError, NotFound
from google.cloud import firestore

from docbridge.backends.base import NativeQuery, WriteOp
from docbridge.backends.firestore import FirestoreBackend
from docbridge.config import DatabaseConfig
from docbridge.exceptions import (BackendFailureError, InvalidCredentialsError,
                                  NotConnectedError, NotFoundError)


@pytest.fixture
def patched_client(mock_firestore_client):
    with patch(
        "docbridge.backends.firestore.firestore.AsyncClient", return_value=mock_firestore_client
    ) as factory:
        yield factory


@pytest_asyncio.fixture
async def backend(firestore_config, patched_client):
    store = FirestoreBackend(firestore_config)
    await store.connect()
    return store


def _filters(mock_method):
    """FieldFilters passed to every where() call of a mock."""
    return [
        (f.field_path, f.op_string, f.value)
        for f in (call.kwargs["filter"] for call in mock_method.call_args_list)
    ]


class TestConnect:
    """Test client creation."""

    @pytest.mark.asyncio
    async def test_connect_with_project_only(self, firestore_config, patched_client):
        backend = FirestoreBackend(firestore_config)
        await backend.connect()
        assert backend.connected is True
        patched_client.assert_called_once_with(project="demo-project", database="(default)")

    @pytest.mark.asyncio
    async def test_connect_with_api_key(self, patched_client):
        config = DatabaseConfig(
            type="firebase",
            credentials={"projectId": "demo", "apiKey": "key"},
            database="cms",
        )
        await FirestoreBackend(config).connect()
        patched_client.assert_called_once_with(
            project="demo", database="cms", client_options={"api_key": "key"}
        )

    @pytest.mark.asyncio
    async def test_connect_with_service_account(self, patched_client):
        config = DatabaseConfig(
            type="firebase",
            credentials={"project_id": "demo", "credentials_path": "/secrets/sa.json"},
        )
        with patch(
            "docbridge.backends.firestore.service_account.Credentials.from_service_account_file"
        ) as load:
            await FirestoreBackend(config).connect()
        load.assert_called_once_with("/secrets/sa.json")
        assert patched_client.call_args.kwargs["credentials"] is load.return_value

    @pytest.mark.asyncio
    async def test_unreadable_service_account(self, patched_client):
        config = DatabaseConfig(
            type="firebase",
            credentials={"project_id": "demo", "credentials_path": "/missing.json"},
        )
        with patch(
            "docbridge.backends.firestore.service_account.Credentials.from_service_account_file",
            side_effect=FileNotFoundError("/missing.json"),
        ):
            with pytest.raises(BackendFailureError) as exc_info:
                await FirestoreBackend(config).connect()
        assert exc_info.value.operation == "connect"
        patched_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_project_id(self, patched_client):
        backend = FirestoreBackend(DatabaseConfig(type="firebase", credentials={"apiKey": "k"}))
        with pytest.raises(InvalidCredentialsError) as exc_info:
            await backend.connect()
        assert exc_info.value.missing_fields == ["project_id"]

    @pytest.mark.asyncio
    async def test_disconnect(self, backend, mock_firestore_client):
        await backend.disconnect()
        mock_firestore_client.close.assert_called_once()
        with pytest.raises(NotConnectedError):
            backend.new_ref("items")


class TestPrimitives:
    """Test single-document primitives."""

    @pytest.mark.asyncio
    async def test_new_ref_uses_auto_id(self, backend):
        assert backend.new_ref("items") == "auto_generated_id"

    @pytest.mark.asyncio
    async def test_get_missing(self, backend):
        assert await backend.get("items", "nope") is None

    @pytest.mark.asyncio
    async def test_get_surfaces_identity(
        self, backend, mock_firestore_client, snapshot_factory
    ):
        mock_firestore_client.doc_ref.get.return_value = snapshot_factory("a", {"n": 1})
        assert await backend.get("items", "a") == {"n": 1, "id": "a"}
        mock_firestore_client.collection.assert_called_with("items")
        mock_firestore_client.collection_ref.document.assert_called_with("a")

    @pytest.mark.asyncio
    async def test_set(self, backend, mock_firestore_client):
        await backend.set("items", "a", {"n": 1})
        mock_firestore_client.doc_ref.set.assert_awaited_once_with({"n": 1})

    @pytest.mark.asyncio
    async def test_update_missing_returns_false(self, backend, mock_firestore_client):
        mock_firestore_client.doc_ref.update.side_effect = NotFound("no document")
        assert await backend.update("items", "a", {"n": 1}) is False

    @pytest.mark.asyncio
    async def test_disconnect_during_operation(self, backend, mock_firestore_client):
        async def closed_while_running(*args, **kwargs):
            await backend.disconnect()
            raise InternalServerError("client closed")

        mock_firestore_client.doc_ref.set.side_effect = closed_while_running
        with pytest.raises(NotConnectedError):
            await backend.set("items", "a", {"n": 1})

    @pytest.mark.asyncio
    async def test_errors_are_wrapped(self, backend, mock_firestore_client):
        mock_firestore_client.doc_ref.delete.side_effect = InternalServerError("boom")
        with pytest.raises(BackendFailureError) as exc_info:
            await backend.delete("items", "a")
        assert exc_info.value.operation == "delete"
        assert isinstance(exc_info.value.__cause__, InternalServerError)


class TestQueries:
    """Test query building, cursors and counts."""

    @pytest.mark.asyncio
    async def test_filters_and_order(
        self, backend, mock_firestore_client, snapshot_factory
    ):
        mock_firestore_client.query.get.return_value = [snapshot_factory("a", {"age": 35})]
        query = (
            NativeQuery()
            .where("age", ">", 30)
            .where("age", "<", 40)
            .order_by("age", descending=True)
        )

        results = await backend.find("items", query, limit=10)

        assert results == [{"age": 35, "id": "a"}]
        assert _filters(mock_firestore_client.collection_ref.where) == [("age", ">", 30)]
        assert _filters(mock_firestore_client.query.where) == [("age", "<", 40)]
        mock_firestore_client.query.order_by.assert_called_once_with(
            "age", direction=firestore.Query.DESCENDING
        )
        mock_firestore_client.query.limit.assert_called_once_with(10)

    @pytest.mark.asyncio
    async def test_identity_filters_use_document_refs(self, backend, mock_firestore_client):
        collection = mock_firestore_client.collection_ref
        await backend.find("items", NativeQuery().where("id", "in", ["a", "b"]))

        (field_path, op, value), = _filters(collection.where)
        assert (field_path, op) == ("__name__", "in")
        assert value == [collection.document.return_value] * 2

    @pytest.mark.asyncio
    async def test_start_after_existing_document(
        self, backend, mock_firestore_client, snapshot_factory
    ):
        snapshot = snapshot_factory("a", {"n": 3})
        mock_firestore_client.doc_ref.get.return_value = snapshot

        await backend.find("items", NativeQuery().order_by("n"), start_after={"id": "a", "n": 3})

        mock_firestore_client.query.start_after.assert_called_once_with(snapshot)

    @pytest.mark.asyncio
    async def test_start_after_deleted_document(self, backend, mock_firestore_client):
        await backend.find(
            "items", NativeQuery().order_by("n"), start_after={"id": "gone", "n": 3, "x": 1}
        )
        query = mock_firestore_client.query
        query.order_by.assert_called_once_with("__name__", direction=firestore.Query.ASCENDING)
        query.start_after.assert_called_once_with(
            {"n": 3, "__name__": mock_firestore_client.doc_ref}
        )
        mock_firestore_client.collection_ref.document.assert_called_with("gone")

    @pytest.mark.asyncio
    async def test_start_after_deleted_document_without_order(
        self, backend, mock_firestore_client
    ):
        await backend.find("items", NativeQuery(), start_after={"id": "gone", "n": 3})

        mock_firestore_client.collection_ref.order_by.assert_called_once_with(
            "__name__", direction=firestore.Query.ASCENDING
        )
        mock_firestore_client.query.start_after.assert_called_once_with(
            {"__name__": mock_firestore_client.doc_ref}
        )

    @pytest.mark.asyncio
    async def test_start_after_deleted_document_ordered_by_id(
        self, backend, mock_firestore_client
    ):
        query = NativeQuery().order_by("id", descending=True)
        await backend.find("items", query, start_after={"id": "gone"})

        mock_firestore_client.query.order_by.assert_not_called()
        mock_firestore_client.query.start_after.assert_called_once_with(
            {"__name__": mock_firestore_client.doc_ref}
        )

    @pytest.mark.asyncio
    async def test_count(self, backend, mock_firestore_client):
        mock_firestore_client.aggregation.get.return_value = [[MagicMock(value=42)]]
        assert await backend.count("items", NativeQuery().where("n", "==", 1)) == 42
        mock_firestore_client.query.count.assert_called_once_with(alias="total")

    @pytest.mark.asyncio
    async def test_count_failure(self, backend, mock_firestore_client):
        mock_firestore_client.aggregation.get.side_effect = InternalServerError("boom")
        with pytest.raises(BackendFailureError) as exc_info:
            await backend.count("items")
        assert exc_info.value.operation == "count"


class TestCommit:
    """Test WriteBatch commits."""

    @pytest.mark.asyncio
    async def test_commit_builds_one_batch(self, backend, mock_firestore_client):
        await backend.commit(
            [
                WriteOp.set("items", "a", {"n": 1}),
                WriteOp.update("items", "b", {"n": 2}),
                WriteOp.delete("items", "c"),
            ]
        )
        batch = mock_firestore_client.write_batch
        doc_ref = mock_firestore_client.doc_ref
        batch.set.assert_called_once_with(doc_ref, {"n": 1})
        batch.update.assert_called_once_with(doc_ref, {"n": 2})
        batch.delete.assert_called_once_with(doc_ref)
        batch.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_update_target(self, backend, mock_firestore_client):
        mock_firestore_client.write_batch.commit.side_effect = NotFound("no document to update")
        with pytest.raises(NotFoundError):
            await backend.commit([WriteOp.update("items", "b", {"n": 2})])

    @pytest.mark.asyncio
    async def test_commit_failure(self, backend, mock_firestore_client):
        mock_firestore_client.write_batch.commit.side_effect = InternalServerError("boom")
        with pytest.raises(BackendFailureError) as exc_info:
            await backend.commit([WriteOp.delete("items", "c")])
        assert exc_info.value.operation == "commit"

    @pytest.mark.asyncio
    async def test_empty_commit(self, backend, mock_firestore_client):
        await backend.commit([])
        mock_firestore_client.batch.assert_not_called()
