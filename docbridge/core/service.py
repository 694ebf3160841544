"""
Data Service

The single entry point for callers. A DataService owns exactly one backend
(chosen from its configuration's type tag) and one instance of every core
component; nothing is shared between services.

Usage:
    async with create_service(DatabaseConfig.from_env()) as service:
        products = await service.create_collection({"name": "Products"})
        await service.create_document(products.id, {"title": "Lamp"})
        page = await service.query_documents(
            products.id, {"where": [("title", "prefixContains", "La")], "limit": 10}
        )

This module is part of DOCBRIDGE.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional, Union

from ..backends import DocumentBackend, create_backend
from ..config import DatabaseConfig
from ..constants import DEFAULT_SEARCH_PAGE, DEFAULT_SEARCH_PAGE_SIZE
from ..exceptions import ConfigurationError, QueryValidationError
from ..observability import (
    HealthChecker,
    MetricsCollector,
    bind_data_context,
    check_backend_health,
    timed_operation,
)
from ..observability import get_logger as get_contextual_logger
from .batch import BatchEngine
from .catalog import CollectionCatalog, DefinitionInput, data_space
from .connection import ConnectionManager
from .documents import DocumentStore
from .interfaces import BlobStorage, CollectionScope, OperationCheck, QuotaGuard
from .query import QueryTranslator
from .search import SearchEngine
from .types import CollectionDefinition, Document, QueryResult, QuerySpec

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class DataService:
    """
    Provider-agnostic data access.

    Routes schema operations to the collection catalog and data operations to
    the document store, batch engine, query translator and search engine. Data
    operations accept a collection's logical id, backend reference or name.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        backend: Optional[DocumentBackend] = None,
        blob_storage: Optional[BlobStorage] = None,
        quota_guard: Optional[QuotaGuard] = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            config: Backend selection and connection settings
            backend: Backend instance to use instead of create_backend(config)
            blob_storage: Image/file storage collaborator (optional)
            quota_guard: Usage-quota collaborator (optional)
        """
        self.config = config
        self.backend = backend if backend is not None else create_backend(config)
        self.blob_storage = blob_storage
        self.quota_guard = quota_guard
        self.metrics = MetricsCollector()

        allow_non_atomic = config.allow_non_atomic_batches
        self._connection_manager = ConnectionManager(self.backend)
        self.catalog = CollectionCatalog(self.backend, allow_non_atomic)
        self.documents = DocumentStore(self.backend)
        self.batches = BatchEngine(self.backend, allow_non_atomic)
        self.queries = QueryTranslator(self.backend)
        self.search = SearchEngine(self.backend)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._connection_manager.connected

    @timed_operation("connection.connect")
    async def connect(self, credentials: Optional[Mapping[str, Any]] = None) -> None:
        """
        Connect the backend. Concurrent calls share one attempt.

        Args:
            credentials: Overrides the credentials from the configuration
        """
        await self._connection_manager.connect(credentials)

    @timed_operation("connection.disconnect")
    async def disconnect(self) -> None:
        await self._connection_manager.disconnect()

    async def __aenter__(self) -> "DataService":
        """
        Async context manager entry.

        Connects the backend when entering the context.
        """
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        """Disconnects the backend when leaving the context."""
        await self.disconnect()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def _resolve(self, collection_id: str) -> CollectionDefinition:
        definition = await self.catalog.resolve(collection_id)
        bind_data_context(collection_id=definition.id)
        return definition

    @timed_operation("collection.get")
    async def get_collection(self, collection_id: str) -> CollectionDefinition:
        return await self.catalog.get(collection_id)

    @timed_operation("collection.get_many")
    async def get_collections(self, names: Iterable[str]) -> list[CollectionDefinition]:
        return await self.catalog.get_many(names)

    @timed_operation("collection.list")
    async def list_collections(self) -> list[CollectionDefinition]:
        return await self.catalog.list_all()

    @timed_operation("collection.create")
    async def create_collection(
        self,
        definition: DefinitionInput,
        seed_data: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> CollectionDefinition:
        created = await self.catalog.create(definition, seed_data)
        contextual_logger.info(
            "Collection ready",
            extra={"collection_id": created.id},
        )
        return created

    @timed_operation("collection.update")
    async def update_collection(
        self, collection_id: str, partial: DefinitionInput
    ) -> CollectionDefinition:
        return await self.catalog.update(collection_id, partial)

    @timed_operation("collection.delete")
    async def delete_collection(self, collection_id: str) -> None:
        await self.catalog.delete(collection_id)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @timed_operation("document.get")
    async def get_document(self, collection_id: str, document_id: str) -> Optional[Document]:
        definition = await self._resolve(collection_id)
        return await self.documents.get(data_space(definition), document_id)

    @timed_operation("document.create")
    async def create_document(self, collection_id: str, data: Mapping[str, Any]) -> Document:
        definition = await self._resolve(collection_id)
        return await self.documents.create(data_space(definition), data)

    @timed_operation("document.update")
    async def update_document(
        self, collection_id: str, document_id: str, data: Mapping[str, Any]
    ) -> Document:
        definition = await self._resolve(collection_id)
        return await self.documents.update(data_space(definition), document_id, data)

    @timed_operation("document.delete")
    async def delete_document(self, collection_id: str, document_id: str) -> None:
        definition = await self._resolve(collection_id)
        await self.documents.delete(data_space(definition), document_id)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    @timed_operation("batch.create")
    async def batch_create(
        self, collection_id: str, items: Sequence[Mapping[str, Any]]
    ) -> list[Document]:
        definition = await self._resolve(collection_id)
        return await self.batches.create_many(data_space(definition), items)

    @timed_operation("batch.update")
    async def batch_update(
        self, collection_id: str, updates: Sequence[Mapping[str, Any]]
    ) -> list[Document]:
        """Apply ``[{"id": ..., "fields": {...}}, ...]`` atomically."""
        definition = await self._resolve(collection_id)
        return await self.batches.update_many(data_space(definition), updates)

    @timed_operation("batch.delete")
    async def batch_delete(self, collection_id: str, ids: Sequence[str]) -> None:
        definition = await self._resolve(collection_id)
        await self.batches.delete_many(data_space(definition), ids)

    # ------------------------------------------------------------------
    # Query and search
    # ------------------------------------------------------------------

    def _check_hints(
        self, definition: CollectionDefinition, fields: Iterable[str], kind: str
    ) -> None:
        if not self.config.enforce_field_hints:
            return
        if kind == "search":
            allowed = set(definition.searchable_fields())
        else:
            allowed = set(definition.sortable_fields())
        for field_name in fields:
            if field_name not in allowed:
                raise QueryValidationError(
                    f"Field '{field_name}' is not {kind}able in collection '{definition.name}'",
                    query_type=kind,
                    field=field_name,
                )

    @timed_operation("query.execute")
    async def query_documents(
        self,
        collection_id: str,
        spec: Union[QuerySpec, Mapping[str, Any], None] = None,
    ) -> QueryResult:
        """
        Filter, sort and paginate a collection.

        See QuerySpec for the accepted operators; prefixContains matches
        values that start with the given text only.
        """
        definition = await self._resolve(collection_id)
        spec = QuerySpec.coerce(spec)
        self._check_hints(definition, spec.sort_fields(), "sort")
        return await self.queries.execute(data_space(definition), spec)

    @timed_operation("search.execute")
    async def search_documents(
        self,
        collection_id: str,
        text: str,
        fields: Sequence[str],
        page: int = DEFAULT_SEARCH_PAGE,
        page_size: int = DEFAULT_SEARCH_PAGE_SIZE,
    ) -> QueryResult:
        """Prefix search over several fields; see SearchEngine.search."""
        definition = await self._resolve(collection_id)
        if isinstance(fields, str):
            fields = [fields]
        self._check_hints(definition, fields, "search")
        return await self.search.search(data_space(definition), text, fields, page, page_size)

    # ------------------------------------------------------------------
    # Blob storage pass-throughs
    # ------------------------------------------------------------------

    def _blobs(self) -> BlobStorage:
        if self.blob_storage is None:
            raise ConfigurationError(
                "No blob storage configured for this service", config_key="blob_storage"
            )
        return self.blob_storage

    async def upload_image(
        self, image: Union[str, bytes], file_name: str, collection_id: CollectionScope = None
    ) -> dict[str, Any]:
        return await self._blobs().upload_image(image, file_name, collection_id)

    async def get_image(self, image_id: str, collection_id: CollectionScope = None):
        return await self._blobs().get_image(image_id, collection_id)

    async def get_image_metadata(self, image_id: str, collection_id: CollectionScope = None):
        return await self._blobs().get_image_metadata(image_id, collection_id)

    async def update_image(
        self, image_id: str, image: Union[str, bytes], collection_id: CollectionScope = None
    ) -> dict[str, Any]:
        return await self._blobs().update_image(image_id, image, collection_id)

    async def delete_image(self, image_id: str, collection_id: CollectionScope = None) -> None:
        await self._blobs().delete_image(image_id, collection_id)

    async def list_images(self, collection_id: CollectionScope = None) -> list[dict[str, Any]]:
        return await self._blobs().list_images(collection_id)

    async def upload_file(
        self, file: Union[str, bytes], file_name: str, folder_path: Optional[str] = None
    ) -> dict[str, Any]:
        return await self._blobs().upload_file(file, file_name, folder_path)

    async def get_file(self, file_id: str, folder_path: Optional[str] = None):
        return await self._blobs().get_file(file_id, folder_path)

    async def get_file_metadata(self, file_id: str, folder_path: Optional[str] = None):
        return await self._blobs().get_file_metadata(file_id, folder_path)

    async def update_file(
        self, file_id: str, file: Union[str, bytes], folder_path: Optional[str] = None
    ) -> dict[str, Any]:
        return await self._blobs().update_file(file_id, file, folder_path)

    async def delete_file(self, file_id: str, folder_path: Optional[str] = None) -> None:
        await self._blobs().delete_file(file_id, folder_path)

    async def list_files(self, folder_path: Optional[str] = None) -> list[dict[str, Any]]:
        return await self._blobs().list_files(folder_path)

    # ------------------------------------------------------------------
    # Quota pass-throughs
    # ------------------------------------------------------------------

    def _quota(self) -> QuotaGuard:
        if self.quota_guard is None:
            raise ConfigurationError(
                "No quota guard configured for this service", config_key="quota_guard"
            )
        return self.quota_guard

    async def check_operation_feasibility(self, operation: OperationCheck) -> dict[str, Any]:
        """Advisory pre-flight check; nothing is enforced."""
        return await self._quota().check_operation_feasibility(operation)

    async def get_usage_stats(self) -> dict[str, Any]:
        return await self._quota().get_usage_stats()

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    async def get_health_status(self) -> dict[str, Any]:
        """
        Get health status of the service.

        Returns:
            Dictionary with overall status and the backend check
        """
        health_checker = HealthChecker()
        health_checker.register_check(lambda: check_backend_health(self.backend))
        return await health_checker.check_all()

    def get_metrics(self) -> dict[str, Any]:
        """
        Get metrics for this service.

        Returns:
            Dictionary with operation metrics aggregated by operation name
        """
        return self.metrics.get_summary()


def create_service(
    config: DatabaseConfig,
    blob_storage: Optional[BlobStorage] = None,
    quota_guard: Optional[QuotaGuard] = None,
) -> DataService:
    """
    Validate ``config`` and build a DataService for it.

    Raises:
        ConfigurationError: If the backend type is unknown
        InvalidCredentialsError: If required credentials are missing
    """
    config.validate()
    logger.debug(f"Creating data service for {config!r}")
    return DataService(config, blob_storage=blob_storage, quota_guard=quota_guard)
