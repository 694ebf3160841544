"""
MongoDB backend.

Maps the uniform contract onto motor. Document identities are stored in
``_id`` as strings (generated ObjectIds) and surfaced as ``id``. Batches run
inside a multi-document transaction, which requires a replica set or mongos;
on a standalone server set mongo_transactions=False and opt into best-effort
batches with allow_non_atomic_batches.

This module is part of DOCBRIDGE.
"""

import logging
import time
from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import OperationFailure, PyMongoError

from ..config import DatabaseConfig
from ..constants import (
    BACKEND_MONGODB,
    DEFAULT_MAX_IDLE_TIME_MS,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_MONGO_DATABASE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    ID_FIELD,
    MONGO_APP_NAME,
    MONGO_ID_FIELD,
)
from ..exceptions import BackendFailureError, CapabilityError, NotConnectedError, NotFoundError
from ..observability import get_logger as get_contextual_logger
from .base import BackendCapabilities, DocumentBackend, NativeQuery, WriteOp

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)

_OPERATORS = {"==": "$eq", ">": "$gt", "<": "$lt", ">=": "$gte", "<=": "$lte", "in": "$in"}

# Server error codes meaning "transactions are not available on this deployment"
_TRANSACTIONS_UNSUPPORTED_CODES = (20, 263)


def _to_native_field(field_name: str) -> str:
    return MONGO_ID_FIELD if field_name == ID_FIELD else field_name


def build_filter(query: NativeQuery | None) -> dict[str, Any]:
    """
    Translate compiled conditions into a MongoDB filter document.

    Conditions on the same field are merged ({"age": {"$gt": 1, "$lt": 9}});
    a repeated operator on one field falls back to an explicit $and.
    """
    if query is None or not query.conditions:
        return {}

    merged: dict[str, dict[str, Any]] = {}
    for condition in query.conditions:
        native_field = _to_native_field(condition.field)
        operator = _OPERATORS[condition.op]
        clauses = merged.setdefault(native_field, {})
        if operator in clauses:
            return {
                "$and": [
                    {_to_native_field(c.field): {_OPERATORS[c.op]: c.value}}
                    for c in query.conditions
                ]
            }
        clauses[operator] = condition.value
    return merged


def build_sort(query: NativeQuery | None) -> list[tuple[str, int]]:
    if query is None:
        return []
    return [
        (_to_native_field(key.field), DESCENDING if key.descending else ASCENDING)
        for key in query.order
    ]


def from_mongo(document: dict[str, Any]) -> dict[str, Any]:
    """Surface ``_id`` as the string identity field."""
    data = dict(document)
    data[ID_FIELD] = str(data.pop(MONGO_ID_FIELD))
    return data


class MongoBackend(DocumentBackend):
    """
    Motor-backed document store.

    Capabilities depend on configuration: with mongo_transactions (default)
    batches are atomic; without it commit() applies writes in order and stops
    at the first failure.
    """

    name = BACKEND_MONGODB

    def __init__(self, config: DatabaseConfig | None = None):
        super().__init__(config)
        transactions = config.mongo_transactions if config is not None else True
        self.capabilities = BackendCapabilities(
            atomic_batches=transactions, cursor_pagination=False
        )
        self._client: AsyncIOMotorClient | None = None
        self._db: AsyncIOMotorDatabase | None = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def _open(self, credentials: dict[str, Any]) -> None:
        start_time = time.time()
        uri = credentials["uri"]
        max_pool_size = self.config.max_pool_size if self.config else DEFAULT_MAX_POOL_SIZE
        min_pool_size = self.config.min_pool_size if self.config else DEFAULT_MIN_POOL_SIZE

        contextual_logger.info(
            "Connecting to MongoDB",
            extra={"max_pool_size": max_pool_size, "min_pool_size": min_pool_size},
        )

        client: AsyncIOMotorClient | None = None
        try:
            client = AsyncIOMotorClient(
                uri,
                serverSelectionTimeoutMS=DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
                appname=MONGO_APP_NAME,
                maxPoolSize=max_pool_size,
                minPoolSize=min_pool_size,
                maxIdleTimeMS=DEFAULT_MAX_IDLE_TIME_MS,
                retryWrites=True,
                retryReads=True,
                tz_aware=True,
            )
            await client.admin.command("ping")
        except PyMongoError as e:
            if client is not None:
                client.close()
            contextual_logger.critical(
                "MongoDB connection failed",
                extra={"error_type": type(e).__name__, "error": str(e)},
                exc_info=True,
            )
            raise BackendFailureError(
                f"Failed to connect to MongoDB: {e}",
                backend=self.name,
                operation="connect",
                native_message=str(e),
            ) from e

        database = self.config.database if self.config else None
        self._client = client
        self._db = client[database] if database else client.get_default_database(
            DEFAULT_MONGO_DATABASE
        )

        duration_ms = (time.time() - start_time) * 1000
        contextual_logger.info(
            "MongoDB connection established",
            extra={
                "db_name": self._db.name,
                "pool_size": f"{min_pool_size}-{max_pool_size}",
                "duration_ms": round(duration_ms, 2),
            },
        )

    async def disconnect(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        self._db = None
        contextual_logger.info("MongoDB connection closed.")

    @property
    def connected(self) -> bool:
        return self._db is not None

    async def ping(self) -> None:
        self._database()
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            raise self._failure("ping", e) from e

    def _database(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            raise NotConnectedError(backend=self.name)
        return self._db

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def new_ref(self, space: str) -> str:
        self._database()
        return str(ObjectId())

    async def get(self, space: str, ref: str) -> dict[str, Any] | None:
        collection = self._database()[space]
        try:
            document = await collection.find_one({MONGO_ID_FIELD: ref})
        except PyMongoError as e:
            raise self._failure("get", e, space=space, ref=ref) from e
        return from_mongo(document) if document is not None else None

    async def set(self, space: str, ref: str, data: dict[str, Any]) -> None:
        collection = self._database()[space]
        try:
            await collection.replace_one({MONGO_ID_FIELD: ref}, dict(data), upsert=True)
        except PyMongoError as e:
            raise self._failure("set", e, space=space, ref=ref) from e

    async def update(self, space: str, ref: str, data: dict[str, Any]) -> bool:
        collection = self._database()[space]
        try:
            result = await collection.update_one({MONGO_ID_FIELD: ref}, {"$set": dict(data)})
        except PyMongoError as e:
            raise self._failure("update", e, space=space, ref=ref) from e
        return result.matched_count > 0

    async def delete(self, space: str, ref: str) -> None:
        collection = self._database()[space]
        try:
            await collection.delete_one({MONGO_ID_FIELD: ref})
        except PyMongoError as e:
            raise self._failure("delete", e, space=space, ref=ref) from e

    async def find(
        self,
        space: str,
        query: NativeQuery | None = None,
        *,
        limit: int | None = None,
        skip: int = 0,
        start_after: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        # start_after is ignored: cursor_pagination is False, callers use skip
        collection = self._database()[space]
        cursor = collection.find(build_filter(query))
        sort = build_sort(query)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit is not None:
            cursor = cursor.limit(limit)
        try:
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise self._failure("find", e, space=space) from e
        return [from_mongo(doc) for doc in documents]

    async def count(self, space: str, query: NativeQuery | None = None) -> int:
        collection = self._database()[space]
        try:
            return await collection.count_documents(build_filter(query))
        except PyMongoError as e:
            raise self._failure("count", e, space=space) from e

    async def commit(self, ops: list[WriteOp]) -> None:
        database = self._database()
        client = self._client
        if not ops:
            return

        try:
            if self.capabilities.atomic_batches:
                async with await client.start_session() as session:
                    async with session.start_transaction():
                        for op in ops:
                            await self._apply(database, op, session)
            else:
                for op in ops:
                    await self._apply(database, op, None)
        except OperationFailure as e:
            if e.code in _TRANSACTIONS_UNSUPPORTED_CODES:
                raise CapabilityError(
                    "MongoDB deployment does not support transactions; "
                    "set mongo_transactions=False and allow_non_atomic_batches=True",
                    backend=self.name,
                    capability="atomic_batches",
                ) from e
            raise self._failure("commit", e, writes=len(ops)) from e
        except PyMongoError as e:
            raise self._failure("commit", e, writes=len(ops)) from e

    async def _apply(self, database: AsyncIOMotorDatabase, op: WriteOp, session) -> None:
        collection = database[op.space]
        if op.kind == "set":
            await collection.replace_one(
                {MONGO_ID_FIELD: op.ref}, dict(op.data or {}), upsert=True, session=session
            )
        elif op.kind == "update":
            result = await collection.update_one(
                {MONGO_ID_FIELD: op.ref}, {"$set": dict(op.data or {})}, session=session
            )
            if result.matched_count == 0:
                raise NotFoundError(
                    f"Document '{op.ref}' not found", collection_id=op.space, document_id=op.ref
                )
        elif op.kind == "delete":
            await collection.delete_one({MONGO_ID_FIELD: op.ref}, session=session)
        else:
            raise ValueError(f"Unknown write kind '{op.kind}'")
