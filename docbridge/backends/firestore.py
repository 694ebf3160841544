"""
Firestore backend.

Maps the uniform contract onto google-cloud-firestore's AsyncClient. Data
spaces are top-level collections; document identities are Firestore document
ids. Batches use WriteBatch (atomic, at most 500 writes) and pagination
resumes from a document snapshot cursor.

Credentials:
    project_id        required
    credentials_path  service account JSON file (otherwise ADC is used)
    api_key           API key sent with every request when no service
                      account is given

The FIRESTORE_EMULATOR_HOST environment variable is honoured by the client
library itself.
"""

import logging
from typing import Any

from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from ..constants import BACKEND_FIREBASE, COLLECTIONS_SPACE, FIRESTORE_MAX_BATCH_SIZE, ID_FIELD
from ..exceptions import NotConnectedError, NotFoundError
from .base import BackendCapabilities, DocumentBackend, NativeQuery, WriteOp

logger = logging.getLogger(__name__)

# Firestore's reserved path for the document id in filters and ordering
_DOCUMENT_ID_PATH = "__name__"


class FirestoreBackend(DocumentBackend):
    """Firestore-backed document store."""

    name = BACKEND_FIREBASE
    capabilities = BackendCapabilities(
        atomic_batches=True,
        cursor_pagination=True,
        max_batch_size=FIRESTORE_MAX_BATCH_SIZE,
    )

    def __init__(self, config=None):
        super().__init__(config)
        self._db: firestore.AsyncClient | None = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def _open(self, credentials: dict[str, Any]) -> None:
        project_id = credentials["project_id"]
        database = (self.config.database if self.config else None) or "(default)"
        params: dict[str, Any] = {"project": project_id, "database": database}

        try:
            if credentials.get("credentials_path"):
                params["credentials"] = service_account.Credentials.from_service_account_file(
                    credentials["credentials_path"]
                )
            elif credentials.get("api_key"):
                params["client_options"] = {"api_key": credentials["api_key"]}
            self._db = firestore.AsyncClient(**params)
        except (GoogleAPICallError, OSError, ValueError) as e:
            raise self._failure("connect", e, project_id=project_id) from e

        logger.info(f"Firestore client created for project '{project_id}' ({database})")

    async def disconnect(self) -> None:
        if self._db is None:
            return
        self._db.close()
        self._db = None
        logger.info("Firestore client closed")

    @property
    def connected(self) -> bool:
        return self._db is not None

    async def ping(self) -> None:
        db = self._client()
        try:
            await db.collection(COLLECTIONS_SPACE).limit(1).get()
        except GoogleAPICallError as e:
            raise self._failure("ping", e) from e

    def _client(self) -> firestore.AsyncClient:
        if self._db is None:
            raise NotConnectedError(backend=self.name)
        return self._db

    @staticmethod
    def _surface(snapshot) -> dict[str, Any]:
        data = snapshot.to_dict() or {}
        data[ID_FIELD] = snapshot.id
        return data

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def new_ref(self, space: str) -> str:
        return self._client().collection(space).document().id

    async def get(self, space: str, ref: str) -> dict[str, Any] | None:
        doc_ref = self._client().collection(space).document(ref)
        try:
            snapshot = await doc_ref.get()
        except GoogleAPICallError as e:
            raise self._failure("get", e, space=space, ref=ref) from e
        if not snapshot.exists:
            return None
        return self._surface(snapshot)

    async def set(self, space: str, ref: str, data: dict[str, Any]) -> None:
        doc_ref = self._client().collection(space).document(ref)
        try:
            await doc_ref.set(dict(data))
        except GoogleAPICallError as e:
            raise self._failure("set", e, space=space, ref=ref) from e

    async def update(self, space: str, ref: str, data: dict[str, Any]) -> bool:
        doc_ref = self._client().collection(space).document(ref)
        try:
            await doc_ref.update(dict(data))
        except NotFound:
            return False
        except GoogleAPICallError as e:
            raise self._failure("update", e, space=space, ref=ref) from e
        return True

    async def delete(self, space: str, ref: str) -> None:
        doc_ref = self._client().collection(space).document(ref)
        try:
            await doc_ref.delete()
        except GoogleAPICallError as e:
            raise self._failure("delete", e, space=space, ref=ref) from e

    def _build_query(self, space: str, query: NativeQuery | None):
        collection = self._client().collection(space)
        native = collection
        if query is None:
            return native
        for condition in query.conditions:
            if condition.field == ID_FIELD:
                if condition.op == "in":
                    value = [collection.document(ref) for ref in condition.value]
                else:
                    value = collection.document(condition.value)
                native = native.where(filter=FieldFilter(_DOCUMENT_ID_PATH, condition.op, value))
            else:
                native = native.where(
                    filter=FieldFilter(condition.field, condition.op, condition.value)
                )
        for key in query.order:
            path = _DOCUMENT_ID_PATH if key.field == ID_FIELD else key.field
            direction = firestore.Query.DESCENDING if key.descending else firestore.Query.ASCENDING
            native = native.order_by(path, direction=direction)
        return native

    async def find(
        self,
        space: str,
        query: NativeQuery | None = None,
        *,
        limit: int | None = None,
        skip: int = 0,
        start_after: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        native = self._build_query(space, query)
        try:
            if start_after is not None:
                native = await self._resume_after(space, native, query, start_after)
            if skip:
                native = native.offset(skip)
            if limit is not None:
                native = native.limit(limit)
            snapshots = await native.get()
        except GoogleAPICallError as e:
            raise self._failure("find", e, space=space) from e
        return [self._surface(snapshot) for snapshot in snapshots]

    async def _resume_after(self, space: str, native, query: NativeQuery | None, document):
        """
        Continue ``native`` strictly after ``document``.

        Uses the document's snapshot while it exists. Once it is gone the
        cursor is rebuilt from its sort values, with the document name as the
        final key so ties (or an unordered query) still resume at the right
        place.
        """
        collection = self._client().collection(space)
        doc_ref = collection.document(document[ID_FIELD])
        snapshot = await doc_ref.get()
        if snapshot.exists:
            return native.start_after(snapshot)

        order = query.order if query else []
        cursor = {}
        for key in order:
            if key.field == ID_FIELD:
                cursor[_DOCUMENT_ID_PATH] = doc_ref
            else:
                cursor[key.field] = document.get(key.field)
        if _DOCUMENT_ID_PATH not in cursor:
            # Firestore breaks ties on the name in the direction of the last key
            descending = bool(order) and order[-1].descending
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            native = native.order_by(_DOCUMENT_ID_PATH, direction=direction)
            cursor[_DOCUMENT_ID_PATH] = doc_ref
        return native.start_after(cursor)

    async def count(self, space: str, query: NativeQuery | None = None) -> int:
        native = self._build_query(space, query)
        try:
            results = await native.count(alias="total").get()
        except GoogleAPICallError as e:
            raise self._failure("count", e, space=space) from e
        return int(results[0][0].value) if results and results[0] else 0

    async def commit(self, ops: list[WriteOp]) -> None:
        db = self._client()
        if not ops:
            return

        batch = db.batch()
        for op in ops:
            doc_ref = db.collection(op.space).document(op.ref)
            if op.kind == "set":
                batch.set(doc_ref, dict(op.data or {}))
            elif op.kind == "update":
                batch.update(doc_ref, dict(op.data or {}))
            elif op.kind == "delete":
                batch.delete(doc_ref)
            else:
                raise ValueError(f"Unknown write kind '{op.kind}'")

        try:
            await batch.commit()
        except NotFound as e:
            raise NotFoundError(f"Batch target not found: {e.message}") from e
        except GoogleAPICallError as e:
            raise self._failure("commit", e, writes=len(ops)) from e
