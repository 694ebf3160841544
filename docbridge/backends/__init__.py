"""
Backend adapters.

Each adapter implements the DocumentBackend primitives for one store;
create_backend() picks the adapter from a DatabaseConfig's type tag.
"""

from ..config import DatabaseConfig, normalize_backend_type
from ..constants import BACKEND_FIREBASE, BACKEND_MEMORY, BACKEND_MONGODB, SUPPORTED_BACKENDS
from ..exceptions import ConfigurationError
from .base import (
    BackendCapabilities,
    Condition,
    DocumentBackend,
    NativeQuery,
    SortKey,
    WriteOp,
)
from .firestore import FirestoreBackend
from .memory import InMemoryBackend
from .mongo import MongoBackend

BACKENDS: dict[str, type[DocumentBackend]] = {
    BACKEND_FIREBASE: FirestoreBackend,
    BACKEND_MONGODB: MongoBackend,
    BACKEND_MEMORY: InMemoryBackend,
}


def create_backend(config: DatabaseConfig) -> DocumentBackend:
    """
    Instantiate the backend adapter named by ``config.type``.

    Raises:
        ConfigurationError: If the tag names no known backend
    """
    backend_type = normalize_backend_type(config.type)
    backend_class = BACKENDS.get(backend_type)
    if backend_class is None:
        raise ConfigurationError(
            f"Unsupported database type '{config.type}'. "
            f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}",
            config_key="type",
            config_value=config.type,
        )
    return backend_class(config)


__all__ = [
    "BACKENDS",
    "BackendCapabilities",
    "Condition",
    "DocumentBackend",
    "FirestoreBackend",
    "InMemoryBackend",
    "MongoBackend",
    "NativeQuery",
    "SortKey",
    "WriteOp",
    "create_backend",
]
