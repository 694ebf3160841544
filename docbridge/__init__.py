"""
DOCBRIDGE - Document Data Bridge

Provider-agnostic data access over document stores: one collection catalog,
document CRUD, atomic batches, generic queries and prefix search, executed on
Firestore, MongoDB or an in-memory backend.
"""

# Backends
from .backends import (DocumentBackend, FirestoreBackend, InMemoryBackend,
                       MongoBackend, create_backend)
# Configuration
from .config import DatabaseConfig
# Core service
from .core.service import DataService, create_service
from .core.types import (CollectionDefinition, CollectionSettings,
                         FieldDefinition, FieldType, QueryResult, QuerySpec)
# Errors
from .exceptions import (BackendFailureError, CapabilityError,
                         ConfigurationError, DocBridgeError,
                         DuplicateCollectionError, InvalidCredentialsError,
                         NotConnectedError, NotFoundError,
                         PayloadValidationError, QueryValidationError,
                         SeedingError)

__version__ = "0.1.0"

__all__ = [
    # Core
    "DataService",
    "create_service",
    "DatabaseConfig",
    # Types
    "CollectionDefinition",
    "CollectionSettings",
    "FieldDefinition",
    "FieldType",
    "QuerySpec",
    "QueryResult",
    # Backends
    "DocumentBackend",
    "InMemoryBackend",
    "MongoBackend",
    "FirestoreBackend",
    "create_backend",
    # Errors
    "DocBridgeError",
    "ConfigurationError",
    "InvalidCredentialsError",
    "NotConnectedError",
    "NotFoundError",
    "DuplicateCollectionError",
    "QueryValidationError",
    "PayloadValidationError",
    "CapabilityError",
    "BackendFailureError",
    "SeedingError",
]
