"""
Constants for DOCBRIDGE.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from typing import Final

# ============================================================================
# BACKEND CONSTANTS
# ============================================================================

BACKEND_FIREBASE: Final[str] = "firebase"
"""Configuration tag for the Firestore backend."""

BACKEND_MONGODB: Final[str] = "mongodb"
"""Configuration tag for the MongoDB backend."""

BACKEND_MEMORY: Final[str] = "memory"
"""Configuration tag for the in-process backend."""

SUPPORTED_BACKENDS: Final[tuple[str, ...]] = (
    BACKEND_FIREBASE,
    BACKEND_MONGODB,
    BACKEND_MEMORY,
)
"""Backend tags accepted by the backend factory."""

FIRESTORE_BACKEND_ALIASES: Final[tuple[str, ...]] = ("firestore",)
"""Alternative spellings accepted for the Firestore backend tag."""

MONGO_BACKEND_ALIASES: Final[tuple[str, ...]] = ("mongo",)
"""Alternative spellings accepted for the MongoDB backend tag."""

# Connection defaults
DEFAULT_MAX_POOL_SIZE: Final[int] = 50
"""Default maximum MongoDB connection pool size."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 10
"""Default minimum MongoDB connection pool size."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""

MONGO_APP_NAME: Final[str] = "DOCBRIDGE"
"""Application name reported to MongoDB."""

DEFAULT_MONGO_DATABASE: Final[str] = "docbridge"
"""Database used when neither the config nor the URI names one."""

# ============================================================================
# CATALOG CONSTANTS
# ============================================================================

COLLECTIONS_SPACE: Final[str] = "collections"
"""Reserved data space holding collection definitions."""

MAX_IN_QUERY_VALUES: Final[int] = 30
"""Maximum values per membership query (Firestore 'in' operator limit)."""

PROTECTED_COLLECTION_KEYS: Final[tuple[str, ...]] = ("id", "ref", "fid", "created_at", "createdAt")
"""Collection definition keys that updates may never overwrite."""

CATALOG_ID_FIELD: Final[str] = "collection_id"
"""Key under which a catalog record stores the collection's logical id."""

# ============================================================================
# DOCUMENT CONSTANTS
# ============================================================================

ID_FIELD: Final[str] = "id"
"""Field under which every backend surfaces the document identity."""

CREATED_AT_FIELD: Final[str] = "created_at"
"""Field stamped once when a document is created."""

UPDATED_AT_FIELD: Final[str] = "updated_at"
"""Field re-stamped on every write."""

STORE_MANAGED_FIELDS: Final[tuple[str, ...]] = (
    ID_FIELD,
    CREATED_AT_FIELD,
    UPDATED_AT_FIELD,
)
"""Fields stamped by the store that callers cannot supply."""

MONGO_ID_FIELD: Final[str] = "_id"
"""MongoDB primary key field."""

# ============================================================================
# IDENTITY CONSTANTS
# ============================================================================

SHORT_ID_LENGTH: Final[int] = 10
"""Length of generated short identifiers."""

COLLECTION_ID_SUFFIX_LENGTH: Final[int] = 7
"""Length of the random suffix appended to collection logical ids."""

ID_ALPHABET: Final[str] = "0123456789abcdefghijklmnopqrstuvwxyz"
"""Base-36 alphabet used for generated identifiers."""

# ============================================================================
# QUERY CONSTANTS
# ============================================================================

PREFIX_UPPER_BOUND: Final[str] = "\uf8ff"
"""High code point appended to a prefix to close a lexicographic range."""

DEFAULT_SEARCH_PAGE: Final[int] = 1
"""Default search page (1-based)."""

DEFAULT_SEARCH_PAGE_SIZE: Final[int] = 10
"""Default number of documents per search page."""

# ============================================================================
# BATCH CONSTANTS
# ============================================================================

FIRESTORE_MAX_BATCH_SIZE: Final[int] = 500
"""Maximum number of writes in a single Firestore batch."""
