"""
Configuration management for DOCBRIDGE.

DatabaseConfig selects the backend (by configuration tag) and carries its
credentials. It can be built directly or from environment variables.

Example:
    # Direct parameters
    config = DatabaseConfig(
        type="mongodb",
        credentials={"uri": "mongodb://localhost:27017"},
        database="cms",
    )

    # Environment variables (DOCBRIDGE_BACKEND, MONGO_URI, DB_NAME, ...)
    config = DatabaseConfig.from_env()
"""

import os
from typing import Any, Dict, Mapping, Optional

from .constants import (
    BACKEND_FIREBASE,
    BACKEND_MEMORY,
    BACKEND_MONGODB,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    FIRESTORE_BACKEND_ALIASES,
    MONGO_BACKEND_ALIASES,
    SUPPORTED_BACKENDS,
)
from .exceptions import ConfigurationError, InvalidCredentialsError

# Credential fields that must be present (and non-empty) per backend
REQUIRED_CREDENTIALS: Dict[str, tuple] = {
    BACKEND_FIREBASE: ("project_id",),
    BACKEND_MONGODB: ("uri",),
    BACKEND_MEMORY: (),
}

# camelCase keys used by web SDK configs, accepted for convenience
_CREDENTIAL_ALIASES = {
    "apiKey": "api_key",
    "appId": "app_id",
    "projectId": "project_id",
    "authDomain": "auth_domain",
    "storageBucket": "storage_bucket",
    "messagingSenderId": "messaging_sender_id",
    "measurementId": "measurement_id",
}


def normalize_backend_type(backend_type: str) -> str:
    """
    Normalize a backend configuration tag.

    Args:
        backend_type: Tag as supplied by the caller (e.g. "MongoDB", "firestore")

    Returns:
        Canonical tag (one of SUPPORTED_BACKENDS), or the lower-cased input
        if it is not recognised
    """
    tag = (backend_type or "").strip().lower()
    if tag in FIRESTORE_BACKEND_ALIASES:
        return BACKEND_FIREBASE
    if tag in MONGO_BACKEND_ALIASES:
        return BACKEND_MONGODB
    return tag


def normalize_credentials(credentials: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Convert camelCase credential keys to snake_case and drop empty values."""
    normalized: Dict[str, Any] = {}
    for key, value in (credentials or {}).items():
        if value is None or value == "":
            continue
        normalized[_CREDENTIAL_ALIASES.get(key, key)] = value
    return normalized


def missing_credentials(backend_type: str, credentials: Mapping[str, Any]) -> list:
    """Return the required credential fields absent from ``credentials``."""
    required = REQUIRED_CREDENTIALS.get(normalize_backend_type(backend_type), ())
    return [name for name in required if not credentials.get(name)]


class DatabaseConfig:
    """
    Backend selection and connection settings.

    Attributes:
        type: Backend tag (firebase, mongodb, memory)
        credentials: Backend-specific credentials (snake_case keys)
        database: Database name (MongoDB database / Firestore database id)
        max_pool_size: Maximum MongoDB connection pool size
        min_pool_size: Minimum MongoDB connection pool size
        mongo_transactions: Run MongoDB batches inside a multi-document transaction
        allow_non_atomic_batches: Accept best-effort batches on backends that
            cannot commit atomically
        enforce_field_hints: Reject search/sort fields not flagged
            is_searchable/is_sortable in the collection definition
    """

    def __init__(
        self,
        type: str,
        credentials: Optional[Mapping[str, Any]] = None,
        database: Optional[str] = None,
        max_pool_size: int = DEFAULT_MAX_POOL_SIZE,
        min_pool_size: int = DEFAULT_MIN_POOL_SIZE,
        mongo_transactions: bool = True,
        allow_non_atomic_batches: bool = False,
        enforce_field_hints: bool = False,
    ):
        self.type = normalize_backend_type(type)
        self.credentials = normalize_credentials(credentials)
        self.database = database
        self.max_pool_size = max_pool_size
        self.min_pool_size = min_pool_size
        self.mongo_transactions = mongo_transactions
        self.allow_non_atomic_batches = allow_non_atomic_batches
        self.enforce_field_hints = enforce_field_hints

    @classmethod
    def from_env(cls, **overrides: Any) -> "DatabaseConfig":
        """
        Build a configuration from environment variables.

        Reads DOCBRIDGE_BACKEND (default "mongodb"), MONGO_URI, DB_NAME,
        FIREBASE_PROJECT_ID, FIREBASE_API_KEY, FIREBASE_DATABASE and
        GOOGLE_APPLICATION_CREDENTIALS. Keyword arguments override the
        environment.

        Returns:
            DatabaseConfig instance (not yet validated)
        """
        backend_type = normalize_backend_type(os.getenv("DOCBRIDGE_BACKEND", BACKEND_MONGODB))

        if backend_type == BACKEND_FIREBASE:
            credentials = {
                "project_id": os.getenv("FIREBASE_PROJECT_ID", ""),
                "api_key": os.getenv("FIREBASE_API_KEY", ""),
                "credentials_path": os.getenv("GOOGLE_APPLICATION_CREDENTIALS", ""),
            }
            database = os.getenv("FIREBASE_DATABASE") or None
        else:
            credentials = {"uri": os.getenv("MONGO_URI", "")}
            database = os.getenv("DB_NAME") or None

        params: Dict[str, Any] = {
            "type": backend_type,
            "credentials": credentials,
            "database": database,
            "max_pool_size": int(os.getenv("MONGO_MAX_POOL_SIZE", str(DEFAULT_MAX_POOL_SIZE))),
            "min_pool_size": int(os.getenv("MONGO_MIN_POOL_SIZE", str(DEFAULT_MIN_POOL_SIZE))),
            "mongo_transactions": os.getenv("DOCBRIDGE_MONGO_TRANSACTIONS", "true").lower()
            == "true",
            "allow_non_atomic_batches": os.getenv(
                "DOCBRIDGE_ALLOW_NON_ATOMIC_BATCHES", "false"
            ).lower()
            == "true",
            "enforce_field_hints": os.getenv("DOCBRIDGE_ENFORCE_FIELD_HINTS", "false").lower()
            == "true",
        }
        params.update(overrides)
        return cls(**params)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If the backend tag or pool sizes are invalid
            InvalidCredentialsError: If required credential fields are missing
        """
        if self.type not in SUPPORTED_BACKENDS:
            raise ConfigurationError(
                f"Unsupported database type '{self.type}'. "
                f"Expected one of: {', '.join(SUPPORTED_BACKENDS)}",
                config_key="type",
                config_value=self.type,
            )

        missing = missing_credentials(self.type, self.credentials)
        if missing:
            raise InvalidCredentialsError(
                f"Missing required credentials for {self.type}: {', '.join(missing)}",
                backend=self.type,
                missing_fields=missing,
            )

        if self.max_pool_size < 1:
            raise ConfigurationError(
                f"max_pool_size must be >= 1, got {self.max_pool_size}",
                config_key="max_pool_size",
                config_value=self.max_pool_size,
            )

        if self.min_pool_size < 1:
            raise ConfigurationError(
                f"min_pool_size must be >= 1, got {self.min_pool_size}",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

        if self.min_pool_size > self.max_pool_size:
            raise ConfigurationError(
                f"min_pool_size ({self.min_pool_size}) cannot be greater than "
                f"max_pool_size ({self.max_pool_size})",
                config_key="min_pool_size",
                config_value=self.min_pool_size,
            )

    def __repr__(self) -> str:
        # Credentials are never printed
        return (
            f"DatabaseConfig(type={self.type!r}, database={self.database!r}, "
            f"credentials={sorted(self.credentials)!r})"
        )
