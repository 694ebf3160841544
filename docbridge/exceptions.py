"""
Custom exceptions for DOCBRIDGE.

Every error raised by the package derives from DocBridgeError, which keeps
compatibility with RuntimeError and carries an optional context dictionary
(backend, collection, document id, ...).
"""

from typing import Any, Dict, List, Optional


class DocBridgeError(RuntimeError):
    """
    Base exception for DOCBRIDGE errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (backend,
                 collection_id, document_id, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ConfigurationError(DocBridgeError):
    """
    Raised when configuration is invalid or missing.

    Also raised when the service is asked to forward a call to a collaborator
    (blob storage, quota guard) that was never configured.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class InvalidCredentialsError(DocBridgeError):
    """
    Raised when a connect attempt lacks the backend's required credentials.

    Attributes:
        message: Error message
        backend: Backend tag (firebase, mongodb, ...)
        missing_fields: Credential fields that were absent or empty
    """

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        missing_fields: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if backend:
            context["backend"] = backend
        if missing_fields:
            context["missing_fields"] = missing_fields
        super().__init__(message, context=context)
        self.backend = backend
        self.missing_fields = missing_fields or []


class NotConnectedError(DocBridgeError):
    """Raised when an operation runs before connect() or after disconnect()."""

    def __init__(
        self,
        message: str = "Database not connected",
        backend: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if backend:
            context["backend"] = backend
        super().__init__(message, context=context)
        self.backend = backend


class NotFoundError(DocBridgeError):
    """
    Raised when a collection or document cannot be found by its identity.

    Attributes:
        message: Error message
        collection_id: Collection that was looked up (or that holds the document)
        document_id: Document that was looked up (if any)
    """

    def __init__(
        self,
        message: str,
        collection_id: Optional[str] = None,
        document_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if collection_id:
            context["collection_id"] = collection_id
        if document_id:
            context["document_id"] = document_id
        super().__init__(message, context=context)
        self.collection_id = collection_id
        self.document_id = document_id


class DuplicateCollectionError(DocBridgeError):
    """Raised when a collection rename collides with another collection's name."""

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if name:
            context["name"] = name
        super().__init__(message, context=context)
        self.name = name


class QueryValidationError(DocBridgeError):
    """
    Raised when a query specification or search request is invalid.

    Attributes:
        message: Error message
        query_type: Kind of request (query, search, order_by, ...)
        field: Offending field (if any)
    """

    def __init__(
        self,
        message: str,
        query_type: Optional[str] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if query_type:
            context["query_type"] = query_type
        if field:
            context["field"] = field
        super().__init__(message, context=context)
        self.query_type = query_type
        self.field = field


class PayloadValidationError(DocBridgeError):
    """
    Raised when a collection definition or document payload is malformed.

    Attributes:
        message: Error message
        error_paths: Dotted paths of the offending values
    """

    def __init__(
        self,
        message: str,
        error_paths: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if error_paths:
            context["error_paths"] = error_paths
        super().__init__(message, context=context)
        self.error_paths = error_paths or []


class CapabilityError(DocBridgeError):
    """
    Raised when a backend cannot honour part of the uniform contract.

    Attributes:
        message: Error message
        backend: Backend tag
        capability: Name of the missing capability (atomic_batches, max_batch_size)
    """

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        capability: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if backend:
            context["backend"] = backend
        if capability:
            context["capability"] = capability
        super().__init__(message, context=context)
        self.backend = backend
        self.capability = capability


class BackendFailureError(DocBridgeError):
    """
    Raised when the underlying store rejects a query, write or batch.

    The native driver exception is always chained (raise ... from e) and its
    message is kept in ``native_message``.

    Attributes:
        message: Error message
        backend: Backend tag
        operation: Backend operation that failed
        native_message: Message of the native exception
    """

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        operation: Optional[str] = None,
        native_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if backend:
            context["backend"] = backend
        if operation:
            context["operation"] = operation
        if native_message:
            context["native_message"] = native_message
        super().__init__(message, context=context)
        self.backend = backend
        self.operation = operation
        self.native_message = native_message


class SeedingError(BackendFailureError):
    """
    Raised when seeding a freshly created collection fails.

    The collection definition is already durable when this is raised; its
    logical id is available as ``collection_id``.
    """

    def __init__(
        self,
        message: str,
        collection_id: Optional[str] = None,
        backend: Optional[str] = None,
        native_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if collection_id:
            context["collection_id"] = collection_id
        super().__init__(
            message,
            backend=backend,
            operation="seed",
            native_message=native_message,
            context=context,
        )
        self.collection_id = collection_id
