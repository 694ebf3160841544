"""
Type definitions for DOCBRIDGE core structures.

Collection definitions and query specifications are pydantic models so that
caller input is validated once at the boundary; query results are plain
dataclasses. Documents themselves stay plain dictionaries whose values are
restricted to DocumentValue (see core.serialization).

This module is part of DOCBRIDGE.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict
from pydantic import Field as ModelField
from pydantic import ValidationError, field_validator, model_validator

from ..constants import CATALOG_ID_FIELD, ID_FIELD
from ..exceptions import PayloadValidationError, QueryValidationError
from .ids import normalize_name, slugify

# ============================================================================
# Document Types
# ============================================================================

DocumentValue = Union[
    str,
    int,
    float,
    bool,
    datetime,
    None,
    List["DocumentValue"],
    Dict[str, "DocumentValue"],
]
"""Values a document field may hold once serialized."""

Document = Dict[str, Any]
"""A stored document: identity field, caller fields and store timestamps."""


def utcnow() -> datetime:
    """
    Current UTC time truncated to millisecond precision.

    MongoDB stores milliseconds only, so every backend is stamped at that
    precision to keep round-tripped timestamps equal.
    """
    return to_millis(datetime.now(timezone.utc))


def to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision."""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_timestamp(previous: Optional[datetime] = None) -> datetime:
    """
    Return a timestamp strictly later than ``previous``.

    Args:
        previous: Last stamped value (e.g. a document's updated_at)

    Returns:
        utcnow(), or previous + 1ms when the clock has not moved past it
    """
    now = utcnow()
    if isinstance(previous, datetime):
        previous = as_utc(previous)
        if now <= previous:
            return previous + timedelta(milliseconds=1)
    return now


# ============================================================================
# Collection Definition Types
# ============================================================================


class FieldType(str, Enum):
    """Domain types a collection field can declare."""

    TEXT = "text"
    TEXTAREA = "textarea"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    EMAIL = "email"
    URL = "url"
    SELECT = "select"
    MULTISELECT = "multiselect"
    REFERENCE = "reference"
    JSON = "json"
    IMAGE = "image"
    FILE = "file"
    COLOR = "color"
    PASSWORD = "password"


HOOK_NAMES = (
    "before_create",
    "after_create",
    "before_update",
    "after_update",
    "before_delete",
    "after_delete",
    "before_restore",
    "after_restore",
)


def _snake_case(name: str) -> str:
    out = []
    for char in name:
        if char.isupper():
            out.append("_")
            out.append(char.lower())
        else:
            out.append(char)
    return "".join(out).lstrip("_")


class FieldDefinition(BaseModel):
    """
    One schema column.

    Purely descriptive; ``is_searchable`` and ``is_sortable`` are advisory hints
    the service can enforce when configured with enforce_field_hints.
    """

    model_config = ConfigDict(extra="allow", use_enum_values=True)

    name: str = ModelField(min_length=1)
    type: FieldType
    settings: Dict[str, Any] = ModelField(default_factory=dict)
    default_value: Any = ModelField(
        default=None, validation_alias=AliasChoices("default_value", "defaultValue")
    )
    is_searchable: bool = ModelField(
        default=False, validation_alias=AliasChoices("is_searchable", "isSearchable")
    )
    is_sortable: bool = ModelField(
        default=False, validation_alias=AliasChoices("is_sortable", "isSortable")
    )


class IndexDefinition(BaseModel):
    """Declared index over one or more fields."""

    fields: List[str] = ModelField(min_length=1)
    type: Literal["unique", "index"] = "index"


class CollectionSettings(BaseModel):
    """Visibility, soft-delete, versioning and lifecycle hook settings."""

    model_config = ConfigDict(extra="allow")

    is_public: bool = ModelField(
        default=False, validation_alias=AliasChoices("is_public", "isPublic")
    )
    is_soft_delete: bool = ModelField(
        default=False, validation_alias=AliasChoices("is_soft_delete", "isSoftDelete")
    )
    versioning: bool = False
    hooks: Dict[str, str] = ModelField(default_factory=dict)
    permissions: Optional[Dict[str, List[str]]] = None
    audit: Optional[Dict[str, Any]] = None
    cache: Optional[Dict[str, Any]] = None
    api: Optional[Dict[str, Any]] = None
    validation: Optional[Dict[str, Any]] = None

    @field_validator("hooks", mode="before")
    @classmethod
    def _normalize_hooks(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        hooks = {}
        for name, handler in value.items():
            hook = _snake_case(name)
            if hook not in HOOK_NAMES:
                raise ValueError(f"Unknown lifecycle hook '{name}'")
            if handler:
                hooks[hook] = handler
        return hooks


class CollectionDefinition(BaseModel):
    """
    Schema record for a logical collection.

    ``id`` is the logical identity (derived from the name plus a short suffix),
    ``ref`` the backend-native reference of the catalog record, which also names
    the collection's data space.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    ref: Optional[str] = ModelField(default=None, validation_alias=AliasChoices("ref", "fid"))
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    fields: List[FieldDefinition] = ModelField(default_factory=list)
    timestamps: bool = True
    settings: CollectionSettings = ModelField(default_factory=CollectionSettings)
    indexes: Optional[List[IndexDefinition]] = None
    created_at: Optional[datetime] = ModelField(
        default=None, validation_alias=AliasChoices("created_at", "createdAt")
    )
    updated_at: Optional[datetime] = ModelField(
        default=None, validation_alias=AliasChoices("updated_at", "updatedAt")
    )

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        name = normalize_name(value)
        if not name:
            raise ValueError("Collection name must not be empty")
        return name

    @model_validator(mode="after")
    def _default_slug(self) -> "CollectionDefinition":
        if not self.slug:
            self.slug = slugify(self.name)
        return self

    @classmethod
    def coerce(
        cls, value: Union["CollectionDefinition", Mapping[str, Any]]
    ) -> "CollectionDefinition":
        """
        Build a definition from a model or mapping.

        Raises:
            PayloadValidationError: If the definition is malformed
        """
        if isinstance(value, cls):
            return value.model_copy(deep=True)
        try:
            return cls.model_validate(dict(value))
        except (ValidationError, TypeError, ValueError) as e:
            paths = []
            if isinstance(e, ValidationError):
                paths = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise PayloadValidationError(
                f"Invalid collection definition: {e}", error_paths=paths
            ) from e

    def to_record(self) -> Dict[str, Any]:
        """
        Dictionary stored by the catalog.

        The backend surfaces its own reference under ``id``, so the logical id
        is stored under CATALOG_ID_FIELD and the reference is not stored at all.
        """
        record = self.model_dump(mode="python", exclude_none=True, exclude={"id", "ref"})
        if self.id:
            record[CATALOG_ID_FIELD] = self.id
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "CollectionDefinition":
        """Rebuild a definition from a stored catalog record."""
        data = dict(record)
        data["ref"] = data.pop(ID_FIELD, None)
        data["id"] = data.pop(CATALOG_ID_FIELD, None)
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        """Caller-facing dictionary (logical id and reference included)."""
        return self.model_dump(mode="python", exclude_none=True)

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def searchable_fields(self) -> List[str]:
        """Names of fields flagged is_searchable."""
        return [f.name for f in self.fields if f.is_searchable]

    def sortable_fields(self) -> List[str]:
        """Names of fields flagged is_sortable."""
        return [f.name for f in self.fields if f.is_sortable]


# ============================================================================
# Query Types
# ============================================================================


class QueryOperator(str, Enum):
    """Backend-neutral filter operators."""

    EQUALS = "equals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    PREFIX_CONTAINS = "prefixContains"


OPERATOR_ALIASES: Dict[str, str] = {
    "eq": QueryOperator.EQUALS.value,
    "==": QueryOperator.EQUALS.value,
    "gt": QueryOperator.GREATER_THAN.value,
    ">": QueryOperator.GREATER_THAN.value,
    "lt": QueryOperator.LESS_THAN.value,
    "<": QueryOperator.LESS_THAN.value,
    "contains": QueryOperator.PREFIX_CONTAINS.value,
}

SortDirection = Literal["asc", "desc"]


class QuerySpec(BaseModel):
    """
    Generic filter/order/pagination specification.

    ``where`` and ``order_by`` are applied in the order given. The
    prefixContains operator only matches values that START with the given
    text; it is not an arbitrary-position substring search.
    """

    where: List[Tuple[str, QueryOperator, Any]] = ModelField(default_factory=list)
    order_by: List[Tuple[str, SortDirection]] = ModelField(
        default_factory=list, validation_alias=AliasChoices("order_by", "orderBy")
    )
    limit: Optional[int] = ModelField(default=None, gt=0)
    offset: Optional[int] = ModelField(default=None, ge=0)

    @field_validator("where", mode="before")
    @classmethod
    def _normalize_where(cls, value: Any) -> Any:
        if value is None:
            return []
        clauses = []
        for clause in value:
            if isinstance(clause, Mapping):
                field_name = clause.get("field")
                operator = clause.get("operator", clause.get("op"))
                operand = clause.get("value")
            else:
                field_name, operator, operand = clause
            if not field_name:
                raise ValueError("where clause field must not be empty")
            if isinstance(operator, str):
                operator = OPERATOR_ALIASES.get(operator, operator)
            clauses.append((field_name, operator, operand))
        return clauses

    @field_validator("order_by", mode="before")
    @classmethod
    def _normalize_order_by(cls, value: Any) -> Any:
        if value is None:
            return []
        keys = []
        for key in value:
            if isinstance(key, str):
                field_name, direction = key, "asc"
            else:
                field_name, direction = key
            if not field_name:
                raise ValueError("order_by field must not be empty")
            keys.append((field_name, str(direction).lower()))
        return keys

    @classmethod
    def coerce(cls, value: Union["QuerySpec", Mapping[str, Any], None]) -> "QuerySpec":
        """
        Build a specification from a model, mapping or None.

        Raises:
            QueryValidationError: If the specification is malformed
        """
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        try:
            return cls.model_validate(dict(value))
        except (ValidationError, TypeError, ValueError) as e:
            raise QueryValidationError(f"Invalid query: {e}", query_type="query") from e

    def filter_fields(self) -> List[str]:
        return [clause[0] for clause in self.where]

    def sort_fields(self) -> List[str]:
        return [key[0] for key in self.order_by]


@dataclass
class QueryResult:
    """One page of documents plus pagination bookkeeping."""

    data: List[Document] = field(default_factory=list)
    total: int = 0
    has_more: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "total": self.total, "has_more": self.has_more}
