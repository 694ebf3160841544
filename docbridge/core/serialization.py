"""
Payload serialization.

Converts caller payloads into values every backend can store (see
core.types.DocumentValue): compiled regular expressions become their pattern,
enums their value, datetimes UTC at millisecond precision (naive values are
taken as UTC), dates midnight UTC datetimes, decimals floats, tuples and sets
lists. Anything else is rejected before it reaches a backend.
"""

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from dateutil.parser import isoparse
from pydantic import BaseModel

from ..constants import STORE_MANAGED_FIELDS
from ..exceptions import PayloadValidationError
from .types import as_utc, to_millis

logger = logging.getLogger(__name__)

# ISO-8601 date-times as produced by JSON exports (2024-01-31T10:00:00Z, ...+02:00)
_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})$")


def serialize_value(value: Any, path: str = "") -> Any:
    """
    Convert one value to a storable DocumentValue.

    Args:
        value: Value to convert
        path: Dotted path used in error messages

    Raises:
        PayloadValidationError: If the value has no storable representation
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, datetime):
        return to_millis(as_utc(value))
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, Enum):
        return serialize_value(value.value, path)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, re.Pattern):
        return value.pattern
    if isinstance(value, BaseModel):
        return serialize_value(value.model_dump(mode="python"), path)
    if isinstance(value, Mapping):
        return {
            str(key): serialize_value(item, f"{path}.{key}" if path else str(key))
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize_value(item, f"{path}[{i}]") for i, item in enumerate(value)]

    raise PayloadValidationError(
        f"Unsupported value of type {type(value).__name__} at '{path or '<root>'}'",
        error_paths=[path] if path else None,
    )


def serialize_document(data: Mapping[str, Any]) -> dict[str, Any]:
    """Serialize every field of a document payload."""
    if not isinstance(data, Mapping):
        raise PayloadValidationError(
            f"Document payload must be a mapping, got {type(data).__name__}"
        )
    return serialize_value(data)


def prepare_fields(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Serialize a caller payload and drop store-managed fields.

    Identity and timestamp fields supplied by the caller are stripped so they
    can never overwrite the stored identity or the store's own stamps.
    """
    fields = serialize_document(data or {})
    for name in STORE_MANAGED_FIELDS:
        fields.pop(name, None)
    return fields


def parse_seed_item(item: Mapping[str, Any]) -> dict[str, Any]:
    """
    Prepare one seed item for insertion.

    ISO-8601 date-time strings and MongoDB extended JSON dates
    ({"$date": "..."}) are converted to datetime objects; other values are
    kept as-is.
    """
    prepared = dict(item)
    for key, value in prepared.items():
        if isinstance(value, str) and _ISO_DATETIME.match(value):
            try:
                prepared[key] = isoparse(value)
            except ValueError:
                logger.debug(f"Seed value for '{key}' looks like a date but did not parse")
        elif isinstance(value, Mapping) and "$date" in value:
            try:
                prepared[key] = isoparse(str(value["$date"]))
            except ValueError:
                logger.debug(f"Extended JSON date for '{key}' did not parse")
    return prepared
