"""
Query Translator

Compiles a backend-neutral QuerySpec into a NativeQuery and executes it with
total count and offset/limit pagination.

Operator mapping:
    equals          ->  field == value
    greaterThan     ->  field >  value
    lessThan        ->  field <  value
    prefixContains  ->  field >= value AND field < value + PREFIX_UPPER_BOUND

prefixContains is a lexicographic range: it matches values that START with the
given text, never text found elsewhere in the value.

This module is part of DOCBRIDGE.
"""

import logging
from collections.abc import Mapping
from typing import Any, Union

from ..backends.base import DocumentBackend, NativeQuery
from ..constants import PREFIX_UPPER_BOUND
from ..exceptions import PayloadValidationError, QueryValidationError
from .serialization import serialize_value
from .types import QueryOperator, QueryResult, QuerySpec

logger = logging.getLogger(__name__)

_COMPARISONS = {
    QueryOperator.EQUALS: "==",
    QueryOperator.GREATER_THAN: ">",
    QueryOperator.LESS_THAN: "<",
}


def _operand(field_name: str, value: Any) -> Any:
    """Convert a where operand the way stored values are converted."""
    try:
        return serialize_value(value, field_name)
    except PayloadValidationError as e:
        raise QueryValidationError(
            f"Unsupported value in where clause on '{field_name}': {type(value).__name__}",
            query_type="where",
            field=field_name,
        ) from e


def add_prefix_range(query: NativeQuery, field_name: str, prefix: Any) -> NativeQuery:
    """Append the half-open range [prefix, prefix + PREFIX_UPPER_BOUND) on ``field_name``."""
    if not isinstance(prefix, str):
        raise QueryValidationError(
            f"prefixContains on '{field_name}' needs a string value, "
            f"got {type(prefix).__name__}",
            query_type="where",
            field=field_name,
        )
    return query.where(field_name, ">=", prefix).where(
        field_name, "<", prefix + PREFIX_UPPER_BOUND
    )


def compile_query(spec: QuerySpec) -> NativeQuery:
    """Translate where clauses and sort keys, preserving their order."""
    native = NativeQuery()
    for field_name, operator, value in spec.where:
        value = _operand(field_name, value)
        if operator == QueryOperator.PREFIX_CONTAINS:
            add_prefix_range(native, field_name, value)
        else:
            native.where(field_name, _COMPARISONS[operator], value)
    for field_name, direction in spec.order_by:
        native.order_by(field_name, descending=direction == "desc")
    return native


class QueryTranslator:
    """Executes QuerySpecs against one backend."""

    def __init__(self, backend: DocumentBackend):
        self.backend = backend

    def compile(self, spec: Union[QuerySpec, Mapping[str, Any], None]) -> NativeQuery:
        return compile_query(QuerySpec.coerce(spec))

    async def execute(
        self, space: str, spec: Union[QuerySpec, Mapping[str, Any], None] = None
    ) -> QueryResult:
        """
        Run a query with pagination.

        The offset is applied with a resume cursor on backends that support
        one (fetch ``offset`` rows, continue strictly after the last) and with
        a native skip otherwise.

        Returns:
            QueryResult where ``total`` counts every match before pagination and
            ``has_more`` is True iff matches remain beyond the returned page
        """
        spec = QuerySpec.coerce(spec)
        native = compile_query(spec)
        offset = spec.offset or 0

        total = await self.backend.count(space, native)

        if offset >= total and offset > 0:
            data = []
        elif offset and self.backend.capabilities.cursor_pagination:
            skipped = await self.backend.find(space, native, limit=offset)
            if len(skipped) < offset:
                data = []
            else:
                data = await self.backend.find(
                    space, native, limit=spec.limit, start_after=skipped[-1]
                )
        else:
            data = await self.backend.find(space, native, limit=spec.limit, skip=offset)

        has_more = spec.limit is not None and offset + len(data) < total
        logger.debug(
            f"Query on '{space}' returned {len(data)} of {total} (offset={offset}, "
            f"limit={spec.limit})"
        )
        return QueryResult(data=data, total=total, has_more=has_more)
