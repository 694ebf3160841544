"""
Search Engine

Multi-field prefix search: one prefix-range query per field, merged and
deduplicated by document identity, then paginated by page number. The
per-field queries run one after another and are not isolated from concurrent
writes.
"""

import logging
from collections.abc import Sequence

from ..backends.base import DocumentBackend, NativeQuery
from ..constants import DEFAULT_SEARCH_PAGE, DEFAULT_SEARCH_PAGE_SIZE, ID_FIELD
from ..exceptions import QueryValidationError
from .query import add_prefix_range
from .types import Document, QueryResult

logger = logging.getLogger(__name__)


class SearchEngine:
    def __init__(self, backend: DocumentBackend):
        self.backend = backend

    async def search(
        self,
        space: str,
        text: str,
        fields: Sequence[str],
        page: int = DEFAULT_SEARCH_PAGE,
        page_size: int = DEFAULT_SEARCH_PAGE_SIZE,
    ) -> QueryResult:
        """
        Find documents where any of ``fields`` starts with ``text``.

        Documents matching several fields appear once (first match wins).
        Merge order follows ``fields`` and then backend order within a field;
        pages are not sorted.

        Raises:
            QueryValidationError: If page or page_size is below 1
        """
        if page < 1:
            raise QueryValidationError(
                f"page must be >= 1, got {page}", query_type="search", field="page"
            )
        if page_size < 1:
            raise QueryValidationError(
                f"page_size must be >= 1, got {page_size}",
                query_type="search",
                field="page_size",
            )
        if isinstance(fields, str):
            fields = [fields]

        merged: dict[str, Document] = {}
        for field_name in fields:
            query = add_prefix_range(NativeQuery(), field_name, text)
            for document in await self.backend.find(space, query):
                merged.setdefault(document[ID_FIELD], document)

        results = list(merged.values())
        total = len(results)
        offset = (page - 1) * page_size
        logger.debug(f"Search '{text}' over {list(fields)} in '{space}' matched {total}")
        return QueryResult(
            data=results[offset : offset + page_size],
            total=total,
            has_more=offset + page_size < total,
        )
