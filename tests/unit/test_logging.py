"""
Unit tests for structured logging.

Tests operation scopes (correlation ids and data context) and their use by
the DataService facade.
"""

import logging

import pytest

from docbridge.observability.logging import (bind_data_context, get_correlation_id,
                                             get_logger, get_logging_context,
                                             log_operation, operation_scope)

METRICS_LOGGER = "docbridge.observability.metrics"


class TestOperationScope:
    """Test correlation id and context binding."""

    def test_scope_binds_and_restores(self):
        assert get_correlation_id() is None
        with operation_scope("document.get", backend="memory") as correlation_id:
            assert get_correlation_id() == correlation_id
            assert get_logging_context() == {
                "operation": "document.get",
                "backend": "memory",
                "correlation_id": correlation_id,
            }
        assert get_correlation_id() is None
        assert get_logging_context() == {}

    def test_nested_scope_shares_correlation_id(self):
        with operation_scope(correlation_id="req-1") as outer:
            with operation_scope("query.execute", collection_id=None) as inner:
                assert inner == outer == "req-1"
                assert "collection_id" not in get_logging_context()
            assert "operation" not in get_logging_context()

    def test_separate_scopes_get_fresh_ids(self):
        with operation_scope() as first:
            pass
        with operation_scope() as second:
            pass
        assert first != second

    def test_bound_context_is_dropped_on_exit(self):
        with operation_scope("document.get"):
            with operation_scope("document.get"):
                bind_data_context(collection_id="products_abc1234")
                assert get_logging_context()["collection_id"] == "products_abc1234"
            assert "collection_id" not in get_logging_context()

    def test_scope_is_restored_after_error(self):
        with pytest.raises(RuntimeError):
            with operation_scope("document.get"):
                raise RuntimeError("boom")
        assert get_logging_context() == {}


class TestLoggers:
    """Test context propagation into log records."""

    def test_adapter_adds_scope_context(self, caplog):
        logger = get_logger("docbridge.test")
        with caplog.at_level(logging.INFO, logger="docbridge.test"):
            with operation_scope("collection.create", correlation_id="req-7"):
                logger.info("Collection ready", extra={"collection_id": "posts_x"})

        record = caplog.records[-1]
        assert record.correlation_id == "req-7"
        assert record.operation == "collection.create"
        assert record.collection_id == "posts_x"

    def test_log_operation(self, caplog):
        logger = logging.getLogger("docbridge.test")
        with caplog.at_level(logging.INFO, logger="docbridge.test"):
            log_operation(logger, "search.execute", duration_ms=3.14159, hits=2)

        record = caplog.records[-1]
        assert record.getMessage() == "Operation: search.execute (duration: 3.14ms)"
        assert record.duration_ms == 3.14
        assert record.hits == 2
        assert record.success is True


class TestServiceLogging:
    """Test that facade operations are logged with their scope."""

    @pytest.mark.asyncio
    async def test_operation_records_carry_collection(self, service, caplog):
        collection = await service.create_collection({"name": "posts"})

        with caplog.at_level(logging.DEBUG, logger=METRICS_LOGGER):
            await service.create_document("posts", {"title": "a"})

        record = [r for r in caplog.records if r.name == METRICS_LOGGER][-1]
        assert record.operation == "document.create"
        assert record.backend == "memory"
        assert record.collection_id == collection.id
        assert record.correlation_id
        assert get_logging_context() == {}

    @pytest.mark.asyncio
    async def test_caller_correlation_id_spans_operations(self, service, caplog):
        await service.create_collection({"name": "posts"})

        with caplog.at_level(logging.DEBUG, logger=METRICS_LOGGER):
            with operation_scope(correlation_id="req-42"):
                created = await service.create_document("posts", {"title": "a"})
                await service.get_document("posts", created["id"])

        operations = [r for r in caplog.records if r.name == METRICS_LOGGER]
        assert [r.operation for r in operations] == ["document.create", "document.get"]
        assert {r.correlation_id for r in operations} == {"req-42"}
