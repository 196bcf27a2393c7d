"""
Tests for repository logging.

Covers:
- JSONFormatter line format and context promotion
- setup_logging() root handler and Azure SDK log levels
- get_logger()
- log_with_context() (repository context fields)
- Operation logging emitted by the repository

Tests follow AAA (Arrange, Act, Assert) pattern.
"""

import io
import json
import logging

import pytest
from azure.cosmos.exceptions import CosmosHttpResponseError

from cosmos_fakes import Product
from cosmos_repository.core.logging_config import (
    JSONFormatter,
    cosmos_diagnostics,
    get_logger,
    log_with_context,
    setup_logging,
)


def json_logger(name: str, level: int = logging.INFO):
    """Logger writing JSON lines to an in-memory stream."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    return logger, stream


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    root_logger.handlers = handlers
    root_logger.setLevel(level)


class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_json_formatter_basic_message(self):
        """
        Test every record is one JSON object with the fixed keys.

        Arrange: Logger writing through JSONFormatter
        Act: Log a plain message
        Assert: timestamp, level, message and logger are present
        """
        # Arrange
        logger, stream = json_logger("test_logger")

        # Act
        logger.info("Test message")

        # Assert
        log_data = json.loads(stream.getvalue().strip())

        assert log_data["level"] == "INFO"
        assert log_data["message"] == "Test message"
        assert "timestamp" in log_data
        assert log_data["logger"] == "test_logger"

    def test_json_formatter_with_context_fields(self):
        """
        Test JSONFormatter promotes repository context fields.

        Arrange: Logger writing through JSONFormatter
        Act: Log message with context passed through extra
        Assert: Context fields included in JSON output
        """
        # Arrange
        logger, stream = json_logger("test_logger_context")

        # Act
        logger.info(
            "get_by_id completed",
            extra={
                "database_id": "shop",
                "collection_id": "products",
                "document_id": "p-1",
                "latency_ms": 12.5,
                "request_charge": 1.0,
            }
        )

        # Assert
        log_data = json.loads(stream.getvalue().strip())

        assert log_data["database_id"] == "shop"
        assert log_data["collection_id"] == "products"
        assert log_data["document_id"] == "p-1"
        assert log_data["latency_ms"] == 12.5
        assert log_data["request_charge"] == 1.0

    def test_json_formatter_with_exception(self):
        """
        Test tracebacks are embedded in the JSON record.

        Arrange: Logger writing through JSONFormatter
        Act: Log inside an except block with exc_info
        Assert: "exception" holds the formatted traceback
        """
        # Arrange
        logger, stream = json_logger("test_logger_exc", logging.ERROR)

        # Act
        try:
            raise ValueError("Test exception")
        except ValueError:
            logger.error("Error occurred", exc_info=True)

        # Assert
        log_data = json.loads(stream.getvalue().strip())

        assert log_data["level"] == "ERROR"
        assert "ValueError: Test exception" in log_data["exception"]

    def test_json_formatter_serializes_unknown_types(self):
        """Test values json cannot encode are rendered with str()."""
        logger, stream = json_logger("test_logger_types")

        logger.info("Odd value", extra={"partition": {"path": "/id"}, "marker": object()})

        log_data = json.loads(stream.getvalue().strip())
        assert log_data["partition"] == {"path": "/id"}
        assert log_data["marker"].startswith("<object object")


class TestSetupLogging:
    """Tests for logging setup function."""

    def test_setup_logging_configures_root_logger(self, restore_root_logger):
        """
        Test setup_logging installs a single JSON handler on the root logger.

        Arrange: None
        Act: setup_logging(level="INFO")
        Assert: Root logger has a JSON handler, SDK loggers are quieted
        """
        # Arrange & Act
        setup_logging(level="INFO", json_format=True)

        # Assert
        root_logger = logging.getLogger()
        assert root_logger.level == logging.INFO
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("azure").level == logging.WARNING

    def test_setup_logging_with_debug_level(self, restore_root_logger):
        setup_logging(level="DEBUG", json_format=True)

        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_unknown_level_defaults_to_info(self, restore_root_logger):
        setup_logging(level="VERBOSE")

        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_sdk_level(self, restore_root_logger):
        """Test the Azure SDK loggers can be opened up for HTTP tracing."""
        azure_logger = logging.getLogger("azure")
        previous = azure_logger.level
        try:
            setup_logging(level="INFO", sdk_level="DEBUG")

            assert azure_logger.level == logging.DEBUG
        finally:
            azure_logger.setLevel(previous)

    def test_setup_logging_with_simple_format(self, restore_root_logger):
        """Test setup_logging with simple (non-JSON) format."""
        setup_logging(level="INFO", json_format=False)

        handler = logging.getLogger().handlers[0]
        assert not isinstance(handler.formatter, JSONFormatter)
        assert isinstance(handler.formatter, logging.Formatter)


class TestGetLogger:
    def test_get_logger_returns_logger(self):
        logger = get_logger("cosmos_repository.test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "cosmos_repository.test"


class TestLogWithContext:
    """Tests for log_with_context helper function."""

    def test_log_with_context_includes_all_fields(self):
        """
        Test log_with_context includes all context fields.

        Arrange: Logger writing through JSONFormatter
        Act: Call log_with_context with all fields
        Assert: All fields included in log output
        """
        # Arrange
        logger, stream = json_logger("test_context")

        # Act
        log_with_context(
            logger,
            "warning",
            "delete_by failed: 404",
            database_id="shop",
            collection_id="products",
            document_id="p-1",
            operation="delete_by",
            latency_ms=4.2,
            status_code=404,
            activity_id="0f3b1c2d",
            request_charge=1.24,
        )

        # Assert
        log_data = json.loads(stream.getvalue().strip())

        assert log_data["level"] == "WARNING"
        assert log_data["database_id"] == "shop"
        assert log_data["collection_id"] == "products"
        assert log_data["document_id"] == "p-1"
        assert log_data["operation"] == "delete_by"
        assert log_data["latency_ms"] == 4.2
        assert log_data["status_code"] == 404
        assert log_data["activity_id"] == "0f3b1c2d"
        assert log_data["request_charge"] == 1.24

    def test_log_with_context_omits_unset_fields(self):
        """Test context fields left as None are not emitted."""
        logger, stream = json_logger("test_context_unset")

        log_with_context(logger, "info", "Repository ready", operation="initialize")

        log_data = json.loads(stream.getvalue().strip())
        assert log_data["operation"] == "initialize"
        assert "document_id" not in log_data
        assert "status_code" not in log_data

    def test_log_with_context_supports_all_levels(self):
        """Test log_with_context supports all log levels."""
        logger, stream = json_logger("test_context_levels", logging.DEBUG)

        for level in ["debug", "info", "warning", "error", "critical"]:
            stream.truncate(0)
            stream.seek(0)

            log_with_context(logger, level, f"Test {level} message")

            log_data = json.loads(stream.getvalue().strip())
            assert log_data["level"] == level.upper()
            assert log_data["message"] == f"Test {level} message"


class TestCosmosDiagnostics:
    """Tests for cosmos_diagnostics()."""

    def test_extracts_status_and_headers(self):
        """
        Test diagnostics are read from the status code and response headers.

        Arrange: SDK error carrying Cosmos response headers
        Act: Extract diagnostics
        Assert: Typed status, sub-status, activity id and charge
        """
        # Arrange
        error = CosmosHttpResponseError(status_code=429, message="Request rate is large")
        error.headers = {
            "x-ms-activity-id": "a1b2c3",
            "x-ms-substatus": "3200",
            "x-ms-request-charge": "2.86",
        }

        # Act
        diagnostics = cosmos_diagnostics(error)

        # Assert
        assert diagnostics == {
            "status_code": 429,
            "sub_status": 3200,
            "activity_id": "a1b2c3",
            "request_charge": 2.86,
        }

    def test_error_without_headers(self):
        error = CosmosHttpResponseError(status_code=503, message="Service unavailable")

        assert cosmos_diagnostics(error) == {"status_code": 503}

    def test_non_sdk_exception(self):
        assert cosmos_diagnostics(ValueError("boom")) == {}


class TestRepositoryOperationLogging:
    """Tests for the records the repository emits per operation."""

    async def test_successful_operation_logs_latency(self, repo, caplog):
        """
        Test each round trip is logged with its context and latency.

        Arrange: Ready repository, DEBUG capture
        Act: Add a document
        Assert: A debug record carries operation, ids and latency
        """
        # Arrange
        caplog.set_level(logging.DEBUG, logger="cosmos_repository")

        # Act
        await repo.add(Product(id="p-1", name="Dune", category="books"))

        # Assert
        record = next(r for r in caplog.records if r.getMessage() == "add completed")
        assert record.levelno == logging.DEBUG
        assert record.operation == "add"
        assert record.database_id == "testdb"
        assert record.collection_id == "products"
        assert record.document_id == "p-1"
        assert record.latency_ms >= 0

    async def test_failed_operation_logs_status_and_activity_id(self, cosmos_server, repo, caplog):
        """
        Test store faults are logged with Cosmos diagnostics before propagating.

        Arrange: Read fails with 429 and an activity id header
        Act: get_by_id
        Assert: Warning record carries status code and activity id
        """
        # Arrange
        error = CosmosHttpResponseError(status_code=429, message="Request rate is large")
        error.headers = {"x-ms-activity-id": "a1b2c3"}
        cosmos_server.failures["read_item"] = error
        caplog.set_level(logging.DEBUG, logger="cosmos_repository")

        # Act
        with pytest.raises(CosmosHttpResponseError):
            await repo.get_by_id("p-1")

        # Assert
        record = next(r for r in caplog.records if r.levelno == logging.WARNING)
        assert record.operation == "get_by_id"
        assert record.status_code == 429
        assert record.activity_id == "a1b2c3"
        assert record.document_id == "p-1"

    async def test_not_found_read_is_not_a_warning(self, repo, caplog):
        """Test absent documents are logged at debug, not as failures."""
        caplog.set_level(logging.DEBUG, logger="cosmos_repository")

        assert await repo.get_by_id("missing") is None

        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
