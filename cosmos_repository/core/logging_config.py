"""
Structured JSON logging for repository operations.

Every Cosmos DB round trip made by a Repository is logged with the
resource it addressed (database, collection, document), the operation
name and its latency. Failed round trips additionally carry the
diagnostics Cosmos DB support asks for: status code, sub-status,
activity id and request charge.

Records are written to stdout as one JSON object per line so they can be
shipped to Azure Monitor, Datadog or any other log aggregator unchanged.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Repository context promoted to top-level JSON keys, in output order
CONTEXT_FIELDS = (
    "operation",
    "database_id",
    "collection_id",
    "document_id",
    "latency_ms",
    "status_code",
    "sub_status",
    "activity_id",
    "request_charge",
)

# Attributes of a bare LogRecord; anything else arrived through extra={...}
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

# Response headers Cosmos DB attaches to every reply, failures included
_ACTIVITY_ID_HEADER = "x-ms-activity-id"
_SUB_STATUS_HEADER = "x-ms-substatus"
_REQUEST_CHARGE_HEADER = "x-ms-request-charge"


class JSONFormatter(logging.Formatter):
    """
    Render log records as single-line JSON.

    Fixed keys come first (``timestamp`` in UTC ISO 8601, ``level``,
    ``message``, ``logger``), then any CONTEXT_FIELDS present on the
    record, then ``exception`` / ``stack_info``, then remaining extras.
    Values JSON cannot encode are rendered with ``str()``.

    Example output:
        {"timestamp": "2026-10-19T10:30:00.123456+00:00", "level": "WARNING",
         "message": "delete_by failed: 404", "logger": "cosmos_repository.repositories.cosmos",
         "operation": "delete_by", "database_id": "shop", "collection_id": "products",
         "document_id": "p-1", "latency_ms": 4.2, "status_code": 404,
         "activity_id": "0f3b1c2d-..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for name in CONTEXT_FIELDS:
            value = record.__dict__.get(name)
            if value is not None:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter()
    # Human-readable format for local debugging
    return logging.Formatter(
        fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    sdk_level: str = "WARNING"
) -> None:
    """
    Configure process-wide logging for an application using the repository.

    Replaces the root logger's handlers with a single stdout handler and
    caps the Azure SDK loggers, which otherwise log every HTTP request
    and response at INFO.

    Args:
        level: Root log level; unknown names fall back to INFO
        json_format: Emit JSON lines (True) or plain text (False)
        sdk_level: Level for the ``azure`` logger hierarchy

    Example:
        setup_logging(level="DEBUG")  # per-operation latency records

    Note:
        Call once at startup, before repositories are created.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_build_formatter(json_format))
    root_logger.addHandler(console_handler)

    azure_level = getattr(logging, sdk_level.upper(), logging.WARNING)
    logging.getLogger("azure").setLevel(azure_level)
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(azure_level)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass ``__name__``)."""
    return logging.getLogger(name)


def cosmos_diagnostics(error: Exception) -> Dict[str, Any]:
    """
    Extract Cosmos DB diagnostics from an SDK exception.

    Args:
        error: Usually an ``azure.cosmos.exceptions.CosmosHttpResponseError``;
            other exceptions yield an empty dict

    Returns:
        Any of status_code, sub_status, activity_id, request_charge
        that the error carries

    Example:
        >>> cosmos_diagnostics(CosmosHttpResponseError(status_code=429, message="Throttled"))
        {'status_code': 429}
    """
    diagnostics: Dict[str, Any] = {}

    status_code = getattr(error, "status_code", None)
    if status_code:
        diagnostics["status_code"] = status_code

    headers = getattr(error, "headers", None) or {}
    if headers.get(_SUB_STATUS_HEADER):
        try:
            diagnostics["sub_status"] = int(headers[_SUB_STATUS_HEADER])
        except (TypeError, ValueError):
            diagnostics["sub_status"] = headers[_SUB_STATUS_HEADER]
    if headers.get(_ACTIVITY_ID_HEADER):
        diagnostics["activity_id"] = headers[_ACTIVITY_ID_HEADER]
    if headers.get(_REQUEST_CHARGE_HEADER):
        try:
            diagnostics["request_charge"] = float(headers[_REQUEST_CHARGE_HEADER])
        except (TypeError, ValueError):
            pass

    return diagnostics


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    operation: Optional[str] = None,
    database_id: Optional[str] = None,
    collection_id: Optional[str] = None,
    document_id: Optional[str] = None,
    latency_ms: Optional[float] = None,
    **extra_fields: Any
) -> None:
    """
    Log a message with repository context attached.

    Fields left as None are not emitted. Diagnostics such as status_code or
    activity_id (see ``cosmos_diagnostics``) and any other key are passed
    through ``extra_fields``.

    Args:
        logger: Logger instance
        level: debug, info, warning, error or critical
        message: Log message
        operation: Repository operation name (get_by_id, add, ...)
        database_id: Database the operation addressed
        collection_id: Collection the operation addressed
        document_id: Document the operation addressed
        latency_ms: Round-trip latency in milliseconds
        **extra_fields: Additional fields

    Example:
        log_with_context(
            logger,
            "debug",
            "get_by_id completed",
            operation="get_by_id",
            database_id="shop",
            collection_id="products",
            document_id="p-1",
            latency_ms=12.5
        )
    """
    fields = {
        "operation": operation,
        "database_id": database_id,
        "collection_id": collection_id,
        "document_id": document_id,
        "latency_ms": latency_ms,
        **extra_fields,
    }
    extra = {key: value for key, value in fields.items() if value is not None}

    getattr(logger, level.lower())(message, extra=extra)
