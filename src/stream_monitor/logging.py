"""
Structured logging for the stream monitor.

Usage:
    from stream_monitor.logging import configure_logging, get_logger, LogEventType

    # Once, at application startup
    configure_logging(service_name="stream_monitor", log_level="INFO")

    # In any module
    logger = get_logger(__name__)
    logger.info("Message requeued", event_type=LogEventType.MESSAGE_REQUEUED)
"""

import logging
import sys
from contextvars import ContextVar
from enum import Enum
from typing import Any

import structlog

correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)


class LogEventType(str, Enum):
    """Event types attached to log records for filtering."""

    STARTUP = "startup"
    SHUTDOWN = "shutdown"
    REQUEST_IN = "request_in"

    STREAM_SCAN = "stream_scan"
    STREAM_SKIPPED = "stream_skipped"
    MESSAGE_DELETED = "message_deleted"

    MESSAGE_REQUEUED = "message_requeued"
    REQUEUE_FAILED = "requeue_failed"
    REQUEUE_ALL = "requeue_all"

    ERROR = "error"


def _add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    cid = correlation_id_ctx.get()
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def _make_service_processor(service_name: str):
    def processor(
        logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict["service"] = service_name
        return event_dict

    return processor


def _normalize_event_type(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_type = event_dict.get("event_type")
    if isinstance(event_type, LogEventType):
        event_dict["event_type"] = event_type.value
    return event_dict


def configure_logging(
    service_name: str = "stream_monitor",
    log_level: str = "INFO",
    json_format: bool = True,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        service_name: Value of the ``service`` field on every record
        log_level: DEBUG, INFO, WARNING or ERROR
        json_format: True for JSON lines, False for coloured console output
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    # redis-py and uvicorn are chatty at DEBUG
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.INFO))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_correlation_id,
        _make_service_processor(service_name),
        _normalize_event_type,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.CallsiteParameterAdder(
            parameters={
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True, sort_keys=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger bound to ``name``."""
    return structlog.get_logger(name)


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def get_correlation_id() -> str | None:
    return correlation_id_ctx.get()


def clear_correlation_id() -> None:
    correlation_id_ctx.set(None)
