import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, status
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException

from stream_monitor.api.dependencies import require_basic_auth
from stream_monitor.api.middleware import CorrelationIdMiddleware
from stream_monitor.api.responses import error
from stream_monitor.api.routers import dlq, streams
from stream_monitor.config import Settings, get_settings
from stream_monitor.errors import (
    EnvelopeCorrupt,
    InvalidIdentifier,
    InvalidPagination,
    MessageNotFound,
    MissingOriginalTopic,
    RequeueAllError,
)
from stream_monitor.logging import LogEventType, configure_logging, get_logger
from stream_monitor.metrics import PrometheusMiddleware, get_content_type, get_metrics
from stream_monitor.monitor import Monitor

logger = get_logger(__name__)


class HealthCheckFilter(logging.Filter):
    """Drop uvicorn access log lines for /health."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            if len(record.args) >= 3 and isinstance(record.args[2], str):
                return record.args[2] != "/health"
        except (IndexError, TypeError):
            pass
        return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the Redis-backed monitor unless one was injected."""
    owns_monitor = app.state.monitor is None
    if owns_monitor:
        app.state.monitor = Monitor.from_settings(app.state.settings)

    logger.info(
        "Starting stream monitor",
        event_type=LogEventType.STARTUP,
        dlq=app.state.settings.DLQ_NAME,
        environment=app.state.settings.ENVIRONMENT,
    )
    yield
    logger.info("Shutting down stream monitor", event_type=LogEventType.SHUTDOWN)

    if owns_monitor:
        await app.state.monitor.close()
        app.state.monitor = None


def create_app(settings: Settings | None = None, monitor: Monitor | None = None) -> FastAPI:
    """Build the API application.

    Args:
        settings: Configuration; read from the environment when omitted
        monitor: Pre-built monitor, mainly for tests; created on startup otherwise
    """
    settings = settings or get_settings()
    configure_logging(
        service_name="stream_monitor",
        log_level=settings.LOG_LEVEL,
        json_format=settings.LOG_JSON_FORMAT,
    )
    logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())

    app = FastAPI(lifespan=lifespan, title="Stream Monitor API")
    app.state.settings = settings
    app.state.monitor = monitor

    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    protected = [Depends(require_basic_auth)]
    app.include_router(streams.router, prefix="/api", dependencies=protected)
    app.include_router(dlq.router, prefix="/api", dependencies=protected)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy"}

    @app.get("/metrics")
    async def metrics_endpoint():
        return Response(content=get_metrics(), media_type=get_content_type())

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        response = error(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(InvalidPagination)
    async def invalid_pagination_handler(request: Request, exc: InvalidPagination):
        return error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(MessageNotFound)
    async def not_found_handler(request: Request, exc: MessageNotFound):
        return error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(MissingOriginalTopic)
    async def missing_topic_handler(request: Request, exc: MissingOriginalTopic):
        return error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))

    @app.exception_handler(RequeueAllError)
    async def requeue_all_handler(request: Request, exc: RequeueAllError):
        return error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), requeued=exc.requeued
        )

    async def corrupt_entry_handler(request: Request, exc: Exception):
        logger.error(
            "Undecodable stream entry",
            event_type=LogEventType.ERROR,
            error=str(exc),
            path=str(request.url.path),
        )
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    app.add_exception_handler(EnvelopeCorrupt, corrupt_entry_handler)
    app.add_exception_handler(InvalidIdentifier, corrupt_entry_handler)

    @app.exception_handler(RedisError)
    async def redis_error_handler(request: Request, exc: RedisError):
        logger.error(
            "Redis call failed",
            event_type=LogEventType.ERROR,
            error=str(exc),
            path=str(request.url.path),
        )
        return error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
