"""FastAPI dependencies: monitor lookup, basic auth and pagination parsing."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from stream_monitor.config import Settings
from stream_monitor.envelope import is_entry_id
from stream_monitor.errors import InvalidPagination
from stream_monitor.models import MAX_PAGE_LIMIT, PaginationOpts, SortOrder
from stream_monitor.monitor import Monitor

security = HTTPBasic(auto_error=False, realm="Stream Monitor")


def get_monitor(request: Request) -> Monitor:
    """Get the monitor from app state."""
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Redis not available",
        )
    return monitor


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_basic_auth(
    settings: Annotated[Settings, Depends(get_app_settings)],
    credentials: Annotated[HTTPBasicCredentials | None, Depends(security)],
) -> str:
    """Check basic auth credentials against the configured pair."""
    if credentials is not None:
        user_ok = secrets.compare_digest(
            credentials.username.encode(), settings.MONITOR_USERNAME.encode()
        )
        password_ok = secrets.compare_digest(
            credentials.password.encode(), settings.MONITOR_PASSWORD.encode()
        )
        if user_ok and password_ok:
            return credentials.username

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": 'Basic realm="Stream Monitor"'},
    )


def parse_pagination_opts(
    cursor: str | None = None,
    limit: str | None = None,
    order: str | None = None,
) -> PaginationOpts:
    """Validate raw query values and apply defaults.

    Limits above ``MAX_PAGE_LIMIT`` are clamped, ``order`` must be exactly
    ``asc`` or ``desc`` and a cursor must look like a stream entry id.
    """
    if cursor and not is_entry_id(cursor):
        raise InvalidPagination("invalid cursor")
    opts = PaginationOpts(cursor=cursor or "")

    if limit:
        if not (limit.isascii() and limit.isdigit()):
            raise InvalidPagination("invalid limit")
        opts.limit = min(int(limit), MAX_PAGE_LIMIT)

    if order:
        try:
            opts.order = SortOrder(order)
        except ValueError as exc:
            raise InvalidPagination("invalid order") from exc

    return opts.with_defaults()


def pagination_query(
    cursor: Annotated[str | None, Query(description="Last id of the previous page")] = None,
    limit: Annotated[str | None, Query(description="Page size, at most 100")] = None,
    order: Annotated[str | None, Query(description="asc or desc")] = None,
) -> PaginationOpts:
    return parse_pagination_opts(cursor, limit, order)


MonitorDep = Annotated[Monitor, Depends(get_monitor)]
PaginationDep = Annotated[PaginationOpts, Depends(pagination_query)]
