"""Read models returned by the stream and DLQ services."""

from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100

T = TypeVar("T")


class SortOrder(str, Enum):
    """Direction of a stream page."""

    ASC = "asc"
    DESC = "desc"


class PaginationOpts(BaseModel):
    """Cursor pagination options.

    ``cursor`` is the id of the last entry of the previous page, empty for the
    start of the range (oldest entry for ``asc``, newest for ``desc``).
    """

    cursor: str = ""
    limit: int = 0
    order: SortOrder | None = None

    def with_defaults(self) -> "PaginationOpts":
        """Return a copy with a zero limit and a missing order filled in."""
        return self.model_copy(
            update={
                "limit": self.limit or DEFAULT_PAGE_LIMIT,
                "order": self.order or SortOrder.DESC,
            }
        )


class StreamInfo(BaseModel):
    name: str
    length: int = Field(ge=0)
    memory_bytes: int = 0
    last_entry_id: str | None = None
    last_activity: datetime | None = None


class StreamDetail(StreamInfo):
    first_entry_id: str | None = None


class Message(BaseModel):
    """Snapshot of one stream entry."""

    id: str
    uuid: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime


class DLQMessage(Message):
    """Dead-lettered entry with the poison queue annotations."""

    original_topic: str = ""
    error: str = ""
    handler: str = ""
    subscriber: str = ""


class MessageList(BaseModel, Generic[T]):
    """One page of messages.

    ``total_count`` is read separately from the page and may be slightly out
    of step with it.
    """

    messages: list[T] = Field(default_factory=list)
    total_count: int = 0
    has_more: bool = False
    next_cursor: str = ""


class StatsOverview(BaseModel):
    total_streams: int
    total_messages: int
    total_dlq_messages: int
