"""Exceptions raised by the stream monitor.

Redis errors are not wrapped: anything the client raises reaches the caller
unchanged. ``StoreUnavailable`` is exported so callers can catch it by the
name used throughout this package.
"""

from redis.exceptions import RedisError

StoreUnavailable = RedisError


class StreamMonitorError(Exception):
    """Base class for stream monitor errors."""


class EnvelopeCorrupt(StreamMonitorError):
    """Payload or metadata field is present but is not the expected JSON."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"failed to parse {field}: {reason}")


class InvalidIdentifier(StreamMonitorError):
    """Stream entry id is not ``<millis>-<sequence>``."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"invalid stream id: {entry_id!r}")


class MessageNotFound(StreamMonitorError):
    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"message not found: {message_id}")


class MissingOriginalTopic(StreamMonitorError):
    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(
            f"original topic not found in message metadata: {message_id}"
        )


class InvalidPagination(StreamMonitorError, ValueError):
    """Malformed ``limit`` or ``order`` supplied by a caller."""


class RequeueAllError(StreamMonitorError):
    """Bulk requeue stopped on the first failure of a page.

    ``requeued`` counts the messages moved back before the failure; the
    original exception is chained as ``__cause__``.
    """

    def __init__(self, requeued: int, message: str):
        self.requeued = requeued
        super().__init__(message)
