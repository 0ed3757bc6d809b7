from .config import Settings, get_settings
from .dlq import DLQService
from .errors import (
    EnvelopeCorrupt,
    InvalidIdentifier,
    InvalidPagination,
    MessageNotFound,
    MissingOriginalTopic,
    RequeueAllError,
    StoreUnavailable,
    StreamMonitorError,
)
from .models import (
    DLQMessage,
    Message,
    MessageList,
    PaginationOpts,
    SortOrder,
    StatsOverview,
    StreamDetail,
    StreamInfo,
)
from .monitor import Monitor
from .store import StreamEntry, StreamMeta, StreamStore
from .streams import StreamService

__all__ = [
    # Services
    "Monitor",
    "StreamService",
    "DLQService",
    "StreamStore",
    "StreamEntry",
    "StreamMeta",
    # Configuration
    "Settings",
    "get_settings",
    # Models
    "DLQMessage",
    "Message",
    "MessageList",
    "PaginationOpts",
    "SortOrder",
    "StatsOverview",
    "StreamDetail",
    "StreamInfo",
    # Errors
    "StreamMonitorError",
    "StoreUnavailable",
    "EnvelopeCorrupt",
    "InvalidIdentifier",
    "InvalidPagination",
    "MessageNotFound",
    "MissingOriginalTopic",
    "RequeueAllError",
]
