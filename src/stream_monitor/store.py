"""Thin async wrapper around the Redis Streams commands the monitor needs."""

from dataclasses import dataclass
from typing import Any

import redis.asyncio as redis
from redis.exceptions import ResponseError

from stream_monitor.envelope import is_entry_id
from stream_monitor.logging import LogEventType, get_logger
from stream_monitor.models import PaginationOpts, SortOrder

logger = get_logger(__name__)

STREAM_KIND = "stream"
DEFAULT_SCAN_COUNT = 100


@dataclass
class StreamEntry:
    id: str
    fields: dict[str, Any]


@dataclass
class StreamMeta:
    """Subset of XINFO STREAM; entry ids are empty strings for an empty stream."""

    length: int
    first_entry_id: str = ""
    last_entry_id: str = ""


class StreamStore:
    """Redis Streams access used by the stream and DLQ services.

    The client must be created with ``decode_responses=True``. Redis errors
    are not caught here except where a missing key means "no stream".
    """

    def __init__(self, client: redis.Redis, scan_count: int = DEFAULT_SCAN_COUNT):
        self.client = client
        self.scan_count = scan_count

    async def scan_kind(self, kind: str = STREAM_KIND) -> list[str]:
        """Return every key of the given type, in discovery order.

        SCAN may report a key more than once while the keyspace is rehashed,
        so repeats are dropped.
        """
        seen: dict[str, None] = {}
        cursor = 0
        while True:
            cursor, keys = await self.client.scan(
                cursor=cursor, match="*", count=self.scan_count, _type=kind
            )
            for key in keys:
                seen.setdefault(key, None)
            if int(cursor) == 0:
                break

        logger.debug(
            "Keyspace scanned",
            event_type=LogEventType.STREAM_SCAN,
            kind=kind,
            found=len(seen),
        )
        return list(seen)

    async def info(self, name: str) -> StreamMeta | None:
        """XINFO STREAM, or None when the key does not exist."""
        try:
            raw = await self.client.xinfo_stream(name)
        except ResponseError as exc:
            if "no such key" in str(exc).lower():
                return None
            raise

        return StreamMeta(
            length=int(raw.get("length", 0)),
            first_entry_id=_entry_id(raw.get("first-entry")),
            last_entry_id=_entry_id(raw.get("last-entry")),
        )

    async def memory_usage(self, name: str) -> int:
        usage = await self.client.memory_usage(name)
        return int(usage or 0)

    async def length(self, name: str) -> int:
        return int(await self.client.xlen(name))

    async def read_messages(self, name: str, opts: PaginationOpts) -> list[StreamEntry]:
        """Read one page in the direction given by ``opts.order``."""
        opts = opts.with_defaults()
        if opts.order == SortOrder.ASC:
            return await self.range_read(name, opts.cursor, opts.limit)
        return await self.range_read_reverse(name, opts.cursor, opts.limit)

    async def range_read(self, name: str, cursor: str, limit: int) -> list[StreamEntry]:
        """Entries after ``cursor`` (exclusive) in ascending id order."""
        start = f"({cursor}" if cursor else "-"
        entries = await self.client.xrange(name, min=start, max="+", count=limit)
        return _to_entries(entries)

    async def range_read_reverse(
        self, name: str, cursor: str, limit: int
    ) -> list[StreamEntry]:
        """Entries before ``cursor`` (exclusive) in descending id order."""
        start = f"({cursor}" if cursor else "+"
        entries = await self.client.xrevrange(name, max=start, min="-", count=limit)
        return _to_entries(entries)

    async def read_one(self, name: str, entry_id: str) -> StreamEntry | None:
        if not is_entry_id(entry_id):
            return None
        entries = await self.client.xrange(name, min=entry_id, max=entry_id, count=1)
        if not entries:
            return None
        return _to_entries(entries)[0]

    async def append(self, name: str, fields: dict[str, Any]) -> str:
        return await self.client.xadd(name, fields)

    async def delete(self, name: str, entry_id: str) -> bool:
        if not is_entry_id(entry_id):
            return False
        return bool(await self.client.xdel(name, entry_id))


def _entry_id(entry: Any) -> str:
    # redis-py returns (id, fields) or None for an empty stream
    if not entry:
        return ""
    return entry[0]


def _to_entries(raw: list | None) -> list[StreamEntry]:
    return [StreamEntry(id=entry_id, fields=fields) for entry_id, fields in raw or []]
