"""Listing and inspection of the application's streams."""

import asyncio

from redis.exceptions import RedisError

from stream_monitor import metrics
from stream_monitor.envelope import decode_envelope, parse_stream_timestamp
from stream_monitor.errors import InvalidIdentifier
from stream_monitor.logging import LogEventType, get_logger
from stream_monitor.models import (
    Message,
    MessageList,
    PaginationOpts,
    StreamDetail,
    StreamInfo,
)
from stream_monitor.pagination import read_page
from stream_monitor.store import StreamEntry, StreamMeta, StreamStore

logger = get_logger(__name__)

DEFAULT_FETCH_CONCURRENCY = 10


def stream_info_fields(name: str, meta: StreamMeta, memory_bytes: int) -> dict:
    """Common StreamInfo fields; an unparsable last id leaves last_activity unset."""
    last_entry_id = meta.last_entry_id or None
    last_activity = None
    if last_entry_id:
        try:
            last_activity = parse_stream_timestamp(last_entry_id)
        except InvalidIdentifier:
            pass

    return {
        "name": name,
        "length": meta.length,
        "memory_bytes": memory_bytes,
        "last_entry_id": last_entry_id,
        "last_activity": last_activity,
    }


def decode_message(entry: StreamEntry) -> Message:
    timestamp = parse_stream_timestamp(entry.id)
    envelope = decode_envelope(entry.fields)
    return Message(
        id=entry.id,
        uuid=envelope.uuid,
        payload=envelope.payload,
        metadata=envelope.metadata,
        timestamp=timestamp,
    )


class StreamService:
    """Read and delete access to every stream except the DLQ."""

    def __init__(
        self,
        store: StreamStore,
        dlq_name: str,
        fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY,
    ):
        self.store = store
        self.dlq_name = dlq_name
        self.fetch_concurrency = fetch_concurrency

    async def list_streams(self) -> list[StreamInfo]:
        """Describe all streams found in the keyspace.

        Info and memory are fetched with at most ``fetch_concurrency`` streams
        in flight. A stream whose info cannot be read, or which disappeared
        after the scan, is left out of the result.
        """
        names = [name for name in await self.store.scan_kind() if name != self.dlq_name]
        slots: list[StreamInfo | None] = [None] * len(names)
        semaphore = asyncio.Semaphore(self.fetch_concurrency)

        async def fetch(index: int, name: str) -> None:
            async with semaphore:
                try:
                    slots[index] = await self._stream_info(name)
                except RedisError as exc:
                    metrics.stream_info_fetch_failures_total.inc()
                    logger.warning(
                        "Skipping stream, info unavailable",
                        event_type=LogEventType.STREAM_SKIPPED,
                        stream=name,
                        error=str(exc),
                    )

        await asyncio.gather(*(fetch(i, name) for i, name in enumerate(names)))
        return [info for info in slots if info is not None]

    async def get_stream_detail(self, name: str) -> StreamDetail | None:
        meta = await self.store.info(name)
        if meta is None:
            return None

        memory_bytes = await self.store.memory_usage(name)
        return StreamDetail(
            **stream_info_fields(name, meta, memory_bytes),
            first_entry_id=meta.first_entry_id or None,
        )

    async def list_messages(
        self, name: str, opts: PaginationOpts
    ) -> MessageList[Message]:
        return await read_page(self.store, name, opts, Message, decode_message)

    async def get_message(self, name: str, message_id: str) -> Message | None:
        entry = await self.store.read_one(name, message_id)
        if entry is None:
            return None
        return decode_message(entry)

    async def delete_message(self, name: str, message_id: str) -> bool:
        deleted = await self.store.delete(name, message_id)
        if deleted:
            metrics.stream_messages_deleted_total.labels(stream=name).inc()
            logger.info(
                "Message deleted",
                event_type=LogEventType.MESSAGE_DELETED,
                stream=name,
                message_id=message_id,
            )
        return deleted

    async def _stream_info(self, name: str) -> StreamInfo | None:
        meta = await self.store.info(name)
        if meta is None:
            return None
        memory_bytes = await self.store.memory_usage(name)
        return StreamInfo(**stream_info_fields(name, meta, memory_bytes))
