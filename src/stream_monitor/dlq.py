"""Dead letter queue inspection and requeue."""

import asyncio
from typing import Any

from stream_monitor import metrics
from stream_monitor.envelope import (
    HANDLER_POISONED_KEY,
    REASON_POISONED_KEY,
    SUBSCRIBER_POISONED_KEY,
    TOPIC_POISONED_KEY,
    decode_envelope,
    encode_envelope,
    parse_stream_timestamp,
)
from stream_monitor.errors import (
    MessageNotFound,
    MissingOriginalTopic,
    RequeueAllError,
)
from stream_monitor.logging import LogEventType, get_logger
from stream_monitor.models import (
    DLQMessage,
    MessageList,
    PaginationOpts,
    SortOrder,
    StreamInfo,
)
from stream_monitor.pagination import read_page
from stream_monitor.store import StreamEntry, StreamMeta, StreamStore
from stream_monitor.streams import stream_info_fields

logger = get_logger(__name__)

DEFAULT_REQUEUE_CONCURRENCY = 10
DEFAULT_REQUEUE_PAGE_SIZE = 100


def decode_dlq_message(entry: StreamEntry) -> DLQMessage:
    timestamp = parse_stream_timestamp(entry.id)
    envelope = decode_envelope(entry.fields)
    metadata = envelope.metadata
    return DLQMessage(
        id=entry.id,
        uuid=envelope.uuid,
        payload=envelope.payload,
        metadata=metadata,
        timestamp=timestamp,
        original_topic=metadata.get(TOPIC_POISONED_KEY, ""),
        error=metadata.get(REASON_POISONED_KEY, ""),
        handler=metadata.get(HANDLER_POISONED_KEY, ""),
        subscriber=metadata.get(SUBSCRIBER_POISONED_KEY, ""),
    )


class DLQService:
    """Operations on the dead letter queue stream."""

    def __init__(
        self,
        store: StreamStore,
        dlq_name: str,
        requeue_concurrency: int = DEFAULT_REQUEUE_CONCURRENCY,
        page_size: int = DEFAULT_REQUEUE_PAGE_SIZE,
    ):
        self.store = store
        self.dlq_name = dlq_name
        self.requeue_concurrency = requeue_concurrency
        self.page_size = page_size

    async def get_stats(self) -> StreamInfo:
        """DLQ info; a DLQ that was never written to reports zero entries."""
        meta = await self.store.info(self.dlq_name)
        if meta is None:
            meta = StreamMeta(length=0)
            memory_bytes = 0
        else:
            memory_bytes = await self.store.memory_usage(self.dlq_name)

        metrics.dlq_size.labels(queue=self.dlq_name).set(meta.length)
        return StreamInfo(**stream_info_fields(self.dlq_name, meta, memory_bytes))

    async def list_messages(self, opts: PaginationOpts) -> MessageList[DLQMessage]:
        return await read_page(
            self.store, self.dlq_name, opts, DLQMessage, decode_dlq_message
        )

    async def get_message(self, message_id: str) -> DLQMessage | None:
        entry = await self.store.read_one(self.dlq_name, message_id)
        if entry is None:
            return None
        return decode_dlq_message(entry)

    async def delete_message(self, message_id: str) -> bool:
        deleted = await self.store.delete(self.dlq_name, message_id)
        if deleted:
            logger.info(
                "DLQ message deleted",
                event_type=LogEventType.MESSAGE_DELETED,
                stream=self.dlq_name,
                message_id=message_id,
            )
        return deleted

    async def requeue(
        self, message_id: str, payload: dict[str, Any] | None = None
    ) -> str:
        """Move one message back to its original topic.

        ``payload`` replaces the stored payload when given. Returns the id of
        the new entry on the original topic.
        """
        message = await self.get_message(message_id)
        if message is None:
            metrics.dlq_requeue_failures_total.labels(reason="not_found").inc()
            raise MessageNotFound(message_id)

        if payload is not None:
            message.payload = payload

        return await self._requeue(message)

    async def requeue_all(self) -> int:
        """Requeue every message in the DLQ, oldest first.

        Pages are processed one after another. Within a page at most
        ``requeue_concurrency`` messages are in flight, and the first failure
        cancels the rest of the page. ``RequeueAllError`` then reports how many
        messages were requeued before the failure; calling again resumes from
        what is left in the DLQ.
        """
        requeued = 0
        semaphore = asyncio.Semaphore(self.requeue_concurrency)

        async def requeue_one(message: DLQMessage) -> None:
            nonlocal requeued
            async with semaphore:
                await self._requeue(message)
            requeued += 1

        opts = PaginationOpts(limit=self.page_size, order=SortOrder.ASC)
        while True:
            try:
                page = await self.list_messages(opts)
            except Exception as exc:
                raise RequeueAllError(
                    requeued, f"failed to read DLQ page: {exc}"
                ) from exc

            if not page.messages:
                break

            try:
                async with asyncio.TaskGroup() as group:
                    for message in page.messages:
                        group.create_task(requeue_one(message))
            except ExceptionGroup as eg:
                first = eg.exceptions[0]
                logger.error(
                    "Requeue all stopped",
                    event_type=LogEventType.REQUEUE_FAILED,
                    requeued=requeued,
                    error=str(first),
                )
                raise RequeueAllError(
                    requeued, f"failed to requeue message: {first}"
                ) from first

            opts = opts.model_copy(update={"cursor": page.messages[-1].id})

        logger.info(
            "Requeue all finished",
            event_type=LogEventType.REQUEUE_ALL,
            requeued=requeued,
        )
        return requeued

    async def _requeue(self, message: DLQMessage) -> str:
        # Append before delete: a crash in between duplicates, never loses
        if not message.original_topic:
            metrics.dlq_requeue_failures_total.labels(reason="missing_topic").inc()
            raise MissingOriginalTopic(message.id)

        try:
            new_id = await self.store.append(
                message.original_topic, encode_envelope(message.payload)
            )
            await self.store.delete(self.dlq_name, message.id)
        except Exception:
            metrics.dlq_requeue_failures_total.labels(reason="store").inc()
            raise

        metrics.dlq_messages_requeued_total.labels(topic=message.original_topic).inc()
        logger.info(
            "Message requeued",
            event_type=LogEventType.MESSAGE_REQUEUED,
            message_id=message.id,
            new_message_id=new_id,
            topic=message.original_topic,
        )
        return new_id
