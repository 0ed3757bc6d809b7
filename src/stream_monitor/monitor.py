"""Entry point object tying the store, stream and DLQ services together."""

import redis.asyncio as redis

from stream_monitor.config import Settings
from stream_monitor.dlq import DLQService
from stream_monitor.models import StatsOverview
from stream_monitor.store import StreamStore
from stream_monitor.streams import StreamService


class Monitor:
    """Stream and DLQ services sharing one Redis client.

    Usage:
        client = redis.from_url("redis://localhost:6379/0", decode_responses=True)
        monitor = Monitor(client, dlq_name="poison_queue")
        overview = await monitor.get_overview()
    """

    def __init__(
        self,
        client: redis.Redis,
        dlq_name: str,
        *,
        fetch_concurrency: int = 10,
        requeue_concurrency: int = 10,
        requeue_page_size: int = 100,
        scan_count: int = 100,
    ):
        if client is None:
            raise ValueError("redis client is required")
        if not dlq_name:
            raise ValueError("dlq name is required")

        self.client = client
        self.store = StreamStore(client, scan_count=scan_count)
        self.streams = StreamService(
            self.store, dlq_name, fetch_concurrency=fetch_concurrency
        )
        self.dlq = DLQService(
            self.store,
            dlq_name,
            requeue_concurrency=requeue_concurrency,
            page_size=requeue_page_size,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, client: redis.Redis | None = None
    ) -> "Monitor":
        """Build a monitor, creating the Redis client from settings if needed."""
        if client is None:
            client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls(
            client,
            settings.DLQ_NAME,
            fetch_concurrency=settings.FETCH_CONCURRENCY,
            requeue_concurrency=settings.REQUEUE_CONCURRENCY,
            requeue_page_size=settings.REQUEUE_PAGE_SIZE,
            scan_count=settings.SCAN_COUNT,
        )

    async def get_overview(self) -> StatsOverview:
        streams = await self.streams.list_streams()
        dlq_stats = await self.dlq.get_stats()

        return StatsOverview(
            total_streams=len(streams),
            total_messages=sum(stream.length for stream in streams),
            total_dlq_messages=dlq_stats.length,
        )

    async def close(self) -> None:
        await self.client.aclose()
