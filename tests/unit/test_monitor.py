from unittest.mock import patch

import pytest

from conftest import DLQ_NAME, FakeStreamRedis, add_dlq_message, add_message
from stream_monitor.config import Settings
from stream_monitor.monitor import Monitor


class TestOverview:
    @pytest.mark.asyncio
    async def test_overview_totals(self, redis_client, monitor):
        await add_message(redis_client, "orders.created", {"id": 1})
        await add_message(redis_client, "orders.created", {"id": 2})
        await add_message(redis_client, "payments.processed", {"id": 3})
        await add_dlq_message(redis_client, "orders.created", {"id": 4})

        overview = await monitor.get_overview()

        assert overview.model_dump() == {
            "total_streams": 2,
            "total_messages": 3,
            "total_dlq_messages": 1,
        }

    @pytest.mark.asyncio
    async def test_empty_keyspace(self, monitor):
        overview = await monitor.get_overview()

        assert overview.total_streams == 0
        assert overview.total_messages == 0
        assert overview.total_dlq_messages == 0


class TestConstruction:
    def test_requires_client(self):
        with pytest.raises(ValueError):
            Monitor(None, DLQ_NAME)

    def test_requires_dlq_name(self):
        with pytest.raises(ValueError):
            Monitor(FakeStreamRedis(), "")

    def test_services_share_store(self, monitor):
        assert monitor.streams.store is monitor.dlq.store
        assert monitor.streams.dlq_name == monitor.dlq.dlq_name == DLQ_NAME

    def test_from_settings_applies_limits(self):
        settings = Settings(
            _env_file=None,
            DLQ_NAME="poison",
            MONITOR_USERNAME="admin",
            MONITOR_PASSWORD="secret",
            FETCH_CONCURRENCY=4,
            REQUEUE_CONCURRENCY=3,
            REQUEUE_PAGE_SIZE=20,
            SCAN_COUNT=250,
        )

        monitor = Monitor.from_settings(settings, client=FakeStreamRedis())

        assert monitor.streams.fetch_concurrency == 4
        assert monitor.dlq.requeue_concurrency == 3
        assert monitor.dlq.page_size == 20
        assert monitor.store.scan_count == 250
        assert monitor.dlq.dlq_name == "poison"

    def test_from_settings_creates_client(self):
        settings = Settings(
            _env_file=None,
            DLQ_NAME="poison",
            MONITOR_USERNAME="admin",
            MONITOR_PASSWORD="secret",
            REDIS_HOST="redis.internal",
        )

        with patch("stream_monitor.monitor.redis.from_url") as from_url:
            Monitor.from_settings(settings)

        from_url.assert_called_once_with(
            "redis://redis.internal:6379/0", decode_responses=True
        )
