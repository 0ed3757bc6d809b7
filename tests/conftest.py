import asyncio
import fnmatch
import json
import time
from typing import Any

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from stream_monitor.dlq import DLQService
from stream_monitor.monitor import Monitor
from stream_monitor.store import StreamStore
from stream_monitor.streams import StreamService

DLQ_NAME = "test_dlq"


def _parse_id(entry_id: str) -> tuple[int, int]:
    ms, _, seq = entry_id.partition("-")
    return int(ms), int(seq or 0)


def _bound(value: str, *, lower: bool) -> tuple[tuple[int, float], bool]:
    """Return (id tuple, exclusive) for an XRANGE bound."""
    if value == "-":
        return (-1, -1), False
    if value == "+":
        return (2**64, float("inf")), False
    exclusive = value.startswith("(")
    if exclusive:
        value = value[1:]
    ms, _, seq = value.partition("-")
    if seq:
        return (int(ms), int(seq)), exclusive
    return (int(ms), 0 if lower else float("inf")), exclusive


class FakeStreamRedis:
    """In-memory stand-in for the async Redis stream commands used by the monitor.

    ``delays`` adds an ``asyncio.sleep`` to XADD / XINFO calls for a key so
    tests can observe concurrency, ``fail_info`` makes XINFO raise a connection
    error for a key.
    """

    def __init__(self):
        self._streams: dict[str, list[tuple[str, dict[str, str]]]] = {}
        self._strings: dict[str, str] = {}
        self._last_id = (0, 0)
        self.delays: dict[str, float] = {}
        self.fail_info: set[str] = set()
        self.in_flight = 0
        self.max_in_flight = 0
        self.scan_calls = 0

    async def _track(self, key: str) -> None:
        delay = self.delays.get(key)
        if delay is None:
            return
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(delay)
        finally:
            self.in_flight -= 1

    def _next_id(self) -> str:
        ms = int(time.time() * 1000)
        last_ms, last_seq = self._last_id
        if ms <= last_ms:
            self._last_id = (last_ms, last_seq + 1)
        else:
            self._last_id = (ms, 0)
        return f"{self._last_id[0]}-{self._last_id[1]}"

    def _keys(self) -> list[str]:
        return list(self._streams) + list(self._strings)

    async def set(self, key: str, value: str) -> bool:
        self._strings[key] = value
        return True

    async def scan(self, cursor=0, match=None, count=None, _type=None):
        self.scan_calls += 1
        keys = self._keys()
        count = count or 10
        chunk = keys[cursor : cursor + count]
        next_cursor = cursor + count if cursor + count < len(keys) else 0

        result = []
        for key in chunk:
            if match and not fnmatch.fnmatch(key, match):
                continue
            kind = "stream" if key in self._streams else "string"
            if _type and kind != _type:
                continue
            result.append(key)
        return next_cursor, result

    async def xinfo_stream(self, name: str, full: bool = False) -> dict[str, Any]:
        await self._track(name)
        if name in self.fail_info:
            raise RedisConnectionError("connection reset by peer")
        if name not in self._streams:
            raise ResponseError("no such key")
        entries = self._streams[name]
        return {
            "length": len(entries),
            "first-entry": entries[0] if entries else None,
            "last-entry": entries[-1] if entries else None,
        }

    async def memory_usage(self, name: str) -> int | None:
        if name not in self._streams:
            return None
        return 64 + 32 * len(self._streams[name])

    async def xlen(self, name: str) -> int:
        return len(self._streams.get(name, []))

    async def xadd(self, name: str, fields: dict[str, Any], id: str = "*") -> str:
        await self._track(name)
        entry_id = self._next_id() if id == "*" else id
        if id != "*":
            self._last_id = max(self._last_id, _parse_id(id))
        values = {str(k): str(v) for k, v in fields.items()}
        self._streams.setdefault(name, []).append((entry_id, values))
        return entry_id

    async def xdel(self, name: str, *ids: str) -> int:
        entries = self._streams.get(name)
        if not entries:
            return 0
        before = len(entries)
        self._streams[name] = [e for e in entries if e[0] not in ids]
        return before - len(self._streams[name])

    def _select(self, name: str, low: str, high: str):
        (low_id, low_ex), (high_id, high_ex) = (
            _bound(low, lower=True),
            _bound(high, lower=False),
        )
        selected = []
        for entry_id, fields in self._streams.get(name, []):
            key = _parse_id(entry_id)
            if key < low_id or (low_ex and key == low_id):
                continue
            if key > high_id or (high_ex and key == high_id):
                continue
            selected.append((entry_id, dict(fields)))
        return selected

    async def xrange(self, name: str, min="-", max="+", count=None):
        selected = self._select(name, min, max)
        return selected[:count] if count is not None else selected

    async def xrevrange(self, name: str, max="+", min="-", count=None):
        selected = list(reversed(self._select(name, min, max)))
        return selected[:count] if count is not None else selected

    async def aclose(self) -> None:
        pass


async def add_message(
    client: FakeStreamRedis,
    stream: str,
    payload: dict[str, Any],
    entry_id: str = "*",
) -> str:
    return await client.xadd(
        stream,
        {
            "_watermill_message_uuid": f"uuid-{payload.get('id', 'x')}",
            "payload": json.dumps(payload),
            "metadata": "{}",
        },
        id=entry_id,
    )


async def add_dlq_message(
    client: FakeStreamRedis,
    topic: str | None,
    payload: dict[str, Any],
    reason: str = "random error processing message",
    dlq: str = DLQ_NAME,
) -> str:
    metadata = {
        "reason_poisoned": reason,
        "handler_poisoned": "worker.1",
        "subscriber_poisoned": "subscriber",
    }
    if topic is not None:
        metadata["topic_poisoned"] = topic
    return await client.xadd(
        dlq,
        {
            "_watermill_message_uuid": f"uuid-{payload.get('id', 'x')}",
            "payload": json.dumps(payload),
            "metadata": json.dumps(metadata),
        },
    )


@pytest.fixture
def redis_client():
    return FakeStreamRedis()


@pytest.fixture
def store(redis_client):
    return StreamStore(redis_client)


@pytest.fixture
def stream_service(store):
    return StreamService(store, DLQ_NAME)


@pytest.fixture
def dlq_service(store):
    return DLQService(store, DLQ_NAME)


@pytest.fixture
def monitor(redis_client):
    return Monitor(redis_client, DLQ_NAME)
