"""Cursor pagination over a single stream."""

from collections.abc import Callable
from typing import TypeVar

from stream_monitor.models import MessageList, PaginationOpts
from stream_monitor.store import StreamEntry, StreamStore

T = TypeVar("T")


async def read_page(
    store: StreamStore,
    stream: str,
    opts: PaginationOpts,
    item_type: type[T],
    decode: Callable[[StreamEntry], T],
) -> MessageList[T]:
    """Read one page of ``stream`` and decode every entry.

    A page is reported as having more entries whenever it is exactly full, so
    the last page of a stream whose length is a multiple of the limit is
    followed by one empty page. One undecodable entry fails the whole page.
    """
    opts = opts.with_defaults()
    entries = await store.read_messages(stream, opts)
    total_count = await store.length(stream)

    messages = [decode(entry) for entry in entries]

    has_more = len(entries) == opts.limit
    next_cursor = entries[-1].id if has_more and entries else ""

    return MessageList[item_type](
        messages=messages,
        total_count=total_count,
        has_more=has_more,
        next_cursor=next_cursor,
    )
