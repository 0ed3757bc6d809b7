"""Stream listing and inspection routes."""

from fastapi import APIRouter, HTTPException, status

from stream_monitor.api.dependencies import MonitorDep, PaginationDep
from stream_monitor.api.responses import no_content, ok

router = APIRouter(tags=["streams"])


@router.get("/overview")
async def get_overview(monitor: MonitorDep):
    """Totals across all streams and the DLQ."""
    return ok(await monitor.get_overview())


@router.get("/streams")
async def list_streams(monitor: MonitorDep):
    return ok(await monitor.streams.list_streams())


@router.get("/streams/{name}")
async def get_stream(name: str, monitor: MonitorDep):
    stream = await monitor.streams.get_stream_detail(name)
    if stream is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="stream not found")
    return ok(stream)


@router.get("/streams/{name}/messages")
async def list_stream_messages(name: str, monitor: MonitorDep, opts: PaginationDep):
    return ok(await monitor.streams.list_messages(name, opts))


@router.get("/streams/{name}/messages/{message_id}")
async def get_stream_message(name: str, message_id: str, monitor: MonitorDep):
    message = await monitor.streams.get_message(name, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="message not found")
    return ok(message)


@router.delete("/streams/{name}/messages/{message_id}")
async def delete_stream_message(name: str, message_id: str, monitor: MonitorDep):
    if not await monitor.streams.delete_message(name, message_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="message not found")
    return no_content()
