"""Dead Letter Queue (DLQ) management API routes."""

import json

from fastapi import APIRouter, HTTPException, Request, status

from stream_monitor.api.dependencies import MonitorDep, PaginationDep
from stream_monitor.api.responses import no_content, ok

router = APIRouter(prefix="/dlq", tags=["dlq"])


@router.get("")
async def get_dlq_stats(monitor: MonitorDep):
    """Get DLQ statistics."""
    return ok(await monitor.dlq.get_stats())


@router.get("/messages")
async def list_dlq_messages(monitor: MonitorDep, opts: PaginationDep):
    return ok(await monitor.dlq.list_messages(opts))


@router.get("/messages/{message_id}")
async def get_dlq_message(message_id: str, monitor: MonitorDep):
    message = await monitor.dlq.get_message(message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="message not found")
    return ok(message)


@router.post("/messages/{message_id}/requeue")
async def requeue_dlq_message(message_id: str, request: Request, monitor: MonitorDep):
    """Move a message back to its original topic.

    An optional JSON object body replaces the stored payload.
    """
    payload = None
    body = await request.body()
    if body:
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        if not isinstance(payload, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="payload must be a JSON object",
            )

    new_id = await monitor.dlq.requeue(message_id, payload)
    return ok({"message_id": message_id, "new_message_id": new_id})


@router.post("/requeue-all")
async def requeue_all_dlq_messages(monitor: MonitorDep):
    count = await monitor.dlq.requeue_all()
    return ok({"requeued": count})


@router.delete("/messages/{message_id}")
async def delete_dlq_message(message_id: str, monitor: MonitorDep):
    """Delete a message from DLQ (after manual review)."""
    if not await monitor.dlq.delete_message(message_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="message not found")
    return no_content()
