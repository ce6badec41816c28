"""WebSocket endpoint streaming a recording's processing status.

The server sends JSON ``StatusMessage`` objects: a ``snapshot`` on
connect, then ``status`` and ``transcript`` messages as they happen and a
``progress`` tick every second while the recording is transcribing. The
socket is closed by the server after a terminal status.

Browsers cannot set headers on WebSocket requests, so the owner id may
also be passed as the ``user_id`` query parameter.
"""

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from meetnotes.api.deps import validate_owner_id
from meetnotes.core.exceptions import MeetNotesError
from meetnotes.core.models import StatusMessage, StatusMessageType
from meetnotes.services.container import Services
from meetnotes.services.notifications import StatusWatcher, transcribing_progress

logger = logging.getLogger(__name__)

router = APIRouter()

PROGRESS_TICK_SECONDS = 1.0


async def _send(websocket: WebSocket, message_type: StatusMessageType, data: dict) -> None:
    message = StatusMessage(type=message_type, data=data)
    await websocket.send_json(message.model_dump(mode="json"))


async def _until_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


async def _tick_progress(websocket: WebSocket, watcher: StatusWatcher) -> None:
    while True:
        await asyncio.sleep(PROGRESS_TICK_SECONDS)
        elapsed = watcher.transcribing_elapsed()
        if elapsed is None:
            continue
        await _send(
            websocket,
            StatusMessageType.progress,
            {
                "recording_id": watcher.recording_id,
                "elapsed_seconds": round(elapsed, 1),
                "percent": transcribing_progress(elapsed),
            },
        )


@router.websocket("/ws/recordings/{recording_id}")
async def recording_status_ws(
    websocket: WebSocket,
    recording_id: int,
    user_id: str | None = Query(None),
) -> None:
    """Push status changes for one recording until it completes or fails."""
    await websocket.accept()
    services: Services = websocket.app.state.services

    try:
        owner_id = validate_owner_id(websocket.headers.get("x-user-id") or user_id)
        snapshot = await services.jobs.snapshot(recording_id, owner_id)
    except MeetNotesError as exc:
        await _send(websocket, StatusMessageType.error, {"detail": exc.public_detail, "code": exc.code})
        await websocket.close(code=1008)
        return

    logger.info("Status WebSocket opened for recording %s (%s)", recording_id, snapshot.status)
    if snapshot.status.is_terminal:
        await _send(websocket, StatusMessageType.snapshot, snapshot.model_dump(mode="json"))
        await websocket.close()
        return

    watcher = StatusWatcher(
        recording_id,
        services.hub,
        lambda: services.jobs.snapshot(recording_id, owner_id),
        poll_interval=services.settings.status_poll_interval_seconds,
        last_status=snapshot.status,
        transcript_seen=snapshot.transcript is not None,
    )
    # Subscribe before the snapshot goes out so no later change is missed.
    watcher.start()
    try:
        await _send(websocket, StatusMessageType.snapshot, snapshot.model_dump(mode="json"))
    except Exception:
        await watcher.close()
        raise

    async def _relay() -> None:
        async with watcher:
            async for event in watcher:
                message_type = StatusMessageType.status if event.kind == "status" else StatusMessageType.transcript
                await _send(websocket, message_type, event.to_dict())

    relay = asyncio.create_task(_relay())
    listener = asyncio.create_task(_until_disconnect(websocket))
    ticker = asyncio.create_task(_tick_progress(websocket, watcher))
    try:
        done, _pending = await asyncio.wait({relay, listener}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (relay, listener, ticker):
            task.cancel()
        await asyncio.gather(relay, listener, ticker, return_exceptions=True)

    if listener in done:
        logger.info("Status WebSocket for recording %s closed by client", recording_id)
        return
    try:
        relay.result()
    except WebSocketDisconnect:
        logger.info("Status WebSocket for recording %s disconnected", recording_id)
        return
    await websocket.close()
    logger.info("Status WebSocket for recording %s finished", recording_id)
