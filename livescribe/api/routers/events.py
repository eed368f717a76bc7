"""Push notifications (TRANSCRIPT_UPDATE / RECORDING_ERROR) over a websocket."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

LOGGER = logging.getLogger("livescribe.api.events")

router = APIRouter(tags=["events"])


@router.websocket("/v1/events")
async def events_socket(websocket: WebSocket) -> None:
    events = websocket.app.state.runtime.events
    queue = events.subscribe()
    try:
        await websocket.accept()
        while True:
            event = await queue.get()
            await websocket.send_json(event.model_dump(mode="json", by_alias=True))
    except WebSocketDisconnect:
        LOGGER.debug("Observer disconnected")
    finally:
        events.unsubscribe(queue)
