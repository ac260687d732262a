from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from note_assistant.services.event_bus import event_bus

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Stream assistant session events to a connected UI."""
    await event_bus.connect(websocket)
    try:
        while True:
            # Keep connection alive; clients only listen
            await websocket.receive_text()
    except WebSocketDisconnect:
        await event_bus.disconnect(websocket)
