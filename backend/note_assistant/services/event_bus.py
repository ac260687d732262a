from collections import deque
from typing import Deque, List, Set
from fastapi import WebSocket
import asyncio
import json

from note_assistant.core.events import SessionEvent

HISTORY_SIZE = 200


class EventBus:
    def __init__(self, history_size: int = HISTORY_SIZE):
        self.connections: Set[WebSocket] = set()
        self.history: Deque[dict] = deque(maxlen=history_size)
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self.connections.add(websocket)

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self.connections.discard(websocket)

    async def publish(self, event: SessionEvent):
        """Record a session event and broadcast it."""
        payload = event.model_dump(mode="json")
        self.history.append(payload)
        await self.broadcast(payload)

    def recent(self, limit: int = 50) -> List[dict]:
        if limit <= 0:
            return []
        return list(self.history)[-limit:]

    async def broadcast(self, event: dict):
        """Broadcast event to all connected clients."""
        message = json.dumps(event, default=str)
        disconnected = set()

        for ws in self.connections.copy():
            try:
                await ws.send_text(message)
            except Exception:
                disconnected.add(ws)

        if disconnected:
            async with self._lock:
                self.connections -= disconnected


# Singleton instance
event_bus = EventBus()
