from enum import Enum
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional
import uuid


class EventType(str, Enum):
    SESSION_OPENED = "session_opened"
    SESSION_CLOSED = "session_closed"
    CONTEXT_CHANGED = "context_changed"
    ASK_STARTED = "ask_started"
    LLM_REQUEST = "llm_request"
    LLM_RESPONSE = "llm_response"
    ASK_COMPLETED = "ask_completed"
    ASK_FAILED = "ask_failed"
    RESPONSE_INSERTED = "response_inserted"
    RESPONSE_COPIED = "response_copied"
    NOTICE = "notice"


class SessionEvent(BaseModel):
    id: str
    type: EventType
    timestamp: datetime
    session_id: str
    data: dict
    parent_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        event_type: EventType,
        session_id: str,
        data: dict,
        parent_id: Optional[str] = None
    ) -> "SessionEvent":
        return cls(
            id=str(uuid.uuid4()),
            type=event_type,
            timestamp=datetime.now(timezone.utc),
            session_id=session_id,
            data=data,
            parent_id=parent_id
        )


EventCallback = Callable[[SessionEvent], Awaitable[None]]
