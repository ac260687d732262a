"""Assistant session routes: open/close, context picking, asking, inserting."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from note_assistant.api.deps import get_workspace
from note_assistant.services.assistant_session import AssistantSession
from note_assistant.services.document_source import DocumentNotFoundError
from note_assistant.services.event_bus import event_bus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assistant", tags=["assistant"])
limiter = Limiter(key_func=get_remote_address)


class OpenRequest(BaseModel):
    document_id: Optional[str] = None


class ContextRequest(BaseModel):
    document_id: str


class AskRequest(BaseModel):
    question: str


class InsertRequest(BaseModel):
    text: Optional[str] = None
    # Index into the session's exchanges; defaults to the latest answer
    exchange_index: Optional[int] = None
    document_id: Optional[str] = None


def _require_session() -> AssistantSession:
    session = get_workspace().host.session
    if session is None:
        raise HTTPException(status_code=409, detail="No assistant session is open")
    return session


@router.post("/open")
async def open_assistant(body: OpenRequest):
    """Open a new assistant session, replacing any session already open."""
    workspace = get_workspace()
    editor = None
    if body.document_id is not None:
        editor = workspace.editors.get(body.document_id)
        if editor is None:
            raise HTTPException(status_code=404, detail=f"Document {body.document_id} is not open")
    session = await workspace.host.open_assistant(editor)
    return session.snapshot()


@router.get("")
async def get_assistant():
    return _require_session().snapshot()


@router.delete("")
async def close_assistant():
    await get_workspace().host.close_assistant()
    return {"closed": True}


@router.post("/context")
async def add_context(body: ContextRequest):
    session = _require_session()
    try:
        await get_workspace().vault.get_document(body.document_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Document {body.document_id} not found")
    await session.add_context(body.document_id)
    return session.snapshot()


@router.delete("/context/{document_id}")
async def remove_context(document_id: str):
    session = _require_session()
    await session.remove_context(document_id)
    return session.snapshot()


@router.delete("/context")
async def clear_context():
    session = _require_session()
    await session.clear_context()
    return session.snapshot()


@router.post("/ask")
@limiter.limit("20/minute")
async def ask(request: Request, body: AskRequest):
    """Ask a question. Failures land in the snapshot's last_error, not as HTTP errors."""
    session = _require_session()
    if not body.question.strip():
        raise HTTPException(status_code=400, detail="Question must not be empty")
    if session.is_processing:
        raise HTTPException(status_code=409, detail="A question is already being answered")

    exchange = await session.ask(body.question)
    snapshot = session.snapshot()
    snapshot["exchange"] = exchange.model_dump() if exchange else None
    return snapshot


@router.post("/insert")
async def insert(body: InsertRequest):
    """Insert text (or a previous answer) at the cursor of the target note."""
    workspace = get_workspace()
    session = _require_session()

    text = body.text
    if text is None:
        if not session.exchanges:
            raise HTTPException(status_code=400, detail="Nothing to insert yet")
        index = body.exchange_index if body.exchange_index is not None else -1
        try:
            text = session.exchanges[index].answer
        except IndexError:
            raise HTTPException(status_code=404, detail=f"No exchange at index {index}")

    editor = None
    if body.document_id is not None:
        editor = workspace.editors.get(body.document_id)
        if editor is None:
            raise HTTPException(status_code=404, detail=f"Document {body.document_id} is not open")

    inserted = await session.insert_result(text, editor)
    return {"inserted": inserted}


@router.get("/events")
async def recent_events(limit: int = 50):
    return event_bus.recent(limit)
