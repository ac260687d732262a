"""Note editor routes: open a note, move the cursor, report key/change events."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from note_assistant.api.deps import get_workspace
from note_assistant.services.document_source import DocumentNotFoundError
from note_assistant.services.editor import CursorPosition, NoteEditor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/editor", tags=["editor"])


class EditorState(BaseModel):
    document_id: str
    text: str
    cursor: CursorPosition


class EditorEvent(BaseModel):
    kind: Literal["keydown", "change"]
    key: Optional[str] = None
    # For change events the client sends the buffer after the edit
    text: Optional[str] = None
    cursor: Optional[CursorPosition] = None


class EditorEventResponse(BaseModel):
    triggered: bool
    session_id: Optional[str] = None
    editor: EditorState


def _state(document_id: str, editor: NoteEditor) -> EditorState:
    return EditorState(document_id=document_id, text=editor.get_value(), cursor=editor.get_cursor())


def _get_editor(document_id: str) -> NoteEditor:
    editor = get_workspace().editors.get(document_id)
    if editor is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} is not open")
    return editor


@router.post("/{document_id}/open", response_model=EditorState)
async def open_editor(document_id: str):
    """Open a note in an editor buffer and make it the active editor."""
    workspace = get_workspace()
    existing = workspace.editors.get(document_id)
    if existing is not None:
        workspace.editors.activate(document_id)
        return _state(document_id, existing)

    try:
        path = workspace.vault.path_for(document_id)
        text = await workspace.vault.read(document_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")

    editor = NoteEditor(document_id, path, text)
    workspace.editors.open(document_id, editor)
    logger.info("Opened editor for %s", path.name)
    return _state(document_id, editor)


@router.get("/{document_id}", response_model=EditorState)
async def get_editor(document_id: str):
    return _state(document_id, _get_editor(document_id))


@router.put("/{document_id}/cursor", response_model=EditorState)
async def set_cursor(document_id: str, cursor: CursorPosition):
    editor = _get_editor(document_id)
    editor.set_cursor(cursor)
    return _state(document_id, editor)


@router.post("/{document_id}/events", response_model=EditorEventResponse)
async def editor_event(document_id: str, event: EditorEvent):
    """Feed a host key press or content change through the slash command detector."""
    workspace = get_workspace()
    editor = _get_editor(document_id)

    if event.kind == "keydown":
        if event.key is None:
            raise HTTPException(status_code=400, detail="keydown events require a key")
        if event.cursor is not None:
            editor.set_cursor(event.cursor)
        session = await workspace.host.on_keydown(editor, event.key)
    else:
        if event.text is not None:
            editor.set_value(event.text)
        if event.cursor is not None:
            editor.set_cursor(event.cursor)
        session = await workspace.host.on_editor_change(editor)

    return EditorEventResponse(
        triggered=session is not None,
        session_id=session.id if session else None,
        editor=_state(document_id, editor),
    )


@router.post("/{document_id}/save", response_model=EditorState)
async def save_editor(document_id: str):
    editor = _get_editor(document_id)
    editor.save()
    return _state(document_id, editor)


@router.delete("/{document_id}")
async def close_editor(document_id: str):
    _get_editor(document_id)
    get_workspace().editors.close(document_id)
    return {"closed": document_id}
