"""Per-invocation assistant conversation.

An ``AssistantSession`` owns the context notes a user picked, the running
transcript, and the guard that keeps a single completion request in flight.
It is independent of any rendering technology: everything a UI needs to
show is available as attributes or delivered as ``SessionEvent``s.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional, Protocol
import logging
import uuid

from pydantic import BaseModel

from note_assistant.core.config import Settings, get_settings
from note_assistant.core.events import EventCallback, EventType, SessionEvent
from note_assistant.services.document_source import DocumentNotFoundError, DocumentReader
from note_assistant.services.editor import Editor
from note_assistant.services.openai_service import (
    CompletionError,
    CompletionParams,
    CompletionProvider,
    Message,
)
from note_assistant.services.prompts import SYSTEM_PROMPT, build_context_prompt

logger = logging.getLogger(__name__)

NO_DESTINATION_NOTICE = "No active editor to insert content into"


class SessionState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    DISPLAYED = "displayed"
    FAILED = "failed"


class Exchange(BaseModel):
    """A question and the answer it received."""
    question: str
    answer: str


class ActiveEditorLocator(Protocol):
    def get_active_editor(self) -> Optional[Editor]:
        ...


class Clipboard(ABC):
    @abstractmethod
    async def write_text(self, text: str) -> None:
        ...


class AssistantSession:
    def __init__(
        self,
        reader: DocumentReader,
        provider: CompletionProvider,
        editors: ActiveEditorLocator,
        editor: Optional[Editor] = None,
        settings_getter: Callable[[], Settings] = get_settings,
        on_event: Optional[EventCallback] = None,
    ):
        self.id = str(uuid.uuid4())
        self.reader = reader
        self.provider = provider
        self.editors = editors
        self.editor = editor
        self._settings_getter = settings_getter
        self._on_event = on_event

        self.state = SessionState.IDLE
        self.is_processing = False
        self.closed = False
        self.context: List[str] = []
        self.messages: List[Message] = []
        self.transcript: List[Message] = []
        self.exchanges: List[Exchange] = []
        self.input_buffer = ""
        self.last_error: Optional[str] = None

    async def _emit(self, event_type: EventType, data: dict) -> None:
        if self._on_event is not None:
            await self._on_event(SessionEvent.create(event_type, self.id, data))

    async def _emit_quietly(self, event_type: EventType, data: dict) -> None:
        """Emit an event, logging listener failures instead of raising them."""
        try:
            await self._emit(event_type, data)
        except Exception:
            logger.exception("Event listener failed for %s in session %s", event_type.value, self.id)

    # ── Context ───────────────────────────────────────────────────────

    async def add_context(self, document_id: str) -> bool:
        """Add a note to the context. Returns False if it was already there."""
        if document_id in self.context:
            return False
        self.context.append(document_id)
        await self._emit(EventType.CONTEXT_CHANGED, {"context": list(self.context)})
        return True

    async def remove_context(self, document_id: str) -> None:
        self.context = [d for d in self.context if d != document_id]
        await self._emit(EventType.CONTEXT_CHANGED, {"context": list(self.context)})

    async def clear_context(self) -> None:
        self.context = []
        await self._emit(EventType.CONTEXT_CHANGED, {"context": []})

    async def _context_documents(self) -> List[tuple]:
        documents = []
        for document_id in self.context:
            document = await self.reader.get_document(document_id)
            content = await self.reader.read(document_id)
            documents.append((document.title, content))
        return documents

    # ── Asking ────────────────────────────────────────────────────────

    async def ask(self, question: Optional[str] = None) -> Optional[Exchange]:
        """Send a question to the completion provider.

        Args:
            question: Question text; defaults to the input buffer

        Returns:
            The new Exchange, or None when nothing was sent or the request failed
        """
        if question is None:
            question = self.input_buffer
        question = question.strip()
        if not question or self.is_processing:
            return None

        try:
            self.is_processing = True
            self.state = SessionState.SUBMITTING
            await self._emit_quietly(EventType.ASK_STARTED, {"question": question})

            self.messages = [Message(role="system", content=SYSTEM_PROMPT)]

            if self.context:
                documents = await self._context_documents()
                self.messages.append(
                    Message(role="system", content=build_context_prompt(documents))
                )

            self.messages.append(Message(role="user", content=question))

            params = CompletionParams.from_settings(self._settings_getter())
            await self._emit_quietly(
                EventType.LLM_REQUEST,
                {"model": params.model, "messages": len(self.messages)},
            )
            answer = await self.provider.complete(list(self.messages), params)
            await self._emit_quietly(EventType.LLM_RESPONSE, {"response_length": len(answer)})

            exchange = Exchange(question=question, answer=answer)
            self.transcript.append(Message(role="user", content=question))
            self.transcript.append(Message(role="assistant", content=answer))
            self.messages.append(Message(role="assistant", content=answer))
            self.exchanges.append(exchange)
            self.input_buffer = ""
            self.last_error = None
            self.state = SessionState.DISPLAYED
            await self._emit_quietly(EventType.ASK_COMPLETED, exchange.model_dump())
            return exchange

        except (CompletionError, DocumentNotFoundError, OSError) as e:
            logger.warning("Ask failed in session %s: %s", self.id, _describe(e))
            await self._fail(e)
            return None

        except Exception as e:
            logger.exception("Unexpected failure while asking in session %s", self.id)
            await self._fail(e)
            return None

        finally:
            self.is_processing = False

    async def _fail(self, error: Exception) -> None:
        self.state = SessionState.FAILED
        self.last_error = f"Error: {_describe(error)}"
        await self._emit_quietly(EventType.ASK_FAILED, {"error": self.last_error})

    # ── Results ───────────────────────────────────────────────────────

    async def insert_result(self, text: str, editor: Optional[Editor] = None) -> bool:
        """Insert text at the cursor of the target editor.

        The target is ``editor``, then the editor the session was opened
        from, then the host's active editor.
        """
        target = editor or self.editor or self.editors.get_active_editor()
        if target is None:
            await self._emit(EventType.NOTICE, {"message": NO_DESTINATION_NOTICE})
            return False

        target.replace_range(text, target.get_cursor())
        await self._emit(EventType.RESPONSE_INSERTED, {"length": len(text)})
        return True

    async def copy_result(self, text: str, clipboard: Clipboard) -> bool:
        try:
            await clipboard.write_text(text)
        except Exception as e:
            logger.error("Could not copy text: %s", str(e))
            await self._emit(EventType.NOTICE, {"message": "Failed to copy response"})
            return False
        await self._emit(EventType.RESPONSE_COPIED, {"length": len(text)})
        return True

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.context = []
        await self._emit(EventType.SESSION_CLOSED, {})

    def snapshot(self) -> dict:
        """Serializable view of the session for API responses."""
        return {
            "session_id": self.id,
            "state": self.state.value,
            "is_processing": self.is_processing,
            "context": list(self.context),
            "exchanges": [e.model_dump() for e in self.exchanges],
            "transcript": [m.model_dump() for m in self.transcript],
            "last_error": self.last_error,
        }


def _describe(error: Exception) -> str:
    # KeyError str() wraps the message in quotes
    if isinstance(error, KeyError) and error.args:
        return str(error.args[0])
    return str(error)
