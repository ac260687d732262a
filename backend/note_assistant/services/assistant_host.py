"""Owner of the live assistant session and the slash command wiring."""

from typing import Callable, Optional
import logging

from note_assistant.core.config import Settings, get_settings
from note_assistant.core.events import EventCallback, EventType, SessionEvent
from note_assistant.services.assistant_session import ActiveEditorLocator, AssistantSession
from note_assistant.services.command_detector import apply_erase, detect_in_editor
from note_assistant.services.document_source import DocumentReader
from note_assistant.services.editor import Editor
from note_assistant.services.openai_service import CompletionProvider

logger = logging.getLogger(__name__)

ENTER_KEY = "Enter"


class AssistantHost:
    """Holds at most one open AssistantSession.

    Opening a new session closes the previous one first, so there is never
    more than one conversation attached to the workspace.
    """

    def __init__(
        self,
        reader: DocumentReader,
        provider: CompletionProvider,
        editors: ActiveEditorLocator,
        settings_getter: Callable[[], Settings] = get_settings,
        on_event: Optional[EventCallback] = None,
    ):
        self.reader = reader
        self.provider = provider
        self.editors = editors
        self._settings_getter = settings_getter
        self._on_event = on_event
        self.session: Optional[AssistantSession] = None

    async def open_assistant(self, editor: Optional[Editor] = None) -> AssistantSession:
        await self.close_assistant()

        if editor is None:
            editor = self.editors.get_active_editor()

        self.session = AssistantSession(
            reader=self.reader,
            provider=self.provider,
            editors=self.editors,
            editor=editor,
            settings_getter=self._settings_getter,
            on_event=self._on_event,
        )
        logger.info("Opened assistant session %s", self.session.id)
        if self._on_event is not None:
            await self._on_event(
                SessionEvent.create(
                    EventType.SESSION_OPENED,
                    self.session.id,
                    {"has_editor": editor is not None},
                )
            )
        return self.session

    async def close_assistant(self) -> None:
        if self.session is None:
            return
        session, self.session = self.session, None
        await session.close()
        logger.info("Closed assistant session %s", session.id)

    async def on_keydown(self, editor: Editor, key: str) -> Optional[AssistantSession]:
        """Handle a key press reported before the key is applied."""
        if key != ENTER_KEY:
            return None
        return await self._trigger(editor, is_enter_key=True)

    async def on_editor_change(self, editor: Editor) -> Optional[AssistantSession]:
        """Handle a content change reported after it was applied."""
        return await self._trigger(editor, is_enter_key=False)

    async def _trigger(self, editor: Editor, is_enter_key: bool) -> Optional[AssistantSession]:
        if not detect_in_editor(editor, is_enter_key):
            return None
        apply_erase(editor)
        logger.info("Slash command detected (enter=%s)", is_enter_key)
        return await self.open_assistant(editor)
