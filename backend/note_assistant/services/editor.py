"""Text editor abstraction the assistant reads from and writes into.

The assistant never touches a UI widget directly. It works against the
``Editor`` interface (cursor, line access, range replacement), which a host
integration implements. ``TextBufferEditor`` is an in-memory implementation
used by the HTTP service and by tests; ``NoteEditor`` binds a buffer to a
markdown note in the vault.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional
import logging

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CursorPosition(BaseModel):
    line: int
    ch: int


class Editor(ABC):
    @abstractmethod
    def get_cursor(self) -> CursorPosition:
        ...

    @abstractmethod
    def set_cursor(self, pos: CursorPosition) -> None:
        ...

    @abstractmethod
    def get_line(self, line: int) -> str:
        """Return the text of a line without its trailing newline."""
        ...

    @abstractmethod
    def line_count(self) -> int:
        ...

    @abstractmethod
    def get_value(self) -> str:
        ...

    @abstractmethod
    def replace_range(
        self,
        text: str,
        start: CursorPosition,
        end: Optional[CursorPosition] = None,
    ) -> None:
        """Replace text between start and end. With no end, insert at start."""
        ...


class TextBufferEditor(Editor):
    """Editor over an in-memory list of lines."""

    def __init__(self, text: str = "", cursor: Optional[CursorPosition] = None):
        self._lines: List[str] = text.split("\n")
        self._cursor = CursorPosition(line=0, ch=0)
        if cursor is not None:
            self.set_cursor(cursor)

    def get_cursor(self) -> CursorPosition:
        return self._cursor.model_copy()

    def set_cursor(self, pos: CursorPosition) -> None:
        self._cursor = self._clip(pos)

    def get_line(self, line: int) -> str:
        if line < 0 or line >= len(self._lines):
            raise IndexError(f"Line {line} out of range (0-{len(self._lines) - 1})")
        return self._lines[line]

    def line_count(self) -> int:
        return len(self._lines)

    def get_value(self) -> str:
        return "\n".join(self._lines)

    def set_value(self, text: str) -> None:
        self._lines = text.split("\n")
        self._cursor = self._clip(self._cursor)

    def replace_range(
        self,
        text: str,
        start: CursorPosition,
        end: Optional[CursorPosition] = None,
    ) -> None:
        start = self._clip(start)
        end = self._clip(end) if end is not None else start
        if (end.line, end.ch) < (start.line, start.ch):
            start, end = end, start

        before = self._lines[start.line][:start.ch]
        after = self._lines[end.line][end.ch:]
        new_lines = (before + text + after).split("\n")
        self._lines[start.line:end.line + 1] = new_lines

        # Cursor lands at the end of the inserted text
        last = new_lines[-1]
        self._cursor = CursorPosition(
            line=start.line + len(new_lines) - 1,
            ch=len(last) - len(after),
        )

    def _clip(self, pos: CursorPosition) -> CursorPosition:
        line = min(max(pos.line, 0), len(self._lines) - 1)
        ch = min(max(pos.ch, 0), len(self._lines[line]))
        return CursorPosition(line=line, ch=ch)


class NoteEditor(TextBufferEditor):
    """Text buffer bound to a note file on disk."""

    def __init__(self, document_id: str, path: Path, text: str):
        super().__init__(text)
        self.document_id = document_id
        self.path = Path(path)

    def save(self) -> None:
        self.path.write_text(self.get_value(), encoding="utf-8")
        logger.info("Saved note %s (%d lines)", self.path.name, self.line_count())


class EditorRegistry:
    """Open note editors keyed by document id, plus the active one."""

    def __init__(self):
        self._editors: Dict[str, Editor] = {}
        self._active_id: Optional[str] = None

    def open(self, document_id: str, editor: Editor) -> Editor:
        self._editors[document_id] = editor
        self._active_id = document_id
        return editor

    def get(self, document_id: str) -> Optional[Editor]:
        return self._editors.get(document_id)

    def activate(self, document_id: str) -> Editor:
        if document_id not in self._editors:
            raise KeyError(f"No open editor for document {document_id}")
        self._active_id = document_id
        return self._editors[document_id]

    def close(self, document_id: str) -> None:
        self._editors.pop(document_id, None)
        if self._active_id == document_id:
            self._active_id = None

    def get_active_editor(self) -> Optional[Editor]:
        if self._active_id is None:
            return None
        return self._editors.get(self._active_id)
