"""Detection of the ``/ai`` slash command typed alone on a line.

Hosts report Enter in two timing regimes. A key press notification fires
before the newline is applied, so the command is still on the cursor line.
A content change notification fires after, so the command may already sit
on the line above an empty cursor line. Callers say which regime they are
in via ``is_enter_key``.
"""

from typing import Optional

from pydantic import BaseModel

from note_assistant.services.editor import CursorPosition, Editor

COMMAND_TOKEN = "/ai"


class LineEdit(BaseModel):
    """Replace characters [start_ch, end_ch) of one line with ``text``."""
    line: int
    start_ch: int
    end_ch: int
    text: str = ""


def is_command_line(text: Optional[str]) -> bool:
    return text is not None and text.strip() == COMMAND_TOKEN


def detect(current_line: str, previous_line: Optional[str], is_enter_key: bool) -> bool:
    """Return True if the lines around the cursor hold a bare ``/ai``.

    Args:
        current_line: Text of the line at the cursor
        previous_line: Text of the line above, or None on the first line
        is_enter_key: True for a key press seen before the newline lands

    Returns:
        Whether the command was typed
    """
    if is_command_line(current_line):
        return True
    if is_enter_key:
        return False
    return current_line.strip() == "" and is_command_line(previous_line)


def find_command_line(
    cursor_line: int,
    current_line: str,
    previous_line: Optional[str],
) -> Optional[int]:
    """Index of the line holding the command, current line first."""
    if is_command_line(current_line):
        return cursor_line
    if cursor_line > 0 and is_command_line(previous_line):
        return cursor_line - 1
    return None


def erase(
    cursor_line: int,
    current_line: str,
    previous_line: Optional[str],
) -> Optional[LineEdit]:
    """Build the edit that clears the command line, or None if there is none."""
    line = find_command_line(cursor_line, current_line, previous_line)
    if line is None:
        return None
    text = current_line if line == cursor_line else previous_line
    return LineEdit(line=line, start_ch=0, end_ch=len(text))


def lines_at_cursor(editor: Editor) -> tuple[int, str, Optional[str]]:
    cursor = editor.get_cursor()
    current = editor.get_line(cursor.line)
    previous = editor.get_line(cursor.line - 1) if cursor.line > 0 else None
    return cursor.line, current, previous


def detect_in_editor(editor: Editor, is_enter_key: bool) -> bool:
    _, current, previous = lines_at_cursor(editor)
    return detect(current, previous, is_enter_key)


def apply_erase(editor: Editor) -> bool:
    """Remove the command from the editor. Returns False when nothing matched."""
    edit = erase(*lines_at_cursor(editor))
    if edit is None:
        return False
    editor.replace_range(
        edit.text,
        CursorPosition(line=edit.line, ch=edit.start_ch),
        CursorPosition(line=edit.line, ch=edit.end_ch),
    )
    return True
