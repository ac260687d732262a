"""Prompt text and builders for the note assistant."""

from typing import List, Tuple


SYSTEM_PROMPT = (
    "You are a helpful AI assistant for note-taking users. "
    "Provide clear, concise answers."
)

CONTEXT_PREFIX = "Here is some context information to help you answer: "


def build_context_string(documents: List[Tuple[str, str]]) -> str:
    """
    Concatenate context notes into labeled blocks.

    Args:
        documents: (title, content) pairs in selection order

    Returns:
        One "# <title>\\n<content>\\n\\n" block per note
    """
    return "".join(f"# {title}\n{content}\n\n" for title, content in documents)


def build_context_prompt(documents: List[Tuple[str, str]]) -> str:
    return CONTEXT_PREFIX + build_context_string(documents)
