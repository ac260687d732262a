"""Dependency injection for API routes."""
from pathlib import Path
from typing import Optional

from note_assistant.core.config import get_settings
from note_assistant.services.assistant_host import AssistantHost
from note_assistant.services.editor import EditorRegistry
from note_assistant.services.event_bus import event_bus
from note_assistant.services.openai_service import OpenAIService
from note_assistant.services.vault import VaultSource


class Workspace:
    """Objects shared by every request: vault, open editors and the assistant."""

    def __init__(self, vault: VaultSource):
        self.vault = vault
        self.editors = EditorRegistry()
        self.provider = OpenAIService()
        self.host = AssistantHost(
            reader=vault,
            provider=self.provider,
            editors=self.editors,
            on_event=event_bus.publish,
        )


_workspace: Optional[Workspace] = None


def get_workspace() -> Workspace:
    """Get the singleton Workspace, built from current settings."""
    global _workspace
    if _workspace is None:
        _workspace = Workspace(VaultSource(Path(get_settings().vault_path)))
    return _workspace


def reset_workspace() -> None:
    """Drop the singleton so the next request rebuilds it (e.g. new vault path)."""
    global _workspace
    _workspace = None


async def close_workspace() -> None:
    """Close any open assistant session, then drop the singleton."""
    if _workspace is not None:
        await _workspace.host.close_assistant()
    reset_workspace()
