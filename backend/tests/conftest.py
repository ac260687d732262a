"""Shared fixtures: an isolated settings file, a temporary vault and a fake provider."""

import asyncio
from pathlib import Path
from typing import List, Optional

import pytest

import note_assistant.core.config as config_module
from note_assistant.api import deps
from note_assistant.core.config import Settings, save_settings_to_file
from note_assistant.services.openai_service import CompletionParams, CompletionProvider, Message


class FakeProvider(CompletionProvider):
    """Records every request and answers with a canned reply or error."""

    def __init__(self, answer: str = "4", error: Optional[Exception] = None):
        self.answer = answer
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[tuple] = []

    async def complete(self, messages: List[Message], params: CompletionParams) -> str:
        self.calls.append((list(messages), params))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture
def vault_dir(tmp_path) -> Path:
    vault = tmp_path / "vault"
    vault.mkdir()
    (vault / "Note.md").write_text("Hello", encoding="utf-8")
    (vault / "Groceries.md").write_text("- eggs\n- milk", encoding="utf-8")
    (vault / "projects").mkdir()
    (vault / "projects" / "Roadmap.md").write_text("Q3: ship sync", encoding="utf-8")
    (vault / "image.png").write_bytes(b"\x89PNG")
    return vault


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path, vault_dir):
    """Point the settings file and vault at temporary paths for every test."""
    settings_file = tmp_path / "settings.json"
    monkeypatch.setattr(config_module, "SETTINGS_FILE", settings_file)
    monkeypatch.setenv("OPENAI_API_KEY", "")
    save_settings_to_file({"openai_api_key": "sk-test-key-1234", "vault_path": str(vault_dir)})
    monkeypatch.setattr(config_module, "settings", Settings())
    deps.reset_workspace()
    yield config_module.settings
    deps.reset_workspace()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
