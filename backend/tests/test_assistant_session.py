"""
Tests for the assistant session lifecycle.

These tests verify that:
1. Context notes are deduplicated and kept in selection order
2. Each question sends system + optional context + user messages
3. Only one request is in flight at a time
4. Failures leave the transcript untouched and the session reusable
5. Inserting needs an editor and never writes without one
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeProvider
from note_assistant.core.config import Settings
from note_assistant.core.events import EventType
from note_assistant.services.assistant_session import (
    NO_DESTINATION_NOTICE,
    AssistantSession,
    Clipboard,
    SessionState,
)
from note_assistant.services.editor import CursorPosition, EditorRegistry, TextBufferEditor
from note_assistant.services.openai_service import MissingAPIKeyError, ProviderError
from note_assistant.services.prompts import SYSTEM_PROMPT
from note_assistant.services.vault import VaultSource


async def ids_by_title(vault: VaultSource) -> dict:
    return {d.title: d.id for d in await vault.list_documents()}


class TestAssistantSession:

    @pytest.fixture
    def vault(self, vault_dir):
        return VaultSource(vault_dir)

    @pytest.fixture
    def events(self):
        return AsyncMock()

    @pytest.fixture
    def session(self, vault, fake_provider, events):
        return AssistantSession(
            reader=vault,
            provider=fake_provider,
            editors=EditorRegistry(),
            settings_getter=lambda: Settings(openai_api_key="sk-test"),
            on_event=events,
        )

    def event_types(self, events):
        return [call.args[0].type for call in events.await_args_list]

    # ── Context ───────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_add_context_is_idempotent(self, session, vault, events):
        ids = await ids_by_title(vault)
        assert await session.add_context(ids["Note"]) is True
        assert await session.add_context(ids["Note"]) is False
        assert await session.add_context(ids["Groceries"]) is True
        assert await session.add_context(ids["Note"]) is False

        assert session.context == [ids["Note"], ids["Groceries"]]
        assert self.event_types(events) == [EventType.CONTEXT_CHANGED] * 2

    @pytest.mark.asyncio
    async def test_remove_and_clear_context(self, session, vault):
        ids = await ids_by_title(vault)
        for title in ("Note", "Groceries", "Roadmap"):
            await session.add_context(ids[title])

        await session.remove_context(ids["Groceries"])
        assert session.context == [ids["Note"], ids["Roadmap"]]

        await session.clear_context()
        assert session.context == []

    # ── Asking ────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_ask_without_context_sends_two_messages(self, session, fake_provider):
        exchange = await session.ask("What is 2+2?")

        messages, params = fake_provider.calls[0]
        assert [m.role for m in messages] == ["system", "user"]
        assert messages[0].content == SYSTEM_PROMPT
        assert messages[1].content == "What is 2+2?"
        assert params.model == "gpt-4o-mini"
        assert exchange.question == "What is 2+2?"
        assert exchange.answer == "4"
        assert session.state == SessionState.DISPLAYED

    @pytest.mark.asyncio
    async def test_ask_with_context_sends_three_messages(self, session, vault, fake_provider):
        ids = await ids_by_title(vault)
        await session.add_context(ids["Note"])

        await session.ask("What is 2+2?")

        messages, _ = fake_provider.calls[0]
        assert [m.role for m in messages] == ["system", "system", "user"]
        assert "# Note\nHello" in messages[1].content

    @pytest.mark.asyncio
    async def test_context_blocks_follow_selection_order(self, session, vault, fake_provider):
        ids = await ids_by_title(vault)
        await session.add_context(ids["Roadmap"])
        await session.add_context(ids["Note"])

        await session.ask("summarize")

        context = fake_provider.calls[0][0][1].content
        assert context.endswith("# Roadmap\nQ3: ship sync\n\n# Note\nHello\n\n")

    @pytest.mark.asyncio
    async def test_messages_rebuilt_for_each_question(self, session, fake_provider):
        await session.ask("first")
        await session.ask("second")

        messages, _ = fake_provider.calls[1]
        assert [m.content for m in messages] == [SYSTEM_PROMPT, "second"]
        assert [m.content for m in session.transcript] == ["first", "4", "second", "4"]
        assert len(session.exchanges) == 2

    @pytest.mark.asyncio
    async def test_blank_question_is_ignored(self, session, fake_provider):
        assert await session.ask("   ") is None
        assert fake_provider.calls == []
        assert session.state == SessionState.IDLE

    @pytest.mark.asyncio
    async def test_input_buffer_used_and_cleared(self, session, fake_provider):
        session.input_buffer = "  from the buffer "
        await session.ask()
        assert fake_provider.calls[0][0][-1].content == "from the buffer"
        assert session.input_buffer == ""

    @pytest.mark.asyncio
    async def test_settings_read_on_every_ask(self, vault, fake_provider):
        current = {"settings": Settings(openai_api_key="k", openai_model="gpt-4o-mini")}
        session = AssistantSession(
            reader=vault,
            provider=fake_provider,
            editors=EditorRegistry(),
            settings_getter=lambda: current["settings"],
        )
        await session.ask("one")
        current["settings"] = Settings(openai_api_key="k", openai_model="gpt-4o", temperature=0.1)
        await session.ask("two")

        assert fake_provider.calls[0][1].model == "gpt-4o-mini"
        assert fake_provider.calls[1][1].model == "gpt-4o"
        assert fake_provider.calls[1][1].temperature == 0.1

    @pytest.mark.asyncio
    async def test_second_ask_while_pending_is_dropped(self, session, fake_provider):
        fake_provider.gate = asyncio.Event()

        first = asyncio.create_task(session.ask("slow question"))
        while not fake_provider.calls:
            await asyncio.sleep(0)

        assert session.is_processing is True
        assert session.state == SessionState.SUBMITTING
        assert await session.ask("impatient question") is None
        assert len(fake_provider.calls) == 1

        fake_provider.gate.set()
        exchange = await first
        assert exchange.question == "slow question"
        assert session.is_processing is False

    # ── Failures ──────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_failure_keeps_transcript(self, session, fake_provider, events):
        await session.ask("first")
        fake_provider.error = ProviderError("OpenAI API Error: rate limited")

        assert await session.ask("second") is None

        assert session.state == SessionState.FAILED
        assert "rate limited" in session.last_error
        assert session.last_error.startswith("Error: ")
        assert [m.content for m in session.transcript] == ["first", "4"]
        assert session.is_processing is False
        assert EventType.ASK_FAILED in self.event_types(events)

    @pytest.mark.asyncio
    async def test_missing_key_message_is_shown(self, session, fake_provider):
        fake_provider.error = MissingAPIKeyError()
        await session.ask("hi")
        assert session.last_error == (
            "Error: OpenAI API key is not set. Please configure it in the settings."
        )

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, session, fake_provider):
        fake_provider.error = ProviderError("boom")
        await session.ask("hi")
        fake_provider.error = None

        exchange = await session.ask("hi")

        assert exchange.answer == "4"
        assert session.state == SessionState.DISPLAYED
        assert session.last_error is None

    @pytest.mark.asyncio
    async def test_deleted_context_note_fails_the_ask(self, session, fake_provider):
        await session.add_context("missing-note-id")
        await session.ask("hi")
        assert session.state == SessionState.FAILED
        assert "missing-note-id" in session.last_error
        assert fake_provider.calls == []
        assert session.is_processing is False

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_settles_failed(self, session, fake_provider, events):
        """Errors outside the completion hierarchy still end in the failed state."""
        await session.ask("first")
        fake_provider.error = RuntimeError("socket reset")

        assert await session.ask("second") is None

        assert session.state == SessionState.FAILED
        assert session.is_processing is False
        assert session.last_error == "Error: socket reset"
        assert [m.content for m in session.transcript] == ["first", "4"]
        assert self.event_types(events)[-1] == EventType.ASK_FAILED

    @pytest.mark.asyncio
    async def test_traversal_error_from_reader_settles_failed(self, session, vault, fake_provider):
        vault.get_document = AsyncMock(side_effect=ValueError("Path traversal detected"))
        await session.add_context("some-id")

        assert await session.ask("hi") is None

        assert session.state == SessionState.FAILED
        assert session.last_error == "Error: Path traversal detected"
        assert session.is_processing is False
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_later_asks(self, vault, fake_provider):
        listener = AsyncMock(side_effect=RuntimeError("listener down"))
        session = AssistantSession(
            reader=vault,
            provider=fake_provider,
            editors=EditorRegistry(),
            settings_getter=lambda: Settings(openai_api_key="sk-test"),
            on_event=listener,
        )

        first = await session.ask("one")
        second = await session.ask("two")

        assert first.answer == "4"
        assert second.question == "two"
        assert session.is_processing is False
        assert session.state == SessionState.DISPLAYED
        assert len(fake_provider.calls) == 2

    @pytest.mark.asyncio
    async def test_failing_listener_during_failure(self, vault, fake_provider):
        fake_provider.error = ProviderError("boom")
        session = AssistantSession(
            reader=vault,
            provider=fake_provider,
            editors=EditorRegistry(),
            settings_getter=lambda: Settings(openai_api_key="sk-test"),
            on_event=AsyncMock(side_effect=RuntimeError("listener down")),
        )

        assert await session.ask("hi") is None

        assert session.state == SessionState.FAILED
        assert session.last_error == "Error: boom"
        assert session.is_processing is False

    @pytest.mark.asyncio
    async def test_event_timestamps_are_timezone_aware(self, session, events):
        await session.ask("hi")
        assert all(call.args[0].timestamp.tzinfo is not None for call in events.await_args_list)

    # ── Results ───────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_insert_without_editor_is_a_notice(self, session, events):
        assert await session.insert_result("answer") is False
        event = events.await_args_list[-1].args[0]
        assert event.type == EventType.NOTICE
        assert event.data["message"] == NO_DESTINATION_NOTICE

    @pytest.mark.asyncio
    async def test_insert_uses_explicit_editor(self, session):
        editor = TextBufferEditor("Intro\n", cursor=CursorPosition(line=1, ch=0))
        assert await session.insert_result("answer", editor) is True
        assert editor.get_value() == "Intro\nanswer"

    @pytest.mark.asyncio
    async def test_insert_falls_back_to_active_editor(self, vault, fake_provider):
        editors = EditorRegistry()
        active = editors.open("doc", TextBufferEditor("x"))
        session = AssistantSession(reader=vault, provider=fake_provider, editors=editors)

        assert await session.insert_result("y") is True
        assert active.get_value() == "yx"

    @pytest.mark.asyncio
    async def test_copy_result(self, session, events):
        clipboard = AsyncMock(spec=Clipboard)
        assert await session.copy_result("answer", clipboard) is True
        clipboard.write_text.assert_awaited_once_with("answer")
        assert self.event_types(events)[-1] == EventType.RESPONSE_COPIED

    @pytest.mark.asyncio
    async def test_copy_failure_is_a_notice(self, session, events):
        clipboard = AsyncMock(spec=Clipboard)
        clipboard.write_text.side_effect = RuntimeError("clipboard unavailable")
        assert await session.copy_result("answer", clipboard) is False
        assert events.await_args_list[-1].args[0].data["message"] == "Failed to copy response"
