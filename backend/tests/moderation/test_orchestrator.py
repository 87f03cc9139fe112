"""Tests for the moderation orchestrator.

The chat source and action executor are mocked; classification, the log
and moderator authority are real.
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from botdefend.core.exceptions import (
    AuthError,
    CredentialPoolExhausted,
    ModerationActionError,
    NoActiveSessionError,
)
from botdefend.modules.chat.models import ChatMessage, ChatPage
from botdefend.modules.chat.youtube_api import YouTubeAPIError
from botdefend.modules.credentials.models import BotIdentity
from botdefend.modules.moderation.actions import ActionOutcome
from botdefend.modules.moderation.authority import ModeratorAuthority
from botdefend.modules.moderation.models import ActionKind, LogEntryKind, ModeratorState
from botdefend.modules.moderation.orchestrator import (
    NOT_MODERATOR_ADVISORY,
    ModerationOrchestrator,
)
from botdefend.modules.moderation.schemas import ModerationSettings, SessionSnapshotResponse


SESSION = "chat-123"
URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
SPAM_TEXT = "judol gacor 100% jp, wa 08123456789"


def make_message(message_id: str, text: str = "halo semua", author_id: str = None) -> ChatMessage:
    return ChatMessage(
        id=message_id,
        author_id=author_id or f"UC-{message_id}",
        author_name=f"Author {message_id}",
        text=text,
    )


def make_page(*messages: ChatMessage, interval: int = 3000) -> ChatPage:
    return ChatPage(messages=list(messages), next_cursor="next", suggested_interval_ms=interval)


def make_source(owner: bool = True) -> MagicMock:
    source = MagicMock()
    source.pool.__len__.return_value = 2
    source.pool.source = "local"
    source.pool.load_remote = AsyncMock()
    identity = BotIdentity(id="1", display_name="Guard Bot", access_token="tok", refresh_token="rt")
    source.pool.acquire = AsyncMock(return_value=(identity, "tok"))
    if owner:
        source.list_moderators = AsyncMock(return_value={"items": []})
    else:
        source.list_moderators = AsyncMock(
            side_effect=YouTubeAPIError(
                "forbidden",
                status_code=403,
                details={"error": {"errors": [{"reason": "forbidden"}]}},
            )
        )
    source.resolve_session = AsyncMock(return_value=SESSION)
    source.fetch_page = AsyncMock(return_value=make_page())
    return source


def make_executor(results: dict = None) -> MagicMock:
    """Executor whose outcome per action kind is success unless overridden.

    ``results`` maps an ActionKind to "ok", "failed" or "forbidden".
    """
    results = results or {}

    async def execute_action(kind, session_id, target_id):
        mode = results.get(kind, "ok")
        if mode == "ok":
            return ActionOutcome(kind, target_id, success=True, bot_name="Guard Bot")
        return ActionOutcome(kind, target_id, success=False, forbidden=mode == "forbidden", error=mode)

    executor = MagicMock()
    executor.execute_action = AsyncMock(side_effect=execute_action)
    return executor


def make_orchestrator(source=None, executor=None, moderation_settings=None) -> ModerationOrchestrator:
    source = source or make_source()
    orchestrator = ModerationOrchestrator(
        source,
        authority=ModeratorAuthority(source, clock=lambda: 1000.0),
        executor=executor or make_executor(),
    )
    orchestrator.session_id = SESSION
    orchestrator.settings = moderation_settings or ModerationSettings()
    return orchestrator


class TestPollCycle:
    """One poll cycle commits counters and the log together."""

    @pytest.mark.asyncio
    async def test_empty_page_changes_nothing(self):
        events = []
        orchestrator = make_orchestrator()
        orchestrator.add_listener(events.append)

        new_spam = await orchestrator.poll_once()

        assert new_spam == 0
        assert orchestrator.stats.to_dict()["total_chat"] == 0
        assert orchestrator.stats.api_call_count == 0
        assert len(orchestrator.log) == 0
        assert events == []

    @pytest.mark.asyncio
    async def test_spam_is_logged_without_auto_actions(self):
        source = make_source()
        source.fetch_page.return_value = make_page(make_message("a"), make_message("b", SPAM_TEXT))
        executor = make_executor()
        orchestrator = make_orchestrator(source, executor)

        new_spam = await orchestrator.poll_once()

        assert new_spam == 1
        assert orchestrator.stats.total_chat == 2
        assert orchestrator.stats.spam_detected == 1
        assert orchestrator.stats.actions_taken == 0
        assert orchestrator.stats.api_call_count == 1
        assert orchestrator.stats.spam_by_type["judol"] == 1
        assert orchestrator.log.get("b").kind == LogEntryKind.SPAM_DETECTED
        executor.execute_action.assert_not_called()

    @pytest.mark.asyncio
    async def test_cursor_and_interval_are_tracked(self):
        source = make_source()
        source.fetch_page.return_value = make_page(interval=200)
        orchestrator = make_orchestrator(source)

        await orchestrator.poll_once()
        await orchestrator.poll_once()

        assert orchestrator.polling_interval_ms == 1000
        assert source.fetch_page.await_args_list[1].args == (SESSION, "next")

    @pytest.mark.asyncio
    async def test_auto_delete_counts_actions_and_calls(self):
        source = make_source()
        source.fetch_page.return_value = make_page(
            make_message("a", SPAM_TEXT), make_message("b"), make_message("c", SPAM_TEXT)
        )
        orchestrator = make_orchestrator(source, moderation_settings=ModerationSettings(auto_delete=True))

        await orchestrator.poll_once()

        stats = orchestrator.stats
        assert (stats.total_chat, stats.spam_detected, stats.actions_taken, stats.api_call_count) == (3, 2, 2, 3)
        assert orchestrator.log.get("a").kind == LogEntryKind.DELETED
        assert orchestrator.log.get("c").kind == LogEntryKind.DELETED

    @pytest.mark.asyncio
    async def test_ban_after_timeout_sets_banned(self):
        source = make_source()
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT))
        executor = make_executor()
        orchestrator = make_orchestrator(
            source, executor, ModerationSettings(auto_timeout=True, auto_ban=True)
        )

        await orchestrator.poll_once()

        kinds = [call.args[0] for call in executor.execute_action.await_args_list]
        assert kinds == [ActionKind.TIMEOUT, ActionKind.BAN]
        assert executor.execute_action.await_args_list[0].args[2] == "UC-a"
        assert orchestrator.log.get("a").kind == LogEntryKind.BANNED
        assert orchestrator.stats.actions_taken == 2

    @pytest.mark.asyncio
    async def test_failed_ban_keeps_timeout(self):
        source = make_source()
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT))
        orchestrator = make_orchestrator(
            source,
            make_executor({ActionKind.BAN: "failed"}),
            ModerationSettings(auto_timeout=True, auto_ban=True),
        )

        await orchestrator.poll_once()

        assert orchestrator.log.get("a").kind == LogEntryKind.TIMEOUT
        assert orchestrator.stats.actions_taken == 1
        assert orchestrator.stats.api_call_count == 3

    @pytest.mark.asyncio
    async def test_forbidden_delete_pauses_actions(self):
        source = make_source(owner=False)
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT), make_message("b", SPAM_TEXT))
        executor = make_executor({ActionKind.DELETE: "forbidden"})
        orchestrator = make_orchestrator(source, executor, ModerationSettings(auto_delete=True))

        await orchestrator.poll_once()

        entry = orchestrator.log.get("a")
        assert entry.kind == LogEntryKind.SPAM_DETECTED
        assert entry.action_taken is False
        record = orchestrator.authority.latest(SESSION)
        assert record.state == ModeratorState.MOD_DENIED
        assert record.is_moderator is False
        assert orchestrator.advisory == NOT_MODERATOR_ADVISORY
        assert executor.execute_action.await_count == 1
        assert orchestrator.stats.api_call_count == 2

    @pytest.mark.asyncio
    async def test_successful_action_confirms_assumed_moderator(self):
        source = make_source(owner=False)
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT))
        orchestrator = make_orchestrator(source, moderation_settings=ModerationSettings(auto_delete=True))

        await orchestrator.poll_once()

        assert orchestrator.authority.latest(SESSION).state == ModeratorState.MOD_CONFIRMED
        assert orchestrator.advisory is None

    @pytest.mark.asyncio
    async def test_acted_message_is_not_acted_again(self):
        source = make_source()
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT))
        executor = make_executor()
        orchestrator = make_orchestrator(source, executor, ModerationSettings(auto_delete=True))

        await orchestrator.poll_once()
        second = await orchestrator.poll_once()

        assert second == 0
        assert executor.execute_action.await_count == 1
        assert orchestrator.stats.spam_detected == 1
        assert orchestrator.stats.total_chat == 2
        assert len(orchestrator.log) == 1

    @pytest.mark.asyncio
    async def test_poll_without_session_raises(self):
        orchestrator = make_orchestrator()
        orchestrator.session_id = None

        with pytest.raises(NoActiveSessionError):
            await orchestrator.poll_once()


class TestSpamEvents:

    @pytest.mark.asyncio
    async def test_event_carries_count_and_sound_preference(self):
        source = make_source()
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT), make_message("b", SPAM_TEXT))
        orchestrator = make_orchestrator(source, moderation_settings=ModerationSettings(sound_enabled=False))
        events = []
        received = []

        async def async_listener(event):
            received.append(event.count)

        def broken_listener(event):
            raise RuntimeError("listener bug")

        orchestrator.add_listener(events.append)
        orchestrator.add_listener(broken_listener)
        orchestrator.add_listener(async_listener)

        await orchestrator.poll_once()

        assert len(events) == 1
        assert events[0].count == 2
        assert events[0].play_sound is False
        assert received == [2]

    @pytest.mark.asyncio
    async def test_event_uses_settings_the_cycle_started_with(self):
        source = make_source()
        fetching = asyncio.Event()
        release = asyncio.Event()

        async def blocked_fetch(session_id, cursor):
            fetching.set()
            await release.wait()
            return make_page(make_message("a", SPAM_TEXT))

        source.fetch_page = AsyncMock(side_effect=blocked_fetch)
        orchestrator = make_orchestrator(source, moderation_settings=ModerationSettings(sound_enabled=True))
        events = []
        orchestrator.add_listener(events.append)

        cycle = asyncio.create_task(orchestrator.poll_once())
        await fetching.wait()
        orchestrator.settings = ModerationSettings(sound_enabled=False)
        release.set()
        await cycle

        assert len(events) == 1
        assert events[0].play_sound is True


class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        source = make_source()
        source.fetch_page.return_value = make_page(interval=200)
        orchestrator = ModerationOrchestrator(source, executor=make_executor())

        session_id = await orchestrator.start_session(URL, ModerationSettings())
        await asyncio.sleep(0.01)

        assert session_id == SESSION
        assert orchestrator.running
        assert orchestrator.snapshot()["moderator_status"]["state"] == "owner_confirmed"

        orchestrator.stop_session()
        await orchestrator.wait_closed()

        assert not orchestrator.running
        assert source.fetch_page.await_count >= 1
        assert orchestrator.polling_interval_ms == 1000

    @pytest.mark.asyncio
    async def test_results_fetched_after_stop_are_discarded(self):
        source = make_source()
        executor = make_executor()
        orchestrator = ModerationOrchestrator(source, executor=executor)

        async def fetch_then_stop(session_id, cursor):
            orchestrator.stop_session()
            return make_page(make_message("a", SPAM_TEXT))

        source.fetch_page = AsyncMock(side_effect=fetch_then_stop)

        await orchestrator.start_session(URL, ModerationSettings(auto_delete=True))
        await orchestrator.wait_closed()

        assert orchestrator.stats.total_chat == 0
        assert len(orchestrator.log) == 0
        executor.execute_action.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_error_ends_session(self):
        source = make_source()
        source.fetch_page = AsyncMock(side_effect=AuthError("token revoked"))
        orchestrator = ModerationOrchestrator(source, executor=make_executor())

        await orchestrator.start_session(URL)
        await orchestrator.wait_closed()

        assert not orchestrator.running
        assert orchestrator.last_error == "Authentication failed: token revoked"

    @pytest.mark.asyncio
    async def test_start_without_bots_raises(self):
        source = make_source()
        source.pool.__len__.return_value = 0
        orchestrator = ModerationOrchestrator(source)

        with pytest.raises(CredentialPoolExhausted):
            await orchestrator.start_session(URL)

        source.pool.load_remote.assert_awaited_once()
        source.resolve_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_restart_resets_counters_and_log(self):
        source = make_source()
        orchestrator = make_orchestrator(source)
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT))
        await orchestrator.poll_once()
        source.fetch_page.return_value = make_page()

        await orchestrator.start_session(URL)
        orchestrator.stop_session()
        await orchestrator.wait_closed()

        assert len(orchestrator.log) == 0
        assert orchestrator.stats.spam_detected == 0

    @pytest.mark.asyncio
    async def test_snapshot_validates(self):
        source = make_source()
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT))
        orchestrator = make_orchestrator(source)
        await orchestrator.poll_once()

        snapshot = SessionSnapshotResponse(**orchestrator.snapshot())

        assert snapshot.session_id == SESSION
        assert snapshot.bot_count == 2
        assert snapshot.stats["spam_detected"] == 1
        assert snapshot.log[0]["id"] == "a"

    @pytest.mark.asyncio
    async def test_stop_while_resolving_cancels_start(self):
        source = make_source()
        resolving = asyncio.Event()
        release = asyncio.Event()

        async def slow_resolve(url):
            resolving.set()
            await release.wait()
            return SESSION

        source.resolve_session = AsyncMock(side_effect=slow_resolve)
        orchestrator = ModerationOrchestrator(source, executor=make_executor())

        start = asyncio.create_task(orchestrator.start_session(URL))
        await resolving.wait()
        orchestrator.stop_session()
        release.set()
        session_id = await start
        await orchestrator.wait_closed()

        assert session_id is None
        assert not orchestrator.running
        assert orchestrator.snapshot()["running"] is False
        source.list_moderators.assert_not_called()
        source.fetch_page.assert_not_called()


class TestManualActions:

    @pytest.mark.asyncio
    async def test_requires_session(self):
        orchestrator = make_orchestrator()
        orchestrator.session_id = None

        with pytest.raises(NoActiveSessionError):
            await orchestrator.take_manual_action(ActionKind.DELETE, "a")

    @pytest.mark.asyncio
    async def test_delete_upgrades_entry(self):
        source = make_source()
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT))
        orchestrator = make_orchestrator(source)
        await orchestrator.poll_once()

        updated = await orchestrator.take_manual_action("delete", "a")

        assert updated == 1
        assert orchestrator.log.get("a").kind == LogEntryKind.DELETED
        assert orchestrator.stats.actions_taken == 1
        assert orchestrator.stats.api_call_count == 2

    @pytest.mark.asyncio
    async def test_ban_upgrades_all_entries_by_author(self):
        source = make_source()
        source.fetch_page.return_value = make_page(
            make_message("a", SPAM_TEXT, author_id="UC-x"),
            make_message("b", SPAM_TEXT + " lagi", author_id="UC-x"),
        )
        orchestrator = make_orchestrator(source)
        await orchestrator.poll_once()

        updated = await orchestrator.take_manual_action(ActionKind.BAN, "UC-x")

        assert updated == 2
        assert all(entry.kind == LogEntryKind.BANNED for entry in orchestrator.log)

    @pytest.mark.asyncio
    async def test_forbidden_action_raises_and_denies(self):
        orchestrator = make_orchestrator(executor=make_executor({ActionKind.TIMEOUT: "forbidden"}))

        with pytest.raises(ModerationActionError) as exc_info:
            await orchestrator.take_manual_action(ActionKind.TIMEOUT, "UC-x")

        assert exc_info.value.forbidden
        assert not orchestrator.authority.permits(SESSION)
        assert orchestrator.stats.api_call_count == 1
        assert orchestrator.stats.actions_taken == 0

    @pytest.mark.asyncio
    async def test_manual_action_during_poll_cycle(self):
        source = make_source()
        first = make_message("a", SPAM_TEXT)
        source.fetch_page.return_value = make_page(first)
        executor = make_executor()
        orchestrator = make_orchestrator(source, executor)
        await orchestrator.poll_once()

        fetching = asyncio.Event()
        release = asyncio.Event()

        async def blocked_fetch(session_id, cursor):
            fetching.set()
            await release.wait()
            return make_page(first, make_message("b", SPAM_TEXT))

        source.fetch_page = AsyncMock(side_effect=blocked_fetch)
        orchestrator.settings = ModerationSettings(auto_timeout=True)

        cycle = asyncio.create_task(orchestrator.poll_once())
        await fetching.wait()
        updated = await orchestrator.take_manual_action(ActionKind.DELETE, "a")
        release.set()
        new_spam = await cycle

        assert updated == 1
        assert new_spam == 1
        assert orchestrator.log.get("a").kind == LogEntryKind.DELETED
        assert orchestrator.log.get("b").kind == LogEntryKind.TIMEOUT
        calls = [(call.args[0], call.args[2]) for call in executor.execute_action.await_args_list]
        assert calls == [(ActionKind.DELETE, "a"), (ActionKind.TIMEOUT, "UC-b")]
        stats = orchestrator.stats
        # first cycle: 1 fetch; manual delete: 1 call; second cycle: 1 fetch + 1 timeout
        assert (stats.spam_detected, stats.actions_taken, stats.api_call_count) == (2, 2, 4)


class TestExport:

    @pytest.mark.asyncio
    async def test_export_format(self):
        source = make_source()
        source.fetch_page.return_value = make_page(make_message("a", SPAM_TEXT))
        orchestrator = make_orchestrator(source)
        await orchestrator.poll_once()

        exported = orchestrator.export_log()

        assert len(exported) == 1
        row = exported[0]
        assert set(row) == {"time", "kind", "author", "text", "score", "keywords", "actionTaken"}
        assert row["kind"] == "spam_detected"
        assert row["author"] == "Author a"
        assert "gacor" in row["keywords"]
        assert row["actionTaken"] is False

    def test_export_filename(self):
        assert ModerationOrchestrator.export_filename(date(2024, 5, 1)) == "moderation-log-2024-05-01.json"
