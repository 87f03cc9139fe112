"""Moderation orchestrator.

Runs the poll loop for one live chat session: fetch a page, classify,
act on spam, record the outcome, sleep for the server-advised interval.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Optional, Union

from botdefend.core.config import settings as app_settings
from botdefend.core.exceptions import (
    BotDefendError,
    CredentialPoolExhausted,
    ModerationActionError,
    NoActiveSessionError,
)
from botdefend.core.logging import (
    clear_correlation_id,
    log_error,
    log_info,
    log_warning,
    set_correlation_id,
)
from botdefend.core.metrics import (
    ACTIVE_SESSIONS,
    CHAT_MESSAGES_SCANNED_TOTAL,
    POLL_CYCLE_DURATION_SECONDS,
)
from botdefend.modules.chat.models import ChatMessage
from botdefend.modules.chat.source import ChatSource
from botdefend.modules.credentials.store import RemoteDocumentStore
from botdefend.modules.moderation.actions import ModerationActionExecutor
from botdefend.modules.moderation.analytics import spam_type
from botdefend.modules.moderation.authority import ModeratorAuthority
from botdefend.modules.moderation.classifier import SpamClassifier
from botdefend.modules.moderation.log import ModerationLog
from botdefend.modules.moderation.models import (
    ActionKind,
    ClassificationResult,
    LogEntryKind,
    ModerationLogEntry,
    SessionStats,
    SpamDetectedEvent,
)
from botdefend.modules.moderation.schemas import ModerationSettings
from botdefend.modules.moderation.spam_detection import SpamPattern

logger = logging.getLogger(__name__)

SpamListener = Callable[[SpamDetectedEvent], Any]

NOT_MODERATOR_ADVISORY = "Bot is not a moderator of this chat, automatic actions are paused"
UNCONFIRMED_ADVISORY = "Bot moderator status is not confirmed, automatic actions may fail"


@dataclass
class _CycleOutcome:
    """Per-message outcome of the action phase, committed at cycle end."""

    message: ChatMessage
    result: ClassificationResult
    kind: LogEntryKind = LogEntryKind.SPAM_DETECTED
    successes: int = 0
    attempts: int = 0


class ModerationOrchestrator:
    """Drives one moderation session at a time."""

    def __init__(
        self,
        source: ChatSource,
        classifier: Optional[SpamClassifier] = None,
        authority: Optional[ModeratorAuthority] = None,
        executor: Optional[ModerationActionExecutor] = None,
        store: Optional[RemoteDocumentStore] = None,
        log_limit: Optional[int] = None,
    ):
        """Initialize the orchestrator.

        Args:
            source: Chat source, also owns the credential pool
            classifier: Spam classifier (heuristic only if omitted)
            authority: Moderator authority cache
            executor: Moderation action executor
            store: Remote store for global blacklist and patterns
            log_limit: Maximum moderation log length
        """
        self.source = source
        self.pool = source.pool
        self.classifier = classifier or SpamClassifier()
        self.authority = authority or ModeratorAuthority(source)
        self.executor = executor or ModerationActionExecutor(source)
        self.store = store

        self.settings = ModerationSettings()
        self.stats = SessionStats()
        self.log = ModerationLog(limit=log_limit)
        self.session_id: Optional[str] = None
        self.polling_interval_ms = app_settings.DEFAULT_POLL_INTERVAL_MS
        self.last_error: Optional[str] = None

        self._cursor: Optional[str] = None
        self._generation = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._lock = asyncio.Lock()
        self._listeners: list[SpamListener] = []

    # ============================================
    # Session lifecycle
    # ============================================

    @property
    def running(self) -> bool:
        return self._running

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def advisory(self) -> Optional[str]:
        """Standing warning about the bots' moderator status, if any."""
        if self.session_id is None:
            return None
        record = self.authority.latest(self.session_id)
        if record is not None and not record.is_moderator:
            return NOT_MODERATOR_ADVISORY
        if self.settings.any_auto_action and (record is None or not record.is_confirmed):
            return UNCONFIRMED_ADVISORY
        return None

    def add_listener(self, listener: SpamListener) -> None:
        """Register a callback (sync or async) for new-spam events."""
        self._listeners.append(listener)

    async def start_session(
        self, url: str, moderation_settings: Optional[ModerationSettings] = None
    ) -> Optional[str]:
        """Start moderating the live chat behind ``url``.

        A ``stop_session`` call made while the start is still resolving
        cancels it.

        Returns:
            Optional[str]: The live chat id, or None if the start was cancelled

        Raises:
            CredentialPoolExhausted: If no bot identity is configured
            InvalidUrlError: If the URL is not a YouTube video URL
            NotLiveError: If the video has no active live chat
            AuthError: If the chat cannot be resolved with the bot tokens
            TransportError: On network failure
        """
        self.stop_session()
        self._generation += 1
        generation = self._generation

        if len(self.pool) == 0:
            await self.pool.load_remote()
        if len(self.pool) == 0:
            raise CredentialPoolExhausted("No bots configured, add a bot before starting")
        if generation != self._generation:
            return self._start_cancelled(url)

        session_id = await self.source.resolve_session(url)
        if generation != self._generation:
            return self._start_cancelled(url)
        moderation_settings = moderation_settings or ModerationSettings()

        status = await self.authority.check(session_id)
        if generation != self._generation:
            return self._start_cancelled(url)
        if moderation_settings.any_auto_action and not status.is_confirmed:
            log_warning(
                logger,
                "Auto actions enabled without confirmed moderator status",
                session_id=session_id,
                state=status.state.value,
            )

        await self._load_remote_rules()

        async with self._lock:
            if generation != self._generation:
                return self._start_cancelled(url)
            self.session_id = session_id
            self.settings = moderation_settings
            self.stats = SessionStats()
            self.log.clear()
            self._cursor = None
            self.polling_interval_ms = app_settings.DEFAULT_POLL_INTERVAL_MS
            self.last_error = None
            self._stop_event = asyncio.Event()
            self._running = True

        ACTIVE_SESSIONS.set(1)
        log_info(logger, "Moderation session started", session_id=session_id, bot_count=len(self.pool))
        self._task = asyncio.create_task(self._run(generation, session_id, self._stop_event))
        return session_id

    def _start_cancelled(self, url: str) -> None:
        log_info(logger, "Moderation session start cancelled", url=url)
        return None

    def stop_session(self) -> None:
        """Stop polling, or cancel a start still in progress.

        The log and counters stay as they are. A network call already in
        flight completes; its results are discarded.
        """
        self._generation += 1
        self._stop_event.set()
        if not self._running:
            return
        self._running = False
        ACTIVE_SESSIONS.set(0)
        log_info(logger, "Moderation session stopped", session_id=self.session_id)

    async def wait_closed(self) -> None:
        """Wait for the most recent poll task to exit."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _load_remote_rules(self) -> None:
        # Best effort; the session runs without remote rules if this fails
        if self.store is None or not self.store.is_configured:
            return
        try:
            remote_patterns = await self.store.get_spam_patterns()
            blacklist = await self.store.get_global_blacklist()
        except BotDefendError as e:
            log_warning(logger, "Could not load remote spam rules", error=e.message)
            return

        patterns = [
            SpamPattern.from_remote(p.pattern, is_regex=p.is_regex, severity=p.severity)
            for p in remote_patterns
        ]
        self.classifier.patterns = [p for p in patterns if p is not None]
        self.classifier.extra_blacklist = [entry.username for entry in blacklist if entry.username]
        log_info(
            logger,
            "Loaded remote spam rules",
            patterns=len(self.classifier.patterns),
            blacklisted=len(self.classifier.extra_blacklist),
        )

    # ============================================
    # Poll loop
    # ============================================

    async def _run(self, generation: int, session_id: str, stop_event: asyncio.Event) -> None:
        set_correlation_id(session_id)
        try:
            while generation == self._generation:
                started = time.perf_counter()
                try:
                    await self.poll_once(generation)
                except BotDefendError as e:
                    self._fail(generation, e.describe(), e)
                    return
                except Exception as e:
                    self._fail(generation, f"Unexpected error: {e}", e)
                    return
                finally:
                    POLL_CYCLE_DURATION_SECONDS.observe(time.perf_counter() - started)

                if generation != self._generation:
                    return
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.polling_interval_ms / 1000)
                except asyncio.TimeoutError:
                    pass
        finally:
            clear_correlation_id()

    def _fail(self, generation: int, reason: str, error: Exception) -> None:
        if generation != self._generation:
            return
        log_error(logger, "Moderation session ended by error", exception=error, session_id=self.session_id)
        self.last_error = reason
        self._generation += 1
        self._running = False
        ACTIVE_SESSIONS.set(0)

    async def poll_once(self, generation: Optional[int] = None) -> int:
        """Run one poll cycle.

        Counters and the log change only at the end of the cycle, in one
        step. Nothing is committed if the session was stopped or restarted
        while the cycle waited on the network.

        Returns:
            int: Number of spam messages newly added to the log

        Raises:
            AuthError: If fetching the page failed authentication
            TransportError: If fetching the page failed otherwise
        """
        generation = self._generation if generation is None else generation
        session_id = self.session_id
        if session_id is None:
            raise NoActiveSessionError("No session has been started")
        moderation_settings = self.settings

        page = await self.source.fetch_page(session_id, self._cursor)
        if generation != self._generation:
            return 0

        if page.next_cursor:
            self._cursor = page.next_cursor
        self.polling_interval_ms = max(page.suggested_interval_ms, app_settings.MIN_POLL_INTERVAL_MS)

        if not page.messages:
            return 0
        CHAT_MESSAGES_SCANNED_TOTAL.inc(len(page.messages))

        results = self.classifier.classify_all(page.messages, moderation_settings)
        results = await self.classifier.apply_ai_fallback(page.messages, results, moderation_settings)
        if generation != self._generation:
            return 0

        outcomes = [
            _CycleOutcome(message=message, result=results[message.id])
            for message in page.messages
            if results[message.id].is_spam
        ]
        self.classifier.record_metrics(outcome.result for outcome in outcomes)

        pending = [outcome for outcome in outcomes if not self._already_acted(outcome.message.id)]
        if moderation_settings.any_auto_action and pending:
            await self.authority.check(session_id)
            for outcome in pending:
                await self._dispatch(session_id, outcome, moderation_settings)
                if generation != self._generation:
                    return 0

        return await self._commit(generation, len(page.messages), outcomes, moderation_settings)

    def _already_acted(self, message_id: str) -> bool:
        entry = self.log.get(message_id)
        return entry is not None and entry.action_taken

    def _planned_actions(self, moderation_settings: ModerationSettings) -> list[ActionKind]:
        # Order matters: the last successful action sets the displayed kind
        planned = []
        if moderation_settings.auto_delete:
            planned.append(ActionKind.DELETE)
        if moderation_settings.auto_timeout:
            planned.append(ActionKind.TIMEOUT)
        if moderation_settings.auto_ban:
            planned.append(ActionKind.BAN)
        return planned

    async def _dispatch(
        self,
        session_id: str,
        outcome: _CycleOutcome,
        moderation_settings: ModerationSettings,
    ) -> None:
        message = outcome.message
        for kind in self._planned_actions(moderation_settings):
            if not self.authority.permits(session_id):
                return
            target_id = message.id if kind == ActionKind.DELETE else message.author_id
            result = await self.executor.execute_action(kind, session_id, target_id)
            outcome.attempts += 1
            if result.success:
                outcome.kind = kind.log_kind
                outcome.successes += 1
                self._confirm_if_unconfirmed(session_id)
            else:
                if result.forbidden:
                    self.authority.confirm(session_id, False)

    def _confirm_if_unconfirmed(self, session_id: str) -> None:
        record = self.authority.latest(session_id)
        if record is None or not record.is_confirmed:
            self.authority.confirm(session_id, True)

    async def _commit(
        self,
        generation: int,
        message_count: int,
        outcomes: list[_CycleOutcome],
        moderation_settings: ModerationSettings,
    ) -> int:
        async with self._lock:
            if generation != self._generation:
                return 0

            new_spam = 0
            for outcome in outcomes:
                entry = ModerationLogEntry(
                    id=outcome.message.id,
                    kind=outcome.kind,
                    author_name=outcome.message.author_name,
                    author_id=outcome.message.author_id,
                    author_photo_url=outcome.message.author_photo_url,
                    text=outcome.message.text,
                    score=outcome.result.score,
                    matched_keywords=outcome.result.matched_keywords,
                )
                if self.log.upsert(entry):
                    new_spam += 1
                    self.stats.spam_by_type[spam_type(entry.matched_keywords)] += 1

            self.stats.total_chat += message_count
            self.stats.spam_detected += new_spam
            self.stats.actions_taken += sum(o.successes for o in outcomes)
            self.stats.api_call_count += 1 + sum(o.attempts for o in outcomes)

        if new_spam > 0:
            log_info(logger, "Spam detected", count=new_spam, session_id=self.session_id)
            await self._emit(SpamDetectedEvent(count=new_spam, play_sound=moderation_settings.sound_enabled))
        return new_spam

    async def _emit(self, event: SpamDetectedEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log_error(logger, "Spam listener failed", exception=e)

    # ============================================
    # Manual actions
    # ============================================

    async def take_manual_action(self, kind: Union[ActionKind, str], target_id: str) -> int:
        """Run an operator-requested action.

        Args:
            kind: delete, timeout or ban
            target_id: Message id for delete, author channel id otherwise

        Returns:
            int: Number of log entries upgraded

        Raises:
            NoActiveSessionError: If no session was ever started
            ModerationActionError: If the action did not succeed
        """
        session_id = self.session_id
        if session_id is None:
            raise NoActiveSessionError("No session has been started")
        kind = ActionKind(kind)
        generation = self._generation

        result = await self.executor.execute_action(kind, session_id, target_id)
        if result.forbidden:
            self.authority.confirm(session_id, False)
        elif result.success:
            self._confirm_if_unconfirmed(session_id)

        updated = 0
        async with self._lock:
            if generation == self._generation:
                self.stats.api_call_count += 1
                if result.success:
                    self.stats.actions_taken += 1
                    if kind == ActionKind.DELETE:
                        updated = int(self.log.upgrade(target_id, kind.log_kind))
                    else:
                        updated = self.log.upgrade_author(target_id, kind.log_kind)

        if not result.success:
            raise ModerationActionError(
                result.error or f"{kind.value} failed",
                forbidden=result.forbidden,
            )
        return updated

    # ============================================
    # Read-only views
    # ============================================

    def export_log(self) -> list[dict]:
        """Moderation log in export format, newest first."""
        return [
            {
                "time": entry.detected_at,
                "kind": entry.kind.value,
                "author": entry.author_name,
                "text": entry.text,
                "score": entry.score,
                "keywords": ", ".join(entry.matched_keywords),
                "actionTaken": entry.action_taken,
            }
            for entry in self.log
        ]

    @staticmethod
    def export_filename(today: Optional[date] = None) -> str:
        today = today or date.today()
        return f"moderation-log-{today.isoformat()}.json"

    def snapshot(self) -> dict:
        """Everything a dashboard needs to render the session."""
        record = self.authority.latest(self.session_id) if self.session_id else None
        return {
            "running": self._running,
            "session_id": self.session_id,
            "stats": self.stats.to_dict(),
            "moderator_status": record.to_dict() if record else None,
            "advisory": self.advisory,
            "polling_interval_ms": self.polling_interval_ms,
            "bot_count": len(self.pool),
            "bot_source": self.pool.source,
            "last_error": self.last_error,
            "log": self.log.to_list(),
        }
