"""Moderator authority tracking.

The moderator list endpoint only answers for the channel owner, so a bot
that is "just" a moderator cannot verify its own status up front. It is
trusted provisionally, and the first real action settles the question.
"""

import logging
import time
from typing import Callable, Optional

from botdefend.core.config import settings
from botdefend.core.exceptions import BotDefendError
from botdefend.core.logging import log_info, log_warning
from botdefend.modules.chat.source import ChatSource
from botdefend.modules.chat.youtube_api import YouTubeAPIError
from botdefend.modules.moderation.models import ModeratorState, ModeratorStatusRecord

logger = logging.getLogger(__name__)

ASSUMED_MODERATOR_NOTE = "Cannot verify moderator status, will confirm on first action"


class ModeratorAuthority:
    """Per-session cache of whether the bots may moderate."""

    def __init__(
        self,
        source: ChatSource,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the authority.

        Args:
            source: Chat source used to list moderators
            ttl_seconds: How long a cached record stays fresh
            clock: Epoch-seconds clock, injectable for tests
        """
        self.source = source
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.MOD_STATUS_TTL_SECONDS
        self._clock = clock
        self._cache: dict[str, ModeratorStatusRecord] = {}
        self._latest: dict[str, ModeratorStatusRecord] = {}

    def cached(self, session_id: str) -> Optional[ModeratorStatusRecord]:
        """Cached record if it is still fresh."""
        record = self._cache.get(session_id)
        if record is None:
            return None
        if self._clock() - record.checked_at >= self.ttl_seconds:
            return None
        return record

    def latest(self, session_id: str) -> Optional[ModeratorStatusRecord]:
        """Most recent record for the session, cached or not, fresh or not."""
        return self._latest.get(session_id)

    async def check(self, session_id: str) -> ModeratorStatusRecord:
        """Determine whether the bots can moderate the session.

        Never raises; failures are reported as a MOD_DENIED record which
        is not cached, so the next check tries again.
        """
        record = self.cached(session_id)
        if record is not None:
            return record

        bot_name: Optional[str] = None
        channel_id: Optional[str] = None
        try:
            identity, token = await self.source.pool.acquire()
            bot_name = identity.display_name
            channel_id = identity.channel_id or None
            await self.source.list_moderators(session_id, token)
        except YouTubeAPIError as e:
            if e.is_forbidden:
                record = ModeratorStatusRecord(
                    state=ModeratorState.MOD_ASSUMED,
                    is_moderator=True,
                    bot_name=bot_name,
                    channel_id=channel_id,
                    error=ASSUMED_MODERATOR_NOTE,
                    checked_at=self._clock(),
                )
                log_info(logger, "Moderator status assumed", session_id=session_id, bot_name=bot_name)
                return self._store(session_id, record, cache=True)
            return self._denied(session_id, e.api_message or e.message, bot_name, channel_id)
        except BotDefendError as e:
            return self._denied(session_id, e.message, bot_name, channel_id)

        record = ModeratorStatusRecord(
            state=ModeratorState.OWNER_CONFIRMED,
            is_moderator=True,
            is_owner=True,
            bot_name=bot_name,
            channel_id=channel_id,
            checked_at=self._clock(),
        )
        log_info(logger, "Bot is channel owner", session_id=session_id, bot_name=bot_name)
        return self._store(session_id, record, cache=True)

    def confirm(self, session_id: str, granted: bool) -> ModeratorStatusRecord:
        """Record the outcome of a real moderation action.

        Overwrites whatever was cached and restarts the TTL.
        """
        previous = self._latest.get(session_id)
        if granted:
            record = ModeratorStatusRecord(
                state=ModeratorState.MOD_CONFIRMED,
                is_moderator=True,
                is_owner=bool(previous and previous.is_owner),
                bot_name=previous.bot_name if previous else None,
                channel_id=previous.channel_id if previous else None,
                checked_at=self._clock(),
            )
        else:
            record = ModeratorStatusRecord(
                state=ModeratorState.MOD_DENIED,
                is_moderator=False,
                bot_name=previous.bot_name if previous else None,
                channel_id=previous.channel_id if previous else None,
                error="Bot is not a moderator of this chat",
                checked_at=self._clock(),
            )
            log_warning(logger, "Moderator status denied by action", session_id=session_id)
        return self._store(session_id, record, cache=True)

    def permits(self, session_id: str) -> bool:
        """False only when the latest record says the bots are not moderators."""
        record = self._latest.get(session_id)
        return record is None or record.is_moderator is not False

    def invalidate(self, session_id: Optional[str] = None) -> None:
        """Forget one session's status, or every session's."""
        if session_id is None:
            self._cache.clear()
            self._latest.clear()
        else:
            self._cache.pop(session_id, None)
            self._latest.pop(session_id, None)

    def _denied(
        self,
        session_id: str,
        error: str,
        bot_name: Optional[str],
        channel_id: Optional[str],
    ) -> ModeratorStatusRecord:
        log_warning(logger, "Moderator status check failed", session_id=session_id, error=error)
        record = ModeratorStatusRecord(
            state=ModeratorState.MOD_DENIED,
            is_moderator=False,
            bot_name=bot_name,
            channel_id=channel_id,
            error=error,
            checked_at=self._clock(),
        )
        return self._store(session_id, record, cache=False)

    def _store(self, session_id: str, record: ModeratorStatusRecord, cache: bool) -> ModeratorStatusRecord:
        self._latest[session_id] = record
        if cache:
            self._cache[session_id] = record
        else:
            self._cache.pop(session_id, None)
        return record
