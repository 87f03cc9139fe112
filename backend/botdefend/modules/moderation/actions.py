"""Moderation actions for live chat.

Executes delete, timeout and ban through the chat source and reports the
outcome instead of raising, so one failed action never blocks the next.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from botdefend.core.config import settings
from botdefend.core.exceptions import AuthError, BotDefendError, CredentialError
from botdefend.core.logging import log_info, log_warning
from botdefend.core.metrics import MODERATION_ACTIONS_TOTAL
from botdefend.modules.chat.source import ChatSource
from botdefend.modules.moderation.models import ActionKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one moderation action.

    ``forbidden`` is set when the platform refused because the bot lacks
    moderator rights; a token refresh failure is a plain failure.
    """

    kind: ActionKind
    target_id: str
    success: bool
    forbidden: bool = False
    bot_name: Optional[str] = None
    error: Optional[str] = None

    @property
    def outcome_label(self) -> str:
        if self.success:
            return "success"
        return "forbidden" if self.forbidden else "failed"


class ModerationActionExecutor:
    """Executes moderation actions on chat messages and authors."""

    def __init__(self, source: ChatSource, timeout_duration_seconds: Optional[int] = None):
        """Initialize the action executor.

        Args:
            source: Chat source that performs the API calls
            timeout_duration_seconds: Length of a timeout, defaults to settings
        """
        self.source = source
        self.timeout_duration_seconds = timeout_duration_seconds or settings.TIMEOUT_DURATION_SECONDS
        self._action_handlers = {
            ActionKind.DELETE: self._execute_delete,
            ActionKind.TIMEOUT: self._execute_timeout,
            ActionKind.BAN: self._execute_ban,
        }

    async def execute_action(self, kind: ActionKind, session_id: str, target_id: str) -> ActionOutcome:
        """Execute one action.

        Args:
            kind: Action to take
            session_id: Live chat id
            target_id: Message id for delete, author channel id otherwise

        Returns:
            ActionOutcome describing success, refusal or failure
        """
        handler = self._action_handlers[kind]
        try:
            bot_name = await handler(session_id, target_id)
        except CredentialError as e:
            outcome = ActionOutcome(kind, target_id, success=False, error=e.message)
        except AuthError as e:
            outcome = ActionOutcome(kind, target_id, success=False, forbidden=True, error=e.message)
        except BotDefendError as e:
            outcome = ActionOutcome(kind, target_id, success=False, error=e.message)
        else:
            outcome = ActionOutcome(kind, target_id, success=True, bot_name=bot_name)

        MODERATION_ACTIONS_TOTAL.labels(action=kind.value, outcome=outcome.outcome_label).inc()
        if outcome.success:
            log_info(logger, "Moderation action succeeded", action=kind.value, target_id=target_id, bot_name=bot_name)
        else:
            log_warning(
                logger,
                "Moderation action failed",
                action=kind.value,
                target_id=target_id,
                forbidden=outcome.forbidden,
                error=outcome.error,
            )
        return outcome

    async def _execute_delete(self, session_id: str, message_id: str) -> str:
        return await self.source.delete_message(message_id)

    async def _execute_timeout(self, session_id: str, author_id: str) -> str:
        return await self.source.ban_user(
            session_id,
            author_id,
            permanent=False,
            duration_seconds=self.timeout_duration_seconds,
        )

    async def _execute_ban(self, session_id: str, author_id: str) -> str:
        return await self.source.ban_user(session_id, author_id, permanent=True)
