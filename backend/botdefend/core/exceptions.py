"""Exception hierarchy for the moderation pipeline.

Only InvalidUrlError, NotLiveError and the fetch-path AuthError /
TransportError end a session. Everything else is recovered where it is
raised.
"""

from typing import Optional


class BotDefendError(Exception):
    """Base exception for all pipeline errors."""

    reason = "error"
    user_message = "Unexpected error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def describe(self) -> str:
        """Human readable reason suitable for the operator."""
        return f"{self.user_message}: {self.message}"


class InvalidUrlError(BotDefendError):
    """Stream URL did not match any accepted YouTube URL shape."""

    reason = "invalid_url"
    user_message = "Bad URL"


class NotLiveError(BotDefendError):
    """Video exists but has no active live chat."""

    reason = "not_live"
    user_message = "Stream is not live"


class AuthError(BotDefendError):
    """Token invalid, refresh failed, or identity lacks privilege."""

    reason = "auth"
    user_message = "Authentication failed"


class CredentialError(AuthError):
    """OAuth refresh-token exchange failed for a bot identity."""

    reason = "credential"
    user_message = "Bot token refresh failed"


class TransportError(BotDefendError):
    """Network failure or non-auth HTTP failure."""

    reason = "transport"
    user_message = "Transport failure"


class QuotaExceededError(TransportError):
    """Upstream reported the project quota as exhausted."""

    reason = "quota_exceeded"
    user_message = "YouTube API quota exhausted"


class QuotaExhaustedError(BotDefendError):
    """Every configured project API key is out of quota."""

    reason = "quota_exhausted"
    user_message = "All API keys are out of quota"


class CredentialPoolExhausted(BotDefendError):
    """No usable bot identity is available."""

    reason = "no_bots"
    user_message = "No bot available"


class ClassifierProviderError(BotDefendError):
    """AI classification provider failed or returned garbage."""

    reason = "ai_provider"
    user_message = "AI classifier unavailable"


class ModerationActionError(BotDefendError):
    """A delete / timeout / ban call did not succeed."""

    reason = "action_failed"
    user_message = "Moderation action failed"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
        forbidden: bool = False,
    ):
        super().__init__(message, status_code=status_code, details=details)
        self.forbidden = forbidden


class NoActiveSessionError(BotDefendError):
    """Operation needs a live chat session but none is active."""

    reason = "no_session"
    user_message = "No active session"
