"""Moderation domain models.

In-memory state of a moderation session: the log of detected spam,
moderator status records, and session counters.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class LogEntryKind(str, Enum):
    """What happened to a detected spam message."""
    SPAM_DETECTED = "spam_detected"
    DELETED = "deleted"
    TIMEOUT = "timeout"
    BANNED = "banned"


class ActionKind(str, Enum):
    """Moderation actions the bot can take."""
    DELETE = "delete"
    TIMEOUT = "timeout"
    BAN = "ban"

    @property
    def log_kind(self) -> LogEntryKind:
        """Log entry kind shown after this action succeeds."""
        return {
            ActionKind.DELETE: LogEntryKind.DELETED,
            ActionKind.TIMEOUT: LogEntryKind.TIMEOUT,
            ActionKind.BAN: LogEntryKind.BANNED,
        }[self]


class ClassificationSource(str, Enum):
    """Which classification step decided the verdict."""
    WHITELIST = "whitelist"
    BLACKLIST = "blacklist"
    HEURISTIC = "heuristic"
    AI = "ai"


class ModeratorState(str, Enum):
    """Moderator authorization states for a bot in a live chat.

    UNKNOWN -> OWNER_CONFIRMED | MOD_ASSUMED | MOD_DENIED, and
    MOD_CONFIRMED once a real action succeeded.
    """
    UNKNOWN = "unknown"
    OWNER_CONFIRMED = "owner_confirmed"
    MOD_ASSUMED = "mod_assumed"
    MOD_CONFIRMED = "mod_confirmed"
    MOD_DENIED = "mod_denied"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ClassificationResult:
    """Verdict for one chat message. Scores are clamped to [0, 100]."""

    is_spam: bool
    score: int
    matched_keywords: tuple[str, ...] = ()
    source: ClassificationSource = ClassificationSource.HEURISTIC

    def __post_init__(self):
        object.__setattr__(self, "score", max(0, min(100, int(self.score))))
        object.__setattr__(self, "matched_keywords", tuple(self.matched_keywords))


@dataclass
class ModerationLogEntry:
    """One detected spam message and what was done about it.

    ``kind`` only ever moves from SPAM_DETECTED to an action kind.
    """

    id: str
    kind: LogEntryKind
    author_name: str
    author_id: str
    text: str
    score: Optional[int] = None
    matched_keywords: tuple[str, ...] = ()
    author_photo_url: Optional[str] = None
    detected_at: str = field(default_factory=utc_now_iso)

    @property
    def action_taken(self) -> bool:
        return self.kind != LogEntryKind.SPAM_DETECTED

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "author_name": self.author_name,
            "author_id": self.author_id,
            "author_photo_url": self.author_photo_url,
            "text": self.text,
            "score": self.score,
            "matched_keywords": list(self.matched_keywords),
            "detected_at": self.detected_at,
            "action_taken": self.action_taken,
        }


@dataclass
class ModeratorStatusRecord:
    """Cached moderator status of the pool's bots in one live chat."""

    state: ModeratorState
    is_moderator: bool
    is_owner: bool = False
    bot_name: Optional[str] = None
    channel_id: Optional[str] = None
    error: Optional[str] = None
    checked_at: float = 0.0

    @property
    def is_confirmed(self) -> bool:
        return self.state in (ModeratorState.OWNER_CONFIRMED, ModeratorState.MOD_CONFIRMED)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "is_moderator": self.is_moderator,
            "is_owner": self.is_owner,
            "bot_name": self.bot_name,
            "channel_id": self.channel_id,
            "error": self.error,
            "confirmed": self.is_confirmed,
        }


@dataclass
class SessionStats:
    """Counters for one moderation session."""

    total_chat: int = 0
    spam_detected: int = 0
    actions_taken: int = 0
    api_call_count: int = 0
    spam_by_type: dict[str, int] = field(
        default_factory=lambda: {"judol": 0, "link": 0, "toxic": 0, "other": 0}
    )

    def to_dict(self) -> dict:
        return {
            "total_chat": self.total_chat,
            "spam_detected": self.spam_detected,
            "actions_taken": self.actions_taken,
            "api_call_count": self.api_call_count,
            "spam_by_type": dict(self.spam_by_type),
        }


@dataclass(frozen=True)
class SpamDetectedEvent:
    """Emitted after a cycle that found new spam."""

    count: int
    play_sound: bool
