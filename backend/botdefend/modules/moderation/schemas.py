"""Pydantic schemas for moderation module."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from botdefend.modules.moderation.models import ActionKind


# ============================================
# Moderation Settings
# ============================================


class ModerationSettings(BaseModel):
    """Operator preferences for a moderation session.

    Owned by the host application; the pipeline only reads them.
    """

    auto_delete: bool = False
    auto_timeout: bool = False
    auto_ban: bool = False
    sound_enabled: bool = True
    spam_threshold: int = Field(default=50, ge=0, le=100)
    whitelist: list[str] = Field(default_factory=list)
    blacklist: list[str] = Field(default_factory=list)
    ai_detection_enabled: bool = False
    custom_spam_words: list[str] = Field(default_factory=list)

    @field_validator("whitelist", "blacklist", "custom_spam_words", mode="before")
    @classmethod
    def drop_empty_entries(cls, v: Any) -> list[str]:
        """Keep only non-empty string entries, stripped of surrounding whitespace."""
        if v is None:
            return []
        return [item.strip() for item in v if isinstance(item, str) and item.strip()]

    @property
    def any_auto_action(self) -> bool:
        return self.auto_delete or self.auto_timeout or self.auto_ban


# ============================================
# Session Schemas
# ============================================


class StartSessionRequest(BaseModel):
    """Request to start moderating a live stream."""

    url: str = Field(..., min_length=1, description="YouTube watch, live or short URL")
    settings: ModerationSettings = Field(default_factory=ModerationSettings)


class SessionSnapshotResponse(BaseModel):
    """Current state of the moderation session."""

    running: bool
    session_id: Optional[str] = None
    stats: dict[str, Any]
    moderator_status: Optional[dict[str, Any]] = None
    advisory: Optional[str] = None
    polling_interval_ms: int
    bot_count: int
    bot_source: str
    last_error: Optional[str] = None
    log: list[dict[str, Any]] = Field(default_factory=list)


class ExportedLogEntry(BaseModel):
    """Moderation log entry in export format."""

    time: str
    kind: str
    author: str
    text: str
    score: Optional[int] = None
    keywords: str = ""
    actionTaken: bool


class LogExportResponse(BaseModel):
    """Exported moderation log with suggested file name."""

    filename: str
    entries: list[ExportedLogEntry]


# ============================================
# Manual Action Schemas
# ============================================


class ManualActionRequest(BaseModel):
    """Operator-triggered moderation action.

    ``target_id`` is a message id for delete and an author channel id
    for timeout and ban.
    """

    kind: ActionKind
    target_id: str = Field(..., min_length=1)


class ManualActionResponse(BaseModel):
    """Result of a manual action."""

    kind: ActionKind
    target_id: str
    success: bool
    updated_entries: int = 0


class BotPoolResponse(BaseModel):
    """Bot pool and API key quota overview."""

    source: str
    bots: list[dict[str, Any]]
    quota: Optional[dict[str, Any]] = None
