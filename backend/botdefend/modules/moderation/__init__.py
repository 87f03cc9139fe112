"""Moderation module for YouTube live chat spam.

Spam classification, moderator authority tracking, moderation actions
and the poll loop that ties them together.
"""

from botdefend.modules.moderation.actions import ActionOutcome, ModerationActionExecutor
from botdefend.modules.moderation.analytics import spam_type
from botdefend.modules.moderation.authority import ModeratorAuthority
from botdefend.modules.moderation.classifier import SpamClassifier
from botdefend.modules.moderation.log import ModerationLog
from botdefend.modules.moderation.models import (
    ActionKind,
    ClassificationResult,
    ClassificationSource,
    LogEntryKind,
    ModerationLogEntry,
    ModeratorState,
    ModeratorStatusRecord,
    SessionStats,
    SpamDetectedEvent,
)
from botdefend.modules.moderation.orchestrator import ModerationOrchestrator
from botdefend.modules.moderation.schemas import ModerationSettings
from botdefend.modules.moderation.spam_detection import JudolDetector, SpamPattern

__all__ = [
    # Models
    "ActionKind",
    "ClassificationResult",
    "ClassificationSource",
    "LogEntryKind",
    "ModerationLogEntry",
    "ModeratorState",
    "ModeratorStatusRecord",
    "SessionStats",
    "SpamDetectedEvent",
    "ModerationSettings",
    # Detection
    "JudolDetector",
    "SpamPattern",
    "SpamClassifier",
    "spam_type",
    # Session
    "ActionOutcome",
    "ModerationActionExecutor",
    "ModerationLog",
    "ModeratorAuthority",
    "ModerationOrchestrator",
]
