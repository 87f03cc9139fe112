"""Wiring of the moderation pipeline from settings."""

from typing import Optional

from botdefend.core.config import settings
from botdefend.modules.ai.spam_ai import AISpamDetector
from botdefend.modules.chat.source import ChatSource
from botdefend.modules.credentials.pool import CredentialPool
from botdefend.modules.credentials.quota import ApiKeyPool
from botdefend.modules.credentials.store import RemoteDocumentStore
from botdefend.modules.moderation.classifier import SpamClassifier
from botdefend.modules.moderation.orchestrator import ModerationOrchestrator


def build_orchestrator() -> ModerationOrchestrator:
    """Assemble pool, chat source, classifier and orchestrator from settings."""
    store = RemoteDocumentStore()
    pool = CredentialPool(store=store)
    source = ChatSource(pool, api_keys=ApiKeyPool(settings.YOUTUBE_API_KEYS))
    classifier = SpamClassifier(ai_detector=AISpamDetector())
    return ModerationOrchestrator(source, classifier=classifier, store=store)


# Singleton instance
_orchestrator: Optional[ModerationOrchestrator] = None


def get_orchestrator() -> ModerationOrchestrator:
    """Get or create the orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator
