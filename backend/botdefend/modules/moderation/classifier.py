"""Spam classifier.

Combines author whitelist/blacklist, the keyword heuristic and an optional
AI second opinion into one verdict per message.
"""

import logging
from typing import Iterable, Optional, Sequence

from botdefend.core.config import settings as app_settings
from botdefend.core.logging import log_info, log_warning
from botdefend.core.metrics import SPAM_DETECTED_TOTAL
from botdefend.modules.ai.spam_ai import AISpamDetector
from botdefend.modules.chat.models import ChatMessage
from botdefend.modules.moderation.models import ClassificationResult, ClassificationSource
from botdefend.modules.moderation.schemas import ModerationSettings
from botdefend.modules.moderation.spam_detection import JudolDetector, SpamPattern

logger = logging.getLogger(__name__)


def _matches_any(name: str, entries: Iterable[str]) -> bool:
    lowered = name.lower()
    return any(entry and entry.lower() in lowered for entry in entries)


class SpamClassifier:
    """Classifies chat messages against moderation settings.

    Precedence: whitelist, then blacklist, then heuristic. The AI pass runs
    separately over what the heuristic let through.
    """

    def __init__(
        self,
        ai_detector: Optional[AISpamDetector] = None,
        patterns: Sequence[SpamPattern] = (),
        extra_blacklist: Sequence[str] = (),
        ai_max_checks: Optional[int] = None,
        ai_min_confidence: Optional[int] = None,
    ):
        """Initialize the classifier.

        Args:
            ai_detector: AI second opinion, consulted only if available
            patterns: Admin-maintained spam patterns
            extra_blacklist: Author names blacklisted globally
            ai_max_checks: Max AI calls per batch
            ai_min_confidence: Minimum AI confidence to override a verdict
        """
        self.ai_detector = ai_detector
        self.patterns = list(patterns)
        self.extra_blacklist = [name for name in extra_blacklist if name]
        self.ai_max_checks = (
            ai_max_checks if ai_max_checks is not None else app_settings.AI_MAX_CHECKS_PER_CYCLE
        )
        self.ai_min_confidence = (
            ai_min_confidence if ai_min_confidence is not None else app_settings.AI_MIN_CONFIDENCE
        )

    def classify(self, message: ChatMessage, settings: ModerationSettings) -> ClassificationResult:
        """Classify one message. Pure; no network access."""
        author = message.author_name or ""

        if _matches_any(author, settings.whitelist):
            return ClassificationResult(False, 0, (), ClassificationSource.WHITELIST)

        if _matches_any(author, settings.blacklist) or _matches_any(author, self.extra_blacklist):
            return ClassificationResult(True, 100, ("blacklisted",), ClassificationSource.BLACKLIST)

        detector = JudolDetector(custom_words=settings.custom_spam_words, patterns=self.patterns)
        result = detector.detect(message.text or "")
        return ClassificationResult(
            is_spam=result.score >= settings.spam_threshold,
            score=result.score,
            matched_keywords=result.keywords,
            source=ClassificationSource.HEURISTIC,
        )

    def classify_all(
        self,
        messages: Sequence[ChatMessage],
        settings: ModerationSettings,
    ) -> dict[str, ClassificationResult]:
        """Classify a batch, keyed by message id."""
        return {message.id: self.classify(message, settings) for message in messages}

    def ai_enabled(self, settings: ModerationSettings) -> bool:
        return bool(
            settings.ai_detection_enabled
            and self.ai_detector is not None
            and self.ai_detector.is_available
        )

    async def apply_ai_fallback(
        self,
        messages: Sequence[ChatMessage],
        results: dict[str, ClassificationResult],
        settings: ModerationSettings,
    ) -> dict[str, ClassificationResult]:
        """Ask the AI about the first few messages nobody flagged.

        Whitelisted authors are never sent. Calls run one at a time and a
        failed call leaves that message's verdict as it was.

        Returns:
            A new mapping; ``results`` is not modified
        """
        merged = dict(results)
        if not self.ai_enabled(settings):
            return merged

        candidates = [
            message
            for message in messages
            if message.id in results
            and not results[message.id].is_spam
            and results[message.id].source != ClassificationSource.WHITELIST
        ][: self.ai_max_checks]

        for message in candidates:
            verdict = await self.ai_detector.detect(message.text or "")
            if verdict.error:
                log_warning(logger, "AI check gave no signal", message_id=message.id, error=verdict.error)
                continue
            if verdict.is_spam and verdict.confidence >= self.ai_min_confidence:
                merged[message.id] = ClassificationResult(
                    is_spam=True,
                    score=verdict.confidence,
                    matched_keywords=(f"AI:{verdict.reason}",),
                    source=ClassificationSource.AI,
                )
                log_info(
                    logger,
                    "AI flagged message as spam",
                    message_id=message.id,
                    confidence=verdict.confidence,
                )

        return merged

    @staticmethod
    def record_metrics(results: Iterable[ClassificationResult]) -> None:
        for result in results:
            if result.is_spam:
                SPAM_DETECTED_TOTAL.labels(source=result.source.value).inc()
