"""AI spam check.

Asks the language model whether one chat message is spam. The model is
only consulted for messages the heuristic let through, and its answer is
advisory: any failure yields "no signal" rather than an error.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from botdefend.core.config import settings
from botdefend.core.logging import log_warning
from botdefend.modules.ai.openai_client import OpenAIClient, OpenAIClientError
from botdefend.modules.ai.prompts import SPAM_DETECTION_SYSTEM, SPAM_DETECTION_USER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AIDetectionResult:
    """Verdict returned by the AI check."""

    is_spam: bool
    confidence: int
    reason: str
    error: Optional[str] = None

    @classmethod
    def no_signal(cls, reason: str, error: Optional[str] = None) -> "AIDetectionResult":
        return cls(is_spam=False, confidence=0, reason=reason, error=error)


def parse_ai_response(data: dict) -> AIDetectionResult:
    """Convert the model's JSON object into a result.

    ``confidence`` is clamped to [0, 100]; a missing or non-numeric value
    counts as 0.
    """
    try:
        confidence = int(float(data.get("confidence") or 0))
    except (TypeError, ValueError):
        confidence = 0
    reason = data.get("reason")
    return AIDetectionResult(
        is_spam=data.get("isSpam") is True,
        confidence=max(0, min(100, confidence)),
        reason=str(reason) if reason else "AI detection",
    )


class AISpamDetector:
    """Spam check backed by OpenAI chat completions."""

    def __init__(self, client: Optional[OpenAIClient] = None, api_key: Optional[str] = None):
        """Initialize the detector.

        Args:
            client: OpenAI client wrapper; built lazily from settings if omitted
            api_key: Overrides settings.OPENAI_API_KEY for availability checks
        """
        self._client = client
        self._api_key = api_key if api_key is not None else settings.OPENAI_API_KEY

    @property
    def is_available(self) -> bool:
        """True when a client was injected or an API key is configured."""
        return self._client is not None or bool(self._api_key)

    @property
    def client(self) -> OpenAIClient:
        if self._client is None:
            self._client = OpenAIClient(api_key=self._api_key)
        return self._client

    async def detect(self, text: str) -> AIDetectionResult:
        """Classify one message. Never raises."""
        if not self.is_available:
            return AIDetectionResult.no_signal("API key not configured", error="OPENAI_API_KEY not set")

        try:
            data = await self.client.generate_json(
                system_prompt=SPAM_DETECTION_SYSTEM,
                user_prompt=SPAM_DETECTION_USER.format(message=text),
            )
        except OpenAIClientError as e:
            log_warning(logger, "AI spam check failed", error=e.message)
            return AIDetectionResult.no_signal("Detection failed", error=e.message)

        return parse_ai_response(data)
