"""AI module.

OpenAI-backed second opinion for chat messages the keyword heuristic
did not flag.
"""

from botdefend.modules.ai.openai_client import OpenAIClient, OpenAIClientError
from botdefend.modules.ai.spam_ai import AIDetectionResult, AISpamDetector, parse_ai_response

__all__ = [
    "AIDetectionResult",
    "AISpamDetector",
    "OpenAIClient",
    "OpenAIClientError",
    "parse_ai_response",
]
