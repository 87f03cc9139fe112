"""OpenAI API client wrapper.

Thin async wrapper around chat completions used by the AI spam check.
"""

import json
import time
from typing import Any, Optional

from openai import AsyncOpenAI

from botdefend.core.config import settings
from botdefend.core.exceptions import ClassifierProviderError
from botdefend.core.metrics import AI_REQUEST_DURATION_SECONDS, AI_REQUESTS_TOTAL


class OpenAIClientError(ClassifierProviderError):
    """Raised when the OpenAI API call fails or returns unusable output."""
    pass


class OpenAIClient:
    """Wrapper for OpenAI API client."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key. Uses settings if not provided.
            client: Pre-built AsyncOpenAI instance (used by tests)
        """
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.model = settings.OPENAI_MODEL
        self.max_tokens = settings.OPENAI_MAX_TOKENS
        self.temperature = settings.OPENAI_TEMPERATURE

        if client is None and not self.api_key:
            raise OpenAIClientError("OpenAI API key not configured")

        self._client = client or AsyncOpenAI(api_key=self.api_key)

    async def generate_completion(
        self,
        system_prompt: str,
        user_prompt: str,
        response_format: Optional[dict] = None,
    ) -> str:
        """Generate a completion.

        Raises:
            OpenAIClientError: If API call fails
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if response_format:
            kwargs["response_format"] = response_format

        started = time.perf_counter()
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except Exception as e:
            AI_REQUESTS_TOTAL.labels(status="error").inc()
            raise OpenAIClientError(f"OpenAI API error: {str(e)}") from e
        finally:
            AI_REQUEST_DURATION_SECONDS.observe(time.perf_counter() - started)

        if not response.choices:
            AI_REQUESTS_TOTAL.labels(status="empty").inc()
            raise OpenAIClientError("No response generated")

        AI_REQUESTS_TOTAL.labels(status="success").inc()
        return response.choices[0].message.content or ""

    async def generate_json(self, system_prompt: str, user_prompt: str) -> dict:
        """Generate a JSON object response.

        Raises:
            OpenAIClientError: If API call fails or the reply is not a JSON object
        """
        response = await self.generate_completion(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            response_format={"type": "json_object"},
        )

        try:
            data = json.loads(response)
        except json.JSONDecodeError as e:
            raise OpenAIClientError(f"Failed to parse JSON response: {str(e)}") from e
        if not isinstance(data, dict):
            raise OpenAIClientError("Expected a JSON object response")
        return data
