"""Chat source adapter.

Turns a stream URL into a live chat id and pages through new messages,
translating YouTube API failures into the pipeline's error taxonomy.
Every call takes the next bot identity from the credential pool.
"""

import logging
from typing import Optional

import httpx

from botdefend.core.config import settings
from botdefend.core.exceptions import (
    AuthError,
    BotDefendError,
    InvalidUrlError,
    NotLiveError,
    QuotaExceededError,
    TransportError,
)
from botdefend.core.logging import log_info, log_warning
from botdefend.modules.chat.models import ChatMessage, ChatPage
from botdefend.modules.chat.urls import extract_video_id
from botdefend.modules.chat.youtube_api import YouTubeAPIError, YouTubeLiveChatClient
from botdefend.modules.credentials.pool import CredentialPool
from botdefend.modules.credentials.quota import QUOTA_COSTS, ApiKeyPool

logger = logging.getLogger(__name__)

CHAT_GONE_REASONS = ("liveChatEnded", "liveChatNotFound", "liveChatDisabled")


def translate_api_error(error: YouTubeAPIError) -> BotDefendError:
    """Map a YouTube API error onto the pipeline error taxonomy."""
    message = error.api_message or error.message
    if error.is_quota_exceeded:
        return QuotaExceededError(message, status_code=error.status_code, details=error.details)
    if error.reason in CHAT_GONE_REASONS:
        return NotLiveError(message, status_code=error.status_code, details=error.details)
    if error.status_code in (401, 403):
        return AuthError(message, status_code=error.status_code, details=error.details)
    return TransportError(message, status_code=error.status_code, details=error.details)


class ChatSource:
    """YouTube live chat adapter backed by a credential pool."""

    def __init__(
        self,
        pool: CredentialPool,
        api_keys: Optional[ApiKeyPool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the source.

        Args:
            pool: Bot identities used to authenticate calls
            api_keys: Project API keys used when no bot token is available
            transport: Optional httpx transport (used by tests)
        """
        self.pool = pool
        self.api_keys = api_keys
        self._transport = transport

    def _client(
        self,
        access_token: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> YouTubeLiveChatClient:
        return YouTubeLiveChatClient(
            access_token=access_token,
            api_key=api_key,
            transport=self._transport,
        )

    async def _bot_client(self) -> tuple[YouTubeLiveChatClient, str]:
        identity, token = await self.pool.acquire()
        return self._client(access_token=token), identity.display_name

    async def resolve_session(self, url: str) -> str:
        """Resolve a stream URL to its active live chat id.

        Raises:
            InvalidUrlError: If the URL matches no accepted shape
            NotLiveError: If the video is missing or not live
            AuthError: If no bot token can be obtained and no API key is set
            TransportError: On network or other HTTP failure
        """
        video_id = extract_video_id(url)
        if not video_id:
            raise InvalidUrlError(f"Not a YouTube video URL: {url}")

        log_info(logger, "Resolving live chat", video_id=video_id)
        video = await self._get_video(video_id)

        if video is None:
            raise NotLiveError(f"Video {video_id} not found, check the URL")

        live_chat_id = YouTubeLiveChatClient.extract_live_chat_id(video)
        if not live_chat_id:
            raise NotLiveError(f"Video {video_id} has no active live chat, is it live?")

        return live_chat_id

    async def _get_video(self, video_id: str) -> Optional[dict]:
        try:
            client, _ = await self._bot_client()
        except BotDefendError as e:
            if self.api_keys is None or len(self.api_keys) == 0:
                raise
            log_warning(logger, "Bot token unavailable, using API key fallback", error=e.message)
            return await self._get_video_with_api_key(video_id)

        try:
            return await client.get_video(video_id)
        except YouTubeAPIError as e:
            raise translate_api_error(e) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Video lookup failed: {e}") from e

    async def _get_video_with_api_key(self, video_id: str) -> Optional[dict]:
        # One attempt per key; an exhausted key is retired and the next one tried
        for _ in range(len(self.api_keys)):
            api_key = self.api_keys.next_key()
            try:
                video = await self._client(api_key=api_key).get_video(video_id)
            except YouTubeAPIError as e:
                if e.is_quota_exceeded:
                    self.api_keys.mark_exhausted(api_key)
                    continue
                raise translate_api_error(e) from e
            except httpx.HTTPError as e:
                raise TransportError(f"Video lookup failed: {e}") from e

            self.api_keys.track_usage(api_key, QUOTA_COSTS["videos_list"])
            return video

        # Raises QuotaExhaustedError when every key is spent
        self.api_keys.next_key()
        return None

    async def fetch_page(self, session_id: str, cursor: Optional[str] = None) -> ChatPage:
        """Fetch one page of messages after ``cursor``.

        ``suggested_interval_ms`` is the server's advice; callers floor it.

        Raises:
            AuthError: On 401/403 or token refresh failure
            QuotaExceededError: When the project quota is spent
            TransportError: On network or other HTTP failure
        """
        client, _ = await self._bot_client()
        try:
            data = await client.list_messages(session_id, page_token=cursor)
        except YouTubeAPIError as e:
            raise translate_api_error(e) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Chat fetch failed: {e}") from e

        messages = [ChatMessage.from_api_item(item) for item in data.get("items") or []]
        return ChatPage(
            messages=messages,
            next_cursor=data.get("nextPageToken"),
            suggested_interval_ms=int(
                data.get("pollingIntervalMillis") or settings.DEFAULT_POLL_INTERVAL_MS
            ),
        )

    async def delete_message(self, message_id: str) -> str:
        """Delete a message with the next bot identity.

        Returns:
            str: Name of the bot that performed the delete

        Raises:
            CredentialError: If the bot token cannot be refreshed
            AuthError: If the bot is not a moderator
            TransportError: On any other failure
        """
        client, bot_name = await self._bot_client()
        try:
            await client.delete_message(message_id)
        except YouTubeAPIError as e:
            raise translate_api_error(e) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Delete failed: {e}") from e
        return bot_name

    async def ban_user(
        self,
        session_id: str,
        author_id: str,
        permanent: bool,
        duration_seconds: Optional[int] = None,
    ) -> str:
        """Ban or time out a chat author with the next bot identity.

        Returns:
            str: Name of the bot that performed the ban

        Raises:
            CredentialError: If the bot token cannot be refreshed
            AuthError: If the bot is not a moderator
            TransportError: On any other failure
        """
        client, bot_name = await self._bot_client()
        try:
            await client.ban_user(
                session_id,
                author_id,
                permanent=permanent,
                duration_seconds=duration_seconds or settings.TIMEOUT_DURATION_SECONDS,
            )
        except YouTubeAPIError as e:
            raise translate_api_error(e) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Ban failed: {e}") from e
        return bot_name

    async def list_moderators(self, session_id: str, access_token: str) -> dict:
        """List moderators with a specific token (owner-only call).

        Raises:
            YouTubeAPIError: Raw API error, so callers can inspect the status
            TransportError: On network failure
        """
        try:
            return await self._client(access_token=access_token).list_moderators(session_id)
        except httpx.HTTPError as e:
            raise TransportError(f"Moderator list failed: {e}") from e
