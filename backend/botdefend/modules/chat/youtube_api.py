"""YouTube Live Chat API client.

Provides methods for reading live chat messages and moderating them.
"""

from typing import Any, Optional

import httpx

from botdefend.core.config import settings
from botdefend.core.metrics import YOUTUBE_API_REQUESTS_TOTAL


class YouTubeAPIError(Exception):
    """Exception raised for YouTube API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def reason(self) -> Optional[str]:
        """First error reason reported by the API, e.g. ``quotaExceeded``."""
        errors = (self.details.get("error") or {}).get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("reason")
        return None

    @property
    def api_message(self) -> Optional[str]:
        return (self.details.get("error") or {}).get("message")

    @property
    def is_quota_exceeded(self) -> bool:
        return self.status_code == 403 and self.reason in ("quotaExceeded", "dailyLimitExceeded")

    @property
    def is_forbidden(self) -> bool:
        """Caller lacks privilege (403 that is not a quota problem)."""
        return self.status_code == 403 and not self.is_quota_exceeded

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401


class YouTubeLiveChatClient:
    """Client for the YouTube Data API live chat endpoints.

    Authenticates with either a bot OAuth access token or a project API key.
    Read-only calls (video lookup) work with an API key; everything touching
    live chat needs the token.
    """

    BASE_URL = "https://www.googleapis.com/youtube/v3"

    def __init__(
        self,
        access_token: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client with credentials.

        Args:
            access_token: OAuth2 access token for a bot account
            api_key: Project API key, used when no access token is given
            transport: Optional httpx transport (used by tests)
            timeout: Request timeout in seconds
        """
        self.access_token = access_token
        self.api_key = api_key
        self.headers = {"Content-Type": "application/json"}
        if access_token:
            self.headers["Authorization"] = f"Bearer {access_token}"
        self._transport = transport
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    async def _request(
        self,
        method: str,
        path: str,
        endpoint: str,
        params: dict[str, Any],
        json_body: Optional[dict] = None,
        ok_statuses: tuple[int, ...] = (200,),
        error_message: str = "YouTube API request failed",
    ) -> httpx.Response:
        if not self.access_token and self.api_key:
            params = {**params, "key": self.api_key}

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.request(
                    method,
                    f"{self.BASE_URL}/{path}",
                    params=params,
                    headers=self.headers,
                    json=json_body,
                    timeout=self.timeout,
                )
            except httpx.HTTPError:
                YOUTUBE_API_REQUESTS_TOTAL.labels(endpoint=endpoint, status="error").inc()
                raise

        YOUTUBE_API_REQUESTS_TOTAL.labels(endpoint=endpoint, status=str(response.status_code)).inc()

        if response.status_code not in ok_statuses:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {}
            raise YouTubeAPIError(
                f"{error_message}: {response.status_code}",
                status_code=response.status_code,
                details=error_data,
            )

        return response

    async def get_video(self, video_id: str) -> Optional[dict[str, Any]]:
        """Get a video's live streaming details.

        Args:
            video_id: YouTube video ID

        Returns:
            dict: Video resource, or None if the video does not exist

        Raises:
            YouTubeAPIError: If API call fails
        """
        response = await self._request(
            "GET",
            "videos",
            endpoint="videos.list",
            params={"part": "liveStreamingDetails", "id": video_id},
            error_message="Failed to fetch video details",
        )
        items = response.json().get("items") or []
        return items[0] if items else None

    async def list_messages(
        self,
        live_chat_id: str,
        page_token: Optional[str] = None,
        max_results: int = 200,
    ) -> dict[str, Any]:
        """List live chat messages after a continuation token.

        Args:
            live_chat_id: Live chat ID
            page_token: Continuation token from the previous page
            max_results: Page size (max 2000)

        Returns:
            dict: liveChatMessages list response

        Raises:
            YouTubeAPIError: If API call fails
        """
        params = {
            "liveChatId": live_chat_id,
            "part": "snippet,authorDetails",
            "maxResults": max_results,
        }
        if page_token:
            params["pageToken"] = page_token

        response = await self._request(
            "GET",
            "liveChat/messages",
            endpoint="liveChatMessages.list",
            params=params,
            error_message="Failed to fetch chat messages",
        )
        return response.json()

    async def delete_message(self, message_id: str) -> None:
        """Delete a chat message. The caller must be a moderator.

        Raises:
            YouTubeAPIError: If API call fails (403 when not a moderator)
        """
        await self._request(
            "DELETE",
            "liveChat/messages",
            endpoint="liveChatMessages.delete",
            params={"id": message_id},
            ok_statuses=(200, 204),
            error_message="Failed to delete message",
        )

    async def ban_user(
        self,
        live_chat_id: str,
        channel_id: str,
        permanent: bool = True,
        duration_seconds: int = 300,
    ) -> dict[str, Any]:
        """Ban or time out a user in a live chat.

        Args:
            live_chat_id: Live chat ID
            channel_id: Channel ID of the user to ban
            permanent: Permanent ban when True, temporary timeout otherwise
            duration_seconds: Timeout length for temporary bans

        Returns:
            dict: liveChatBan resource

        Raises:
            YouTubeAPIError: If API call fails (403 when not a moderator)
        """
        snippet: dict[str, Any] = {
            "liveChatId": live_chat_id,
            "type": "permanent" if permanent else "temporary",
            "bannedUserDetails": {"channelId": channel_id},
        }
        if not permanent:
            snippet["banDurationSeconds"] = duration_seconds

        response = await self._request(
            "POST",
            "liveChat/bans",
            endpoint="liveChatBans.insert",
            params={"part": "snippet"},
            json_body={"snippet": snippet},
            error_message="Failed to ban user",
        )
        return response.json() if response.content else {}

    async def list_moderators(self, live_chat_id: str, max_results: int = 50) -> dict[str, Any]:
        """List chat moderators. Only succeeds for the channel owner.

        Raises:
            YouTubeAPIError: If API call fails (403 for non-owners)
        """
        response = await self._request(
            "GET",
            "liveChat/moderators",
            endpoint="liveChatModerators.list",
            params={"liveChatId": live_chat_id, "part": "snippet", "maxResults": max_results},
            error_message="Failed to list moderators",
        )
        return response.json()

    @staticmethod
    def extract_live_chat_id(video_resource: dict) -> Optional[str]:
        """Extract the active live chat id from a video resource."""
        details = video_resource.get("liveStreamingDetails") or {}
        return details.get("activeLiveChatId") or None
