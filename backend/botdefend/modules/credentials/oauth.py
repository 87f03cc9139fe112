"""YouTube OAuth2 utilities.

Exchanges bot refresh tokens for fresh access tokens.
"""

from typing import Optional

import httpx

from botdefend.core.config import settings
from botdefend.core.exceptions import CredentialError


# OAuth2 endpoints
YOUTUBE_TOKEN_URL = "https://oauth2.googleapis.com/token"


class YouTubeOAuthClient:
    """Client for YouTube OAuth2 token refresh."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize OAuth client.

        Args:
            client_id: Google OAuth client ID
            client_secret: Google OAuth client secret
            transport: Optional httpx transport (used by tests)
            timeout: Request timeout in seconds
        """
        self.client_id = client_id if client_id is not None else settings.YOUTUBE_CLIENT_ID
        self.client_secret = (
            client_secret if client_secret is not None else settings.YOUTUBE_CLIENT_SECRET
        )
        self._transport = transport
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    async def refresh_access_token(self, refresh_token: str) -> dict:
        """Refresh access token using refresh token.

        Args:
            refresh_token: Valid refresh token

        Returns:
            dict: Token response with new access_token and expires_in

        Raises:
            CredentialError: If token refresh fails for any reason
        """
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    YOUTUBE_TOKEN_URL,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise CredentialError(f"Token refresh request failed: {e}") from e

        if response.status_code != 200:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            raise CredentialError(
                "Token refresh failed: "
                f"{error_data.get('error_description') or error_data.get('error') or 'Unknown error'}",
                status_code=response.status_code,
                details=error_data,
            )

        data = response.json()
        if not data.get("access_token"):
            raise CredentialError("Token refresh response did not include an access token")
        return data
