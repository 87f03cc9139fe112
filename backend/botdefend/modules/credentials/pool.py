"""Bot credential pool.

Holds the bot identities, hands one out per outbound call in strict
round-robin order and makes sure every handed-out identity carries an
access token that is not about to expire.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from botdefend.core.config import settings
from botdefend.core.exceptions import (
    BotDefendError,
    CredentialError,
    CredentialPoolExhausted,
)
from botdefend.core.logging import log_error, log_info, log_warning
from botdefend.core.metrics import TOKEN_REFRESH_TOTAL
from botdefend.modules.credentials.models import BotIdentity, IdentityOrigin
from botdefend.modules.credentials.oauth import YouTubeOAuthClient
from botdefend.modules.credentials.store import RemoteDocumentStore

logger = logging.getLogger(__name__)


class CredentialPool:
    """Round-robin pool of bot identities with on-demand token refresh."""

    def __init__(
        self,
        local_tokens: Optional[list[dict]] = None,
        oauth_client: Optional[YouTubeOAuthClient] = None,
        store: Optional[RemoteDocumentStore] = None,
        refresh_margin_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize an empty pool.

        Args:
            local_tokens: Statically configured tokens, defaults to settings.BOT_TOKENS
            oauth_client: Client used for refresh-token exchanges
            store: Remote document store holding bot records
            refresh_margin_seconds: Refresh this many seconds before expiry
            clock: Epoch-seconds clock, injectable for tests
        """
        self._local_tokens = local_tokens if local_tokens is not None else settings.BOT_TOKENS
        self.oauth_client = oauth_client or YouTubeOAuthClient()
        self.store = store
        self.refresh_margin_seconds = (
            refresh_margin_seconds
            if refresh_margin_seconds is not None
            else settings.TOKEN_REFRESH_MARGIN_SECONDS
        )
        self._clock = clock
        self._identities: list[BotIdentity] = []
        self._cursor = 0
        self._refresh_locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._identities)

    @property
    def identities(self) -> list[BotIdentity]:
        return list(self._identities)

    @property
    def source(self) -> str:
        """Where the current identities came from: local, remote or none."""
        if not self._identities:
            return "none"
        return self._identities[0].origin.value

    def describe(self) -> list[dict]:
        """List identities without secrets."""
        return [identity.to_public_dict() for identity in self._identities]

    def load_local(self) -> list[BotIdentity]:
        """Load identities from the static configuration.

        Never fails; an empty configuration yields an empty pool.
        """
        identities = []
        for index, token in enumerate(self._local_tokens or []):
            identities.append(
                BotIdentity(
                    id=str(index + 1),
                    display_name=token.get("name") or f"Bot {index + 1}",
                    access_token=token.get("access_token") or "",
                    refresh_token=token.get("refresh_token") or "",
                    channel_id=token.get("channel_id") or "",
                    expires_at=0.0,
                    origin=IdentityOrigin.LOCAL,
                )
            )
        self._replace(identities)
        log_info(logger, "Initialized bots from local configuration", bot_count=len(identities))
        return self.identities

    async def load_remote(self) -> list[BotIdentity]:
        """Load identities from the remote store, falling back to local.

        Records lacking a refresh token are skipped by the store. When the
        store is not configured, unreachable, or yields no usable record,
        the local configuration is used instead.
        """
        if self.store is None or not self.store.is_configured:
            log_info(logger, "Remote bot store not configured, using local bots")
            return self.load_local()

        try:
            identities = await self.store.load_identities()
        except BotDefendError as e:
            log_error(logger, "Remote bot load failed, using local fallback", exception=e)
            return self.load_local()

        if not identities:
            log_warning(logger, "No usable remote bots found, using local fallback")
            return self.load_local()

        self._replace(identities)
        log_info(logger, "Loaded bots from remote store", bot_count=len(identities))
        return self.identities

    def next(self) -> Optional[BotIdentity]:
        """Return the identity at the cursor and advance it.

        Lazily loads the local configuration when the pool is empty.
        """
        if not self._identities:
            self.load_local()
        if not self._identities:
            return None

        identity = self._identities[self._cursor % len(self._identities)]
        self._cursor = (self._cursor + 1) % len(self._identities)
        return identity

    async def ensure_fresh(self, identity: BotIdentity) -> str:
        """Return a usable access token, refreshing it first if needed.

        Refreshes for the same identity are serialized; a caller that waited
        on the lock re-checks expiry and reuses the token the first caller
        obtained.

        Raises:
            CredentialError: If the refresh-token exchange fails
        """
        if not identity.needs_refresh(self.refresh_margin_seconds, self._clock()):
            return identity.access_token

        lock = self._refresh_locks.setdefault(identity.id, asyncio.Lock())
        async with lock:
            if not identity.needs_refresh(self.refresh_margin_seconds, self._clock()):
                return identity.access_token

            if not identity.refresh_token:
                TOKEN_REFRESH_TOTAL.labels(status="failed").inc()
                raise CredentialError(f"Bot '{identity.display_name}' has no refresh token")

            log_info(logger, "Refreshing bot token", bot_name=identity.display_name)
            try:
                data = await self.oauth_client.refresh_access_token(identity.refresh_token)
            except CredentialError as e:
                TOKEN_REFRESH_TOTAL.labels(status="failed").inc()
                log_error(
                    logger,
                    "Bot token refresh failed",
                    exception=e,
                    bot_name=identity.display_name,
                )
                raise

            identity.access_token = data["access_token"]
            identity.expires_at = self._clock() + float(data.get("expires_in", 3600))
            TOKEN_REFRESH_TOTAL.labels(status="success").inc()
            log_info(logger, "Bot token refreshed", bot_name=identity.display_name)
            return identity.access_token

    async def acquire(self) -> tuple[BotIdentity, str]:
        """Take the next identity and a fresh token for it.

        Raises:
            CredentialPoolExhausted: If the pool has no identities
            CredentialError: If the token refresh fails
        """
        identity = self.next()
        if identity is None:
            raise CredentialPoolExhausted("No bot identities configured")
        token = await self.ensure_fresh(identity)
        return identity, token

    def _replace(self, identities: list[BotIdentity]) -> None:
        self._identities = identities
        self._cursor = 0
        self._refresh_locks = {}
