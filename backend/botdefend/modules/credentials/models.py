"""Bot identity models."""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class IdentityOrigin(str, Enum):
    """Where a bot identity was loaded from."""

    LOCAL = "local"
    REMOTE = "remote"


@dataclass
class BotIdentity:
    """A bot account that can act as a chat moderator.

    Owned by a CredentialPool. Only the refresh operation mutates
    ``access_token`` and ``expires_at``.
    """

    id: str
    display_name: str
    access_token: str
    refresh_token: str
    channel_id: str = ""
    expires_at: float = 0.0  # epoch seconds, 0 forces a refresh
    origin: IdentityOrigin = IdentityOrigin.LOCAL

    def needs_refresh(self, margin_seconds: int, now: Optional[float] = None) -> bool:
        """Check whether the access token is inside the refresh margin."""
        now = time.time() if now is None else now
        return not self.access_token or now > self.expires_at - margin_seconds

    def to_public_dict(self) -> dict:
        """Describe the identity without secrets."""
        return {
            "id": self.id,
            "name": self.display_name,
            "channel_id": self.channel_id,
            "origin": self.origin.value,
        }
