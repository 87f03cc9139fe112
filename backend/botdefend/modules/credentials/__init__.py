"""Credentials module for bot identities and API keys.

Round-robin bot identity pool with OAuth token refresh, remote identity
loading, and multi-project API key quota rotation.
"""

from botdefend.modules.credentials.models import BotIdentity, IdentityOrigin
from botdefend.modules.credentials.oauth import YouTubeOAuthClient
from botdefend.modules.credentials.pool import CredentialPool
from botdefend.modules.credentials.quota import QUOTA_COSTS, ApiKeyPool
from botdefend.modules.credentials.store import (
    BlacklistEntry,
    RemoteDocumentStore,
    RemotePattern,
)

__all__ = [
    # Models
    "BotIdentity",
    "IdentityOrigin",
    # Pool
    "CredentialPool",
    "YouTubeOAuthClient",
    # Quota
    "ApiKeyPool",
    "QUOTA_COSTS",
    # Store
    "BlacklistEntry",
    "RemoteDocumentStore",
    "RemotePattern",
]
