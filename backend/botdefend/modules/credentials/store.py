"""Remote document store client (Firestore REST API).

The store is maintained by a separate admin tool and is read-only here.
It holds bot identity records, extra spam patterns and a global blacklist.

Bot records come in three shapes, depending on which tool wrote them:

* token blob:   ``{"has_token": true, "token_data": "<json string>"}``
* direct:       ``{"access_token": "...", "refresh_token": "..."}``
* nested:       ``{"tokens": {...}, "channel_info": {"id", "snippet": {"title"}}}``

Each shape is parsed into its own record type and normalized into a single
``BotIdentity``. Anything else is skipped with a warning.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from botdefend.core.config import settings
from botdefend.core.exceptions import TransportError
from botdefend.core.logging import log_warning
from botdefend.modules.credentials.models import BotIdentity, IdentityOrigin

logger = logging.getLogger(__name__)

FIRESTORE_API_BASE = "https://firestore.googleapis.com/v1"


def firestore_to_dict(doc: dict) -> dict[str, Any]:
    """Convert a Firestore REST document into a plain dict.

    The document id (last path segment of ``name``) is stored under ``_id``.
    """
    result: dict[str, Any] = {}
    for key, value in (doc.get("fields") or {}).items():
        result[key] = _firestore_value(value)

    if doc.get("name"):
        result["_id"] = doc["name"].rsplit("/", 1)[-1]

    return result


def _firestore_value(value: dict) -> Any:
    if "stringValue" in value:
        return value["stringValue"]
    if "integerValue" in value:
        return int(value["integerValue"])
    if "booleanValue" in value:
        return value["booleanValue"]
    if "doubleValue" in value:
        return value["doubleValue"]
    if "timestampValue" in value:
        return value["timestampValue"]
    if "nullValue" in value:
        return None
    if "mapValue" in value:
        return firestore_to_dict(value["mapValue"])
    if "arrayValue" in value:
        return [_firestore_value(v) for v in value["arrayValue"].get("values", [])]
    return None


# ============================================
# Bot record shapes
# ============================================


@dataclass(frozen=True)
class TokenBlobRecord:
    """Record carrying its tokens inside an opaque JSON string."""

    record_id: str
    name: str
    channel_id: str
    token_data: str


@dataclass(frozen=True)
class DirectTokenRecord:
    """Record with access/refresh token fields at the top level."""

    record_id: str
    name: str
    channel_id: str
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class NestedTokenRecord:
    """Record with a ``tokens`` object and a ``channel_info`` object."""

    record_id: str
    name: str
    channel_id: str
    access_token: str
    refresh_token: str


BotRecord = Union[TokenBlobRecord, DirectTokenRecord, NestedTokenRecord]


def parse_token_data(token_data: str) -> Optional[dict[str, str]]:
    """Decode a token blob, accepting both flat and nested layouts."""
    try:
        data = json.loads(token_data)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    tokens = data.get("tokens") or {}
    channel_info = data.get("channel_info") or {}
    snippet = channel_info.get("snippet") or {}
    return {
        "access_token": tokens.get("access_token") or data.get("access_token") or "",
        "refresh_token": tokens.get("refresh_token") or data.get("refresh_token") or "",
        "channel_id": channel_info.get("id") or data.get("channel_id") or "",
        "channel_name": snippet.get("title") or channel_info.get("title") or data.get("name") or "",
    }


def parse_bot_record(raw: dict) -> Optional[BotRecord]:
    """Classify a raw store document into one of the known record shapes.

    Shapes are tried in order: token blob, direct, nested. A blob that does
    not decode to a refresh token falls through to the other shapes.
    """
    record_id = str(raw.get("_id") or raw.get("id") or "")
    name = raw.get("name") or ""
    channel_id = raw.get("channel_id") or ""

    if raw.get("has_token") and raw.get("token_data"):
        decoded = parse_token_data(raw["token_data"])
        if decoded and decoded["refresh_token"]:
            return TokenBlobRecord(
                record_id=record_id,
                name=name,
                channel_id=channel_id,
                token_data=raw["token_data"],
            )

    if raw.get("access_token") and raw.get("refresh_token"):
        return DirectTokenRecord(
            record_id=record_id,
            name=name,
            channel_id=channel_id,
            access_token=raw["access_token"],
            refresh_token=raw["refresh_token"],
        )

    tokens = raw.get("tokens")
    if isinstance(tokens, dict) and tokens.get("access_token") and tokens.get("refresh_token"):
        channel_info = raw.get("channel_info") or {}
        snippet = channel_info.get("snippet") or {}
        return NestedTokenRecord(
            record_id=record_id,
            name=snippet.get("title") or channel_info.get("title") or name,
            channel_id=channel_info.get("id") or channel_id,
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
        )

    return None


def normalize_bot_record(record: BotRecord, position: int) -> BotIdentity:
    """Turn any record shape into a canonical remote BotIdentity.

    ``expires_at`` is always 0 so the first use refreshes the token.
    """
    if isinstance(record, TokenBlobRecord):
        decoded = parse_token_data(record.token_data) or {}
        access_token = decoded.get("access_token", "")
        refresh_token = decoded.get("refresh_token", "")
        channel_id = decoded.get("channel_id") or record.channel_id
        name = record.name or decoded.get("channel_name", "")
    else:
        access_token = record.access_token
        refresh_token = record.refresh_token
        channel_id = record.channel_id
        name = record.name

    identity_id = record.record_id or str(position)
    return BotIdentity(
        id=identity_id,
        display_name=name or f"Bot {identity_id}",
        access_token=access_token,
        refresh_token=refresh_token,
        channel_id=channel_id,
        expires_at=0.0,
        origin=IdentityOrigin.REMOTE,
    )


# ============================================
# Patterns and blacklist
# ============================================


@dataclass(frozen=True)
class RemotePattern:
    """Extra spam keyword or regex maintained by the admin tool."""

    pattern: str
    is_regex: bool = False
    severity: str = "medium"
    description: str = ""


@dataclass(frozen=True)
class BlacklistEntry:
    """Globally blacklisted chat author."""

    user_id: str
    username: str
    reason: str = ""
    is_verified: bool = False


class RemoteDocumentStore:
    """Read-only client for the Firestore collections used by the bot."""

    def __init__(
        self,
        project_id: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.project_id = project_id if project_id is not None else settings.FIRESTORE_PROJECT_ID
        self.api_key = api_key if api_key is not None else settings.FIRESTORE_API_KEY
        self.base_url = base_url or settings.FIRESTORE_BASE_URL or (
            f"{FIRESTORE_API_BASE}/projects/{self.project_id}/databases/(default)/documents"
        )
        self._transport = transport
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        return bool(self.project_id)

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """Fetch every document of a collection as plain dicts.

        Raises:
            TransportError: On network failure or non-200 response
        """
        params = {"key": self.api_key} if self.api_key else None
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/{collection}",
                    params=params,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Document store request failed: {e}") from e

        if response.status_code != 200:
            raise TransportError(
                f"Document store returned {response.status_code} for {collection}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Document store returned invalid JSON: {e}") from e

        return [firestore_to_dict(doc) for doc in data.get("documents", [])]

    async def get_bot_records(self) -> list[dict[str, Any]]:
        """Get enabled bot records."""
        docs = await self.list_documents(settings.FIRESTORE_BOTS_COLLECTION)
        return [doc for doc in docs if doc.get("enabled") is not False]

    async def get_spam_patterns(self) -> list[RemotePattern]:
        """Get active spam patterns."""
        docs = await self.list_documents(settings.FIRESTORE_PATTERNS_COLLECTION)
        patterns = []
        for doc in docs:
            if doc.get("is_active") is False or not doc.get("pattern"):
                continue
            patterns.append(
                RemotePattern(
                    pattern=str(doc["pattern"]),
                    is_regex=bool(doc.get("is_regex", False)),
                    severity=doc.get("severity") or "medium",
                    description=doc.get("description") or "",
                )
            )
        return patterns

    async def get_global_blacklist(self, verified_only: bool = True) -> list[BlacklistEntry]:
        """Get global blacklist entries, verified ones only by default."""
        docs = await self.list_documents(settings.FIRESTORE_BLACKLIST_COLLECTION)
        entries = [
            BlacklistEntry(
                user_id=doc.get("user_id") or "",
                username=doc.get("username") or "",
                reason=doc.get("reason") or "",
                is_verified=bool(doc.get("is_verified", False)),
            )
            for doc in docs
        ]
        if verified_only:
            entries = [e for e in entries if e.is_verified]
        return entries

    async def load_identities(self) -> list[BotIdentity]:
        """Fetch and normalize bot identities, skipping unusable records."""
        identities: list[BotIdentity] = []
        for raw in await self.get_bot_records():
            record = parse_bot_record(raw)
            if record is None:
                log_warning(
                    logger,
                    "Skipping remote bot record without a usable refresh token",
                    record_id=raw.get("_id"),
                    bot_name=raw.get("name"),
                )
                continue
            identities.append(normalize_bot_record(record, len(identities) + 1))
        return identities
