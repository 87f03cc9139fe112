"""Live chat data models."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class ChatMessage:
    """A single live chat message as returned by the platform.

    Immutable; consumed once by the classifier.
    """

    id: str
    author_id: str
    author_name: str
    text: str
    published_at: str = ""
    author_photo_url: Optional[str] = None
    author_is_moderator: bool = False
    author_is_owner: bool = False

    @classmethod
    def from_api_item(cls, item: dict[str, Any]) -> "ChatMessage":
        """Build a message from a liveChatMessages resource."""
        snippet = item.get("snippet") or {}
        author = item.get("authorDetails") or {}
        return cls(
            id=item.get("id", ""),
            author_id=author.get("channelId") or snippet.get("authorChannelId") or "",
            author_name=author.get("displayName") or "",
            author_photo_url=author.get("profileImageUrl"),
            text=snippet.get("displayMessage") or "",
            published_at=snippet.get("publishedAt") or "",
            author_is_moderator=bool(author.get("isChatModerator", False)),
            author_is_owner=bool(author.get("isChatOwner", False)),
        )


@dataclass(frozen=True)
class ChatPage:
    """One page of new messages plus the continuation cursor."""

    messages: list[ChatMessage] = field(default_factory=list)
    next_cursor: Optional[str] = None
    suggested_interval_ms: int = 3000
