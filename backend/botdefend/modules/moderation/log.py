"""Capped, newest-first moderation log."""

from typing import Iterator, Optional

from botdefend.core.config import settings
from botdefend.modules.moderation.models import LogEntryKind, ModerationLogEntry


class ModerationLog:
    """Newest-first sequence of log entries, unique by id.

    Inserting beyond the limit evicts the oldest entries.
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit or settings.MODERATION_LOG_LIMIT
        self._entries: list[ModerationLogEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ModerationLogEntry]:
        return iter(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return self.get(entry_id) is not None

    @property
    def entries(self) -> list[ModerationLogEntry]:
        return list(self._entries)

    def get(self, entry_id: str) -> Optional[ModerationLogEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def upsert(self, entry: ModerationLogEntry) -> bool:
        """Insert an entry at the front, or merge it into an existing one.

        An existing entry keeps its position. Its kind is replaced only
        when the incoming entry records an action, so a later
        "spam detected" never downgrades an acted-on entry.

        Returns:
            True if the entry was newly inserted
        """
        existing = self.get(entry.id)
        if existing is not None:
            if entry.action_taken:
                existing.kind = entry.kind
            return False

        self._entries.insert(0, entry)
        del self._entries[self.limit:]
        return True

    def upgrade(self, entry_id: str, kind: LogEntryKind) -> bool:
        """Set the kind of one entry after an action succeeded."""
        entry = self.get(entry_id)
        if entry is None:
            return False
        entry.kind = kind
        return True

    def upgrade_author(self, author_id: str, kind: LogEntryKind) -> int:
        """Set the kind of every entry by one author. Returns the count."""
        count = 0
        for entry in self._entries:
            if entry.author_id == author_id:
                entry.kind = kind
                count += 1
        return count

    def clear(self) -> None:
        self._entries.clear()

    def to_list(self) -> list[dict]:
        return [entry.to_dict() for entry in self._entries]
