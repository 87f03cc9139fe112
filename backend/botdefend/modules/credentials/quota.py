"""Multi-project API key rotation with quota tracking.

Each Google Cloud project gets 10,000 quota units per day. Keys are handed
out round-robin, skipping keys marked exhausted. An exhausted key becomes
usable again on the next calendar day.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from botdefend.core.exceptions import QuotaExhaustedError
from botdefend.core.logging import log_info, log_warning, mask_secret
from botdefend.core.metrics import YOUTUBE_API_QUOTA_USED

logger = logging.getLogger(__name__)

QUOTA_PER_PROJECT = 10000

# Estimated quota cost of each YouTube Data API call used by the bot
QUOTA_COSTS = {
    "videos_list": 1,
    "live_chat_messages_list": 5,
    "live_chat_messages_delete": 50,
    "live_chat_bans_insert": 50,
    "live_chat_moderators_list": 50,
}


@dataclass
class ApiKeyStatus:
    """Quota state of one project API key."""

    key: str
    project_index: int
    quota_used: int = 0
    quota_exhausted: bool = False
    exhausted_at: Optional[datetime] = None
    last_used: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "project_index": self.project_index,
            "quota_used": self.quota_used,
            "quota_exhausted": self.quota_exhausted,
            "key_preview": mask_secret(self.key),
        }


class ApiKeyPool:
    """Rotates among project API keys and tracks estimated quota."""

    def __init__(
        self,
        keys: list[str],
        quota_per_project: int = QUOTA_PER_PROJECT,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.quota_per_project = quota_per_project
        self._clock = clock
        self._statuses = [
            ApiKeyStatus(key=key, project_index=index + 1)
            for index, key in enumerate(k for k in keys if k)
        ]
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._statuses)

    def next_key(self) -> str:
        """Get the next non-exhausted key and advance the cursor.

        Raises:
            QuotaExhaustedError: If no keys are configured or all are spent
        """
        if not self._statuses:
            raise QuotaExhaustedError("No YouTube API keys configured")

        today = self._clock().date()
        for _ in range(len(self._statuses)):
            status = self._statuses[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._statuses)
            self._maybe_reset(status, today)

            if not status.quota_exhausted:
                status.last_used = self._clock()
                return status.key

        log_warning(logger, "All API keys exhausted", projects=len(self._statuses))
        raise QuotaExhaustedError(
            "All API keys are out of quota, try again tomorrow or add another project"
        )

    def mark_exhausted(self, key: str) -> None:
        """Mark a key exhausted after a quotaExceeded response."""
        status = self._find(key)
        if status and not status.quota_exhausted:
            status.quota_exhausted = True
            status.exhausted_at = self._clock()
            log_warning(logger, "API key quota exhausted", project=status.project_index)

    def track_usage(self, key: str, cost: int) -> None:
        """Add an estimated cost to a key, exhausting it at the daily limit."""
        status = self._find(key)
        if status is None:
            return
        status.quota_used += cost
        YOUTUBE_API_QUOTA_USED.labels(project=str(status.project_index)).set(status.quota_used)
        if status.quota_used >= self.quota_per_project and not status.quota_exhausted:
            status.quota_exhausted = True
            status.exhausted_at = self._clock()
            log_warning(
                logger,
                "API key estimated quota reached",
                project=status.project_index,
                quota_used=status.quota_used,
            )

    def reset(self) -> None:
        """Forget all usage (manual reset)."""
        for status in self._statuses:
            status.quota_used = 0
            status.quota_exhausted = False
            status.exhausted_at = None
        log_info(logger, "API key quota tracking reset")

    def status(self) -> dict:
        """Summarize quota for display."""
        total_quota = len(self._statuses) * self.quota_per_project
        used = sum(s.quota_used for s in self._statuses)
        exhausted = sum(1 for s in self._statuses if s.quota_exhausted)
        return {
            "total_projects": len(self._statuses),
            "active_projects": len(self._statuses) - exhausted,
            "exhausted_projects": exhausted,
            "total_quota": total_quota,
            "estimated_used": used,
            "estimated_remaining": total_quota - used,
            "keys": [s.to_dict() for s in self._statuses],
        }

    def _find(self, key: str) -> Optional[ApiKeyStatus]:
        for status in self._statuses:
            if status.key == key:
                return status
        return None

    def _maybe_reset(self, status: ApiKeyStatus, today: date) -> None:
        if status.quota_exhausted and status.exhausted_at and status.exhausted_at.date() != today:
            status.quota_exhausted = False
            status.quota_used = 0
            status.exhausted_at = None
            log_info(logger, "API key quota reset for new day", project=status.project_index)
