"""YouTube URL parsing."""

import re
from typing import Optional

# Accepted URL shapes: watch page, /live/ path, youtu.be short link
VIDEO_URL_PATTERNS = [
    re.compile(r"youtube\.com/watch\?(?:[^#\s]*&)?v=([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/live/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtu\.be/([a-zA-Z0-9_-]{11})"),
]


def extract_video_id(url: str) -> Optional[str]:
    """Extract the 11-character video id from a YouTube URL.

    Args:
        url: Watch-page, live-path or short-link URL

    Returns:
        The video id, or None when no accepted shape matches
    """
    if not url:
        return None
    for pattern in VIDEO_URL_PATTERNS:
        match = pattern.search(url.strip())
        if match:
            return match.group(1)
    return None
