"""Chat module for YouTube live chat access.

URL parsing, the YouTube live chat REST client, and the chat source
adapter that pages through new messages with rotating bot identities.
"""

from botdefend.modules.chat.models import ChatMessage, ChatPage
from botdefend.modules.chat.source import ChatSource, translate_api_error
from botdefend.modules.chat.urls import extract_video_id
from botdefend.modules.chat.youtube_api import YouTubeAPIError, YouTubeLiveChatClient

__all__ = [
    "ChatMessage",
    "ChatPage",
    "ChatSource",
    "translate_api_error",
    "extract_video_id",
    "YouTubeAPIError",
    "YouTubeLiveChatClient",
]
