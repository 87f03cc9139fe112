"""YouTube Bot Defend backend.

Watches a YouTube live chat, classifies every message as spam or clean and
optionally deletes, times out or bans the authors of detected spam using a
pool of moderator bot accounts.

Modules:
    - core: Configuration, logging, metrics, exceptions
    - modules.credentials: Bot identity pool, OAuth refresh, API key quota
    - modules.chat: YouTube live chat REST client and chat source
    - modules.ai: Optional AI spam classification fallback
    - modules.moderation: Classifier, moderator authority, poll orchestrator
"""

__version__ = "2.0.0"
