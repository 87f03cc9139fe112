"""Application modules.

- credentials: Bot identities, token refresh, API key rotation
- chat: Live chat session resolution and message paging
- ai: AI spam classification fallback
- moderation: Spam classification, moderator status, polling loop
"""
