"""Spam type bucketing for session statistics."""

from typing import Iterable

TOXIC_WORDS = ("ngentot", "memek", "kontol", "pepek", "jembut", "titit", "toket", "vulgar")
JUDOL_WORDS = (
    "slot", "gacor", "maxwin", "jp", "jackpot", "dana", "wd", "depo",
    "judol", "gambling", "togel", "casino",
)
LINK_WORDS = ("link", "http", "www", ".com", ".id", "wa.me", "t.me", "bit.ly")

SPAM_TYPES = ("judol", "link", "toxic", "other")


def spam_type(keywords: Iterable[str]) -> str:
    """Bucket a spam hit by its matched keywords.

    Toxic wins over gambling, gambling over links.

    Returns:
        One of "toxic", "judol", "link" or "other"
    """
    joined = " ".join(keywords).lower()
    if any(word in joined for word in TOXIC_WORDS):
        return "toxic"
    if any(word in joined for word in JUDOL_WORDS):
        return "judol"
    if any(word in joined for word in LINK_WORDS):
        return "link"
    return "other"
