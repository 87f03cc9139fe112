"""Core module for configuration and utilities."""

from botdefend.core.config import settings

__all__ = [
    "settings",
]
