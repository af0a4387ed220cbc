"""
PURPOSE: Export configuration settings for momentum-sync.
"""

from .settings import SIGNAL_POLICIES, Settings, settings

__all__ = [
    "settings",
    "Settings",
    "SIGNAL_POLICIES",
]
