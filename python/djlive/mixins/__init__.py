"""
Context mixins: push events, navigation and flash messages.
"""

from .flash import FlashMixin
from .navigation import LIVE_PATCH, LIVE_REDIRECT, NavigationMixin, build_location
from .push_events import PushEventMixin

__all__ = [
    "FlashMixin",
    "NavigationMixin",
    "PushEventMixin",
    "LIVE_PATCH",
    "LIVE_REDIRECT",
    "build_location",
]
