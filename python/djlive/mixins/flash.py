"""
Flash messages for view contexts.

Flash messages are rendered through RenderMeta.flash and cleared by the
client with the reserved ``lv:clear-flash`` event.
"""

from typing import Dict, Optional


class FlashMixin:
    def _init_flash(self) -> None:
        self.flash: Dict[str, str] = {}

    def put_flash(self, key: str, message: str) -> None:
        self.flash[key] = message

    def clear_flash(self, key: Optional[str] = None) -> None:
        """Clear one flash message, or all of them when key is None."""
        if key is None:
            self.flash.clear()
        else:
            self.flash.pop(key, None)
