"""
Navigation mixin for view contexts: URL state management.

Provides push_patch() (update URL without remount), push_redirect()
(navigate to another live view over the same connection) and redirect()
(full page navigation).

Inspired by Phoenix LiveView's push_patch and push_navigate.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

LIVE_PATCH = "live_patch"
LIVE_REDIRECT = "live_redirect"


def build_location(path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Join a path and query params the way the client expects them."""
    if params:
        return f"{path}?{urlencode(params, doseq=True)}"
    return path


class NavigationMixin:
    """
    Adds URL navigation to a view context.

    Subclasses decide what navigating means by implementing _navigate():
    a live context routes it through the session, the HTTP context records
    it as a redirect.
    """

    def _init_navigation(self) -> None:
        self.redirect_url: Optional[str] = None

    def push_patch(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        replace: bool = False,
    ) -> None:
        """
        Update the browser URL without remounting the view.

        handle_params() runs with the new URL before the client is told.

        Example::

            def handle_event(self, ctx, event):
                if event["type"] == "filter":
                    ctx.push_patch("/items", {"category": event["category"]})
        """
        self._navigate(LIVE_PATCH, build_location(path, params), replace)

    def push_redirect(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        replace: bool = False,
    ) -> None:
        """Navigate to a different live view over the existing connection."""
        self._navigate(LIVE_REDIRECT, build_location(path, params), replace)

    def redirect(self, url: str) -> None:
        """Send the client to ``url`` instead of replying with a diff."""
        self.redirect_url = str(url)

    def _take_redirect(self) -> Optional[str]:
        url = self.redirect_url
        self.redirect_url = None
        return url

    def _navigate(self, event: str, to: str, replace: bool) -> None:
        raise NotImplementedError
