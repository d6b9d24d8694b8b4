"""
LiveView base class.

A live view renders a Template from its own state. The same instance is
mounted for the HTTP first paint and again, fresh, when the client joins
over the websocket; after that every event re-renders it and only the
changed parts travel to the client.

    class CounterView(LiveView):
        def mount(self, ctx, event):
            self.count = 0

        def handle_event(self, ctx, event):
            if event["type"] == "inc":
                self.count += 1

        def render(self, meta):
            return html('<h3>{count}</h3><button phx-click="inc">+</button>', count=self.count)

Every lifecycle method may be a plain method or ``async def``; plain
methods run in a worker thread through asgiref's sync_to_async.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from .security import sanitize_for_log

logger = logging.getLogger(__name__)


@dataclass
class RenderMeta:
    """
    Passed to render().

    Attributes:
        csrf_token: Token forms must echo back in a ``_csrf_token`` field
        uploads: Upload configs keyed by name
        component: Embed a component; returns what to interpolate in its place
        flash: Current flash messages keyed by kind
    """

    csrf_token: str
    uploads: Dict[str, Any] = field(default_factory=dict)
    component: Callable[[Any], Any] = None
    flash: Dict[str, str] = field(default_factory=dict)


class LiveView:
    """Base class for live views. Subclasses must implement render()."""

    def mount(self, ctx, event: Dict[str, Any]) -> None:
        """
        Initialize state.

        ``event`` carries ``type="mount"``, the join params, the route
        kwargs under ``params`` and the query string under ``query``.
        """

    def handle_params(self, ctx, url: str) -> None:
        """Called after mount and whenever the URL changes via a live patch."""

    def handle_event(self, ctx, event: Dict[str, Any]) -> None:
        """
        Handle a client event or a server-side info message.

        ``event["type"]`` names the event; the other keys are its values.
        """
        logger.warning(
            "%s received event %s but does not implement handle_event()",
            type(self).__name__,
            sanitize_for_log(event.get("type")),
        )

    def render(self, meta: RenderMeta):
        raise NotImplementedError(f"{type(self).__name__} must implement render(meta)")

    def shutdown(self) -> None:
        """Called once when the session tears down."""
