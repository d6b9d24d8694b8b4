"""
PushEventMixin: server-to-client events for view contexts.

Lets views and components push events to client-side JS hooks:

    class MyView(LiveView):
        def handle_event(self, ctx, event):
            self.save_data()
            ctx.push_event("flash", {"message": "Saved!"})
            ctx.push_event({"type": "scroll_to", "selector": "#bottom"})
"""

from typing import Any, Dict, List, Optional, Union


class PushEventMixin:
    """
    Mixin that provides push_event() for sending events to client JS.

    Events are queued while a message is handled and attached to the next
    reply under the ``e`` key as ``[type, payload]`` pairs.
    """

    def _init_push_events(self) -> None:
        self._pending_push_events: List[List[Any]] = []

    def push_event(
        self, event: Union[str, Dict[str, Any]], payload: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Queue an event for the connected client.

        Args:
            event: Event name, or a dict whose ``type`` key names the event and
                whose other keys are the payload
            payload: Dict of data to send with the event

        Example::

            ctx.push_event("chart_update", {"points": points})
        """
        if isinstance(event, dict):
            values = {key: value for key, value in event.items() if key != "type"}
            if payload:
                values.update(payload)
            event = event.get("type", "")
        else:
            values = dict(payload or {})
        self._pending_push_events.append([event, values])

    def _drain_push_events(self) -> List[List[Any]]:
        """Drain and return all pending push events."""
        events = self._pending_push_events
        self._pending_push_events = []
        return events
