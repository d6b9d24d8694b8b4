"""
View contexts.

Views receive a context in every lifecycle call. ViewContext backs the
HTTP first paint and turns most operations into no-ops; LiveViewContext
backs a joined websocket session and routes navigation, info messages and
pub/sub through it. Both embed components through component().
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Union
from urllib.parse import urlsplit

from django.http import QueryDict

from .components.base import Component, ComponentContext, accepts_events
from .mixins import FlashMixin, NavigationMixin, PushEventMixin
from .template import ComponentRef, Template
from .uploads import UploadMixin

if TYPE_CHECKING:
    from .handler import LiveSession

logger = logging.getLogger(__name__)

Event = Union[str, Dict[str, Any]]


def as_event(event: Event) -> Dict[str, Any]:
    """Normalize ``"tick"`` into ``{"type": "tick"}``."""
    if isinstance(event, str):
        return {"type": event}
    return dict(event)


class BaseContext(PushEventMixin, NavigationMixin, FlashMixin, UploadMixin):
    def __init__(self, id: str, url: str, csrf_token: str = ""):
        self._id = id
        self.url = url
        self.csrf_token = csrf_token
        self._page_title: Optional[str] = None
        self._page_title_changed = False
        self._init_push_events()
        self._init_navigation()
        self._init_flash()
        self._init_uploads()

    @property
    def id(self) -> str:
        return self._id

    @property
    def connected(self) -> bool:
        return False

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def query(self) -> QueryDict:
        return QueryDict(urlsplit(self.url).query)

    @property
    def page_title(self) -> str:
        return self._page_title or ""

    @page_title.setter
    def page_title(self, title: str) -> None:
        if title != self._page_title:
            self._page_title = title
            self._page_title_changed = True

    def _take_page_title(self) -> Optional[str]:
        """The new title if it changed since the last reply, resetting the flag."""
        if not self._page_title_changed:
            return None
        self._page_title_changed = False
        return self.page_title

    def _component_context(self) -> ComponentContext:
        return ComponentContext(
            parent_id=self.id,
            connected=self.connected,
            dispatch_event=self.dispatch_event,
            push_event=self.push_event,
        )

    def dispatch_event(self, event: Event) -> None:
        pass

    def subscribe(self, topic: str) -> None:
        pass

    def publish(self, event: Event) -> None:
        pass


class ViewContext(BaseContext):
    """
    Context for the HTTP render.

    Navigation becomes a redirect, events and pub/sub are ignored, and
    components render inline with no session to keep them in.
    """

    def __init__(self, id: str, url: str, csrf_token: str = ""):
        super().__init__(id, url, csrf_token)
        self._cid_index = 0

    def _navigate(self, event: str, to: str, replace: bool) -> None:
        if event == "live_redirect":
            self.redirect_url = to

    def consume_uploaded_entries(self, name, fn):
        return []

    def component(self, c: Component) -> Template:
        if c.stateful and c.cid is None:
            self._cid_index += 1
            c.cid = self._cid_index
        cctx = self._component_context()
        c.mount(cctx)
        c.update(cctx)
        return c.render()


class LiveViewContext(BaseContext):
    """Context for a view joined over a live session."""

    def __init__(self, session: "LiveSession", id: str, url: str, csrf_token: str):
        super().__init__(id, url, csrf_token)
        self._session = session

    @property
    def connected(self) -> bool:
        return not self._session.transport_is_closed()

    def _navigate(self, event: str, to: str, replace: bool) -> None:
        self._session.push_navigation(event, to, replace)

    def dispatch_event(self, event: Event) -> None:
        """Queue an ``info`` message for this view, handled after the current message."""
        if self.connected:
            self._session.send_info(as_event(event))

    def subscribe(self, topic: str) -> None:
        """Receive every event published to ``topic`` as an ``info`` message."""
        if self.connected:
            self._session.subscribe(topic)

    def publish(self, event: Event) -> None:
        """Publish to the topic named by the event's type."""
        if self.connected:
            event = as_event(event)
            self._session.publish(event["type"], event)

    def _rendered_instance(self, c: Component) -> Component:
        """The instance that renders ``c``: the stored one for a known stateful component."""
        if c.stateful:
            existing = self._session.components.get(c.key)
            if existing is not None:
                existing.receive(c)
                return existing
        return c

    def component(self, c: Component) -> Union[Template, ComponentRef]:
        """
        Embed a component in the current render.

        Stateless components run mount, update and render on every call
        and their markup is inlined. Stateful components are mounted once
        per session; on later calls the stored instance receives the new
        instance's inputs and is updated. Only their cid is inlined.
        """
        cctx = self._component_context()
        name = type(c).__name__
        try:
            if c.stateful:
                registry = self._session.components
                existing = registry.get(c.key)
                if existing is None:
                    registry.register(c)
                    c.mount(cctx)
                    existing = c
                else:
                    existing.receive(c)
                existing.update(cctx)
                return ComponentRef(existing.cid)

            if accepts_events(c):
                logger.warning(
                    '%s has a handle_event method but no "id" attribute so cannot receive '
                    "events. Set an id if you want it to handle events.",
                    name,
                )
            c.mount(cctx)
            c.update(cctx)
            return c.render()
        except Exception as e:
            logger.error("Error rendering component %s: %s", name, e)
            raise
