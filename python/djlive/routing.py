"""
URL routing for djlive views.

Live views are registered with Django route syntax on a LiveRouter. The
same router resolves the URL a client joins with and the URL of the HTTP
first paint.

    router = LiveRouter()
    router.register("counter/", CounterView)
    router.register("items/<int:item_id>/", ItemView)

    websocket_urlpatterns = live_websocket_urlpatterns(router)
"""

from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import urlsplit

from django.http import QueryDict
from django.urls import re_path
from django.urls.resolvers import RoutePattern

from .config import config as djlive_config
from .exceptions import RouteNotFoundError

ViewFactory = Callable[[], Any]


class RouteMatch(NamedTuple):
    factory: ViewFactory
    params: Dict[str, Any]
    query: Dict[str, str]
    route: str


class LiveRouter:
    """Maps Django route patterns to factories returning a fresh view."""

    def __init__(self):
        self._routes: List[Tuple[RoutePattern, ViewFactory]] = []

    def register(self, route: str, factory: Optional[ViewFactory] = None, name: Optional[str] = None):
        """
        Register a view factory for a route.

        Usable directly or as a class decorator::

            @router.register("counter/")
            class CounterView(LiveView):
                ...
        """
        if factory is None:

            def decorator(view_factory):
                self.register(route, view_factory, name=name)
                return view_factory

            return decorator

        pattern = RoutePattern(route.lstrip("/"), name=name, is_endpoint=True)
        self._routes.append((pattern, factory))
        return factory

    def resolve(self, url: str) -> RouteMatch:
        """
        Find the view for an absolute or relative URL.

        Raises:
            RouteNotFoundError: if no registered route matches
        """
        parts = urlsplit(url)
        path = parts.path.lstrip("/")
        for pattern, factory in self._routes:
            match = pattern.match(path)
            if match is not None:
                _, _, kwargs = match
                return RouteMatch(
                    factory=factory,
                    params=dict(kwargs),
                    query=QueryDict(parts.query).dict(),
                    route=str(pattern),
                )
        raise RouteNotFoundError(url)

    def __len__(self) -> int:
        return len(self._routes)


def live_websocket_urlpatterns(router: LiveRouter, path: Optional[str] = None):
    """
    Channels URL patterns serving the live socket for ``router``.

    Example::

        application = ProtocolTypeRouter({
            "http": get_asgi_application(),
            "websocket": SessionMiddlewareStack(
                URLRouter(live_websocket_urlpatterns(router))
            ),
        })
    """
    from .websocket import LiveSocketConsumer

    path = (path or djlive_config.get("websocket_path")).strip("/")
    return [re_path(rf"^/?{path}/?$", LiveSocketConsumer.as_asgi(router=router))]
