"""
djlive - server-rendered live views for Django.

Views render Templates on the server; a Phoenix LiveView client joins over
a Channels websocket and receives only the parts that changed.
"""

from .components import Component, ComponentContext
from .config import config
from .exceptions import LiveViewError
from .handler import LiveSession, SessionState
from .js import JS
from .live_view import LiveView, RenderMeta
from .routing import LiveRouter
from .tags import live_file_input, live_img_preview
from .template import ComponentRef, Template, html, join, safe

__version__ = "0.1.0"

__all__ = [
    "Component",
    "ComponentContext",
    "ComponentRef",
    "JS",
    "LiveRouter",
    "LiveSession",
    "LiveView",
    "LiveViewError",
    "RenderMeta",
    "SessionState",
    "Template",
    "config",
    "html",
    "join",
    "live_file_input",
    "live_img_preview",
    "safe",
]
