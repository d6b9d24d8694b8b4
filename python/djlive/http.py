"""
HTTP first paint.

The initial page load runs the view's HTTP lifecycle (mount, handle_params,
render) with a ViewContext and renders the markup from the same parts tree
the websocket sends, so the page the browser receives matches what the
client rebuilds after joining.
"""

import logging
import secrets
import uuid
from typing import Any, Callable, Dict, NamedTuple, Optional

from django.http import Http404, HttpResponse, HttpResponseRedirect
from django.template.loader import render_to_string
from django.views import View

from .config import config as djlive_config
from .context import ViewContext
from .exceptions import RouteNotFoundError
from .live_view import RenderMeta
from .routing import LiveRouter
from .template import Template, html, safe
from .tree import preload_components, to_tree, tree_to_html
from .utils import call_handler_sync

logger = logging.getLogger(__name__)

DEFAULT_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="csrf-token" content="{csrf_token}" />
    <title>{title}</title>
  </head>
  <body>{content}</body>
</html>"""


class RenderResult(NamedTuple):
    html: str
    redirect: Optional[str]
    view_id: str
    title: str


def render_view(router: LiveRouter, url: str, csrf_token: str, tag: str = "div") -> RenderResult:
    """
    Render a view for a plain HTTP request.

    Returns:
        RenderResult with the container markup, or with ``redirect`` set when
        mount or handle_params navigated away

    Raises:
        RouteNotFoundError: if no view is registered for ``url``
    """
    match = router.resolve(url)
    view_id = f"phx-{uuid.uuid4()}"
    view = match.factory()
    ctx = ViewContext(view_id, url, csrf_token)

    call_handler_sync(
        view.mount,
        ctx,
        {
            "type": "mount",
            "_csrf_token": csrf_token,
            "_mounts": -1,
            "params": match.params,
            "query": match.query,
        },
    )
    redirect_url = ctx._take_redirect()
    if redirect_url:
        return RenderResult("", redirect_url, view_id, ctx.page_title)

    call_handler_sync(view.handle_params, ctx, url)
    redirect_url = ctx._take_redirect()
    if redirect_url:
        return RenderResult("", redirect_url, view_id, ctx.page_title)

    meta = RenderMeta(
        csrf_token=csrf_token,
        uploads=ctx.upload_configs,
        component=ctx.component,
        flash=ctx.flash,
    )
    template = call_handler_sync(view.render, meta)
    preload_components(template)
    markup = tree_to_html(to_tree(template, True, ctx.component))

    container = html(
        '<{tag} data-phx-main="true" data-phx-session="" data-phx-static="" id="{id}">{content}</{tag}>',
        tag=safe(tag),
        id=view_id,
        content=safe(markup),
    )
    return RenderResult(str(container), None, view_id, ctx.page_title)


class LivePageView(View):
    """
    Django view serving the first paint of a live view.

    The CSRF token the websocket join must echo is generated once per
    Django session and stored under ``csrf_session_key``.

    Example::

        urlpatterns = [
            re_path(r"^.*$", LivePageView.as_view(router=router)),
        ]

    Attributes:
        router: LiveRouter resolving request paths
        template_name: Optional Django template; rendered with ``content``,
            ``csrf_token`` and ``title``
        wrapper: Optional callable wrapping the view markup (a Template)
            before it is placed in the page, e.g. to add a layout
    """

    router: LiveRouter = None
    template_name: Optional[str] = None
    wrapper: Optional[Callable[[Template], Template]] = None
    tag = "div"

    def get_csrf_token(self, request) -> str:
        key = djlive_config.get("csrf_session_key")
        token = request.session.get(key)
        if not token:
            token = secrets.token_urlsafe(32)
            request.session[key] = token
        return token

    def get_context_data(self, content: str, csrf_token: str, title: str) -> Dict[str, Any]:
        return {"content": content, "csrf_token": csrf_token, "title": title}

    def get(self, request, *args, **kwargs):
        csrf_token = self.get_csrf_token(request)
        try:
            result = render_view(self.router, request.get_full_path(), csrf_token, self.tag)
        except RouteNotFoundError as e:
            raise Http404(str(e)) from e

        if result.redirect:
            return HttpResponseRedirect(result.redirect)

        content = safe(result.html)
        if self.wrapper is not None:
            content = self.wrapper(content)

        context = self.get_context_data(str(content), csrf_token, result.title)
        if self.template_name:
            return HttpResponse(render_to_string(self.template_name, context, request=request))
        page = html(
            DEFAULT_PAGE,
            csrf_token=csrf_token,
            title=result.title,
            content=safe(context["content"]),
        )
        return HttpResponse(str(page))
