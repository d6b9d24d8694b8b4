"""
Tests for the live router and the HTTP first paint.
"""

import re

import pytest
from django.contrib.sessions.middleware import SessionMiddleware
from django.http import Http404
from django.test import RequestFactory

from djlive import Component, LiveRouter, LiveView, html
from djlive.exceptions import RouteNotFoundError
from djlive.http import LivePageView, render_view


class HelloView(LiveView):
    def mount(self, ctx, event):
        self.name = event["query"].get("name", "world")
        ctx.page_title = "Hello"

    def render(self, meta):
        return html(
            '<p>Hello {0}</p><input type="hidden" name="_csrf_token" value="{1}">',
            self.name,
            meta.csrf_token,
        )


class GuardedView(LiveView):
    def mount(self, ctx, event):
        ctx.redirect("/login")

    def render(self, meta):
        return html("secret")


class PatchingView(LiveView):
    def handle_params(self, ctx, url):
        ctx.push_redirect("/other")

    def render(self, meta):
        return html("never")


class Stars(Component):
    batches = []

    def __init__(self, count, id=None):
        super().__init__(id=id)
        self.count = count

    def preload(self, components):
        Stars.batches.append(len(components))
        return components

    def render(self):
        return html("<i>{0}</i>", "*" * self.count)


class StarsView(LiveView):
    def render(self, meta):
        return html("<div>{0}{1}{2}</div>", Stars(1), Stars(2), meta.component(Stars(3, id="s")))


@pytest.fixture
def router():
    router = LiveRouter()
    router.register("hello/", HelloView)
    router.register("guarded/", GuardedView)
    router.register("patching/", PatchingView)
    router.register("stars/", StarsView)
    return router


def session_request(path):
    request = RequestFactory().get(path)
    SessionMiddleware(lambda r: None).process_request(request)
    return request


class TestLiveRouter:
    def test_resolves_params_and_query(self):
        router = LiveRouter()
        router.register("items/<int:item_id>/<slug:slug>/", HelloView)
        match = router.resolve("http://testserver/items/4/blue-pen/?sort=asc&page=2")
        assert match.factory is HelloView
        assert match.params == {"item_id": 4, "slug": "blue-pen"}
        assert match.query == {"sort": "asc", "page": "2"}
        assert match.route == "items/<int:item_id>/<slug:slug>/"

    def test_leading_slash_optional(self):
        router = LiveRouter()
        router.register("/hello/", HelloView)
        assert router.resolve("/hello/").factory is HelloView

    def test_root_route(self):
        router = LiveRouter()
        router.register("", HelloView)
        assert router.resolve("/").factory is HelloView

    def test_first_match_wins(self):
        class Other(HelloView):
            pass

        router = LiveRouter()
        router.register("a/", HelloView)
        router.register("a/", Other)
        assert router.resolve("/a/").factory is HelloView

    def test_not_found(self):
        router = LiveRouter()
        router.register("hello/", HelloView)
        with pytest.raises(RouteNotFoundError):
            router.resolve("/hello/extra/")

    def test_decorator_registration(self):
        router = LiveRouter()

        @router.register("deco/")
        class DecoView(HelloView):
            pass

        assert router.resolve("/deco/").factory is DecoView
        assert len(router) == 1


class TestRenderView:
    def test_renders_container_with_escaped_values(self, router):
        result = render_view(router, "/hello/?name=<b>", "tok")
        assert result.redirect is None
        assert result.title == "Hello"
        assert result.view_id.startswith("phx-")
        assert result.html == (
            f'<div data-phx-main="true" data-phx-session="" data-phx-static="" id="{result.view_id}">'
            '<p>Hello &lt;b&gt;</p><input type="hidden" name="_csrf_token" value="tok"></div>'
        )

    def test_redirect_from_mount(self, router):
        result = render_view(router, "/guarded/", "tok")
        assert result.redirect == "/login"
        assert result.html == ""

    def test_push_redirect_from_handle_params(self, router):
        assert render_view(router, "/patching/", "tok").redirect == "/other"

    def test_components_render_inline_and_preload_once(self, router):
        Stars.batches = []
        result = render_view(router, "/stars/", "tok")
        assert "<div><i>*</i><i>**</i><i>***</i></div>" in result.html
        assert Stars.batches == [2]


class TestLivePageView:
    def test_issues_and_reuses_csrf_token(self, router):
        view = LivePageView.as_view(router=router)
        request = session_request("/hello/")
        response = view(request)

        token = request.session["djlive_csrf_token"]
        assert response.status_code == 200
        content = response.content.decode()
        assert f'<meta name="csrf-token" content="{token}" />' in content
        assert "<title>Hello</title>" in content
        assert re.search(r'data-phx-main="true"[^>]*id="phx-', content)

        view(request)
        assert request.session["djlive_csrf_token"] == token

    def test_redirect(self, router):
        response = LivePageView.as_view(router=router)(session_request("/guarded/"))
        assert response.status_code == 302
        assert response["Location"] == "/login"

    def test_unknown_route_is_404(self, router):
        with pytest.raises(Http404):
            LivePageView.as_view(router=router)(session_request("/nope/"))

    def test_wrapper(self, router):
        view = LivePageView.as_view(router=router, wrapper=lambda content: html("<main>{0}</main>", content))
        content = view(session_request("/hello/")).content.decode()
        assert "<body><main><div data-phx-main" in content
