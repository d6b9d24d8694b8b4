"""
Tests for parts tree serialization and markup rebuilding.
"""

import pytest

from djlive.components import Component
from djlive.exceptions import LiveViewError
from djlive.template import ComponentRef, html, safe
from djlive.tree import collect_components, preload_components, to_tree, tree_to_html


class Badge(Component):
    preloaded = []

    def __init__(self, label, id=None):
        super().__init__(id=id)
        self.label = label

    def preload(self, components):
        Badge.preloaded.append([c.label for c in components])
        return components

    def render(self):
        return html("<span>{0}</span>", self.label)


class TestToTree:
    def test_simple(self):
        assert to_tree(html("<h3>{count}</h3>", count=0)) == {"0": "0", "s": ["<h3>", "</h3>"]}

    def test_without_statics(self):
        assert to_tree(html("<h3>{0}</h3>", 1), include_statics=False) == {"0": "1"}

    def test_escapes_literals(self):
        assert to_tree(html("<p>{0}</p>", "<b>")) == {"0": "&lt;b&gt;", "s": ["<p>", "</p>"]}

    def test_booleans_and_none(self):
        tree = to_tree(html("{0}{1}{2}", True, False, None))
        assert [tree["0"], tree["1"], tree["2"]] == ["true", "false", ""]

    def test_nested_template(self):
        tree = to_tree(html("<div>{0}</div>", html("<i>{0}</i>", "x")))
        assert tree == {"0": {"0": "x", "s": ["<i>", "</i>"]}, "s": ["<div>", "</div>"]}

    def test_single_static_template_collapses_to_string(self):
        tree = to_tree(html("<div>{0}</div>", safe("<hr>")))
        assert tree["0"] == "<hr>"

    def test_empty_list(self):
        assert to_tree(html("<ul>{0}</ul>", []))["0"] == ""

    def test_list_of_literals_joins_escaped(self):
        assert to_tree(html("{0}", ["a", "<", 1]))["0"] == "a&lt;1"

    def test_list_of_templates_becomes_rows(self):
        items = [html("<li>{0}</li>", name) for name in ("a", "b")]
        tree = to_tree(html("<ul>{0}</ul>", items))
        assert tree["0"] == {
            "d": [
                [{"0": "a", "s": ["<li>", "</li>"]}],
                [{"0": "b", "s": ["<li>", "</li>"]}],
            ],
            "s": ["", ""],
        }

    def test_component_refs_serialize_to_cid(self):
        assert to_tree(html("<div>{0}</div>", ComponentRef(2)))["0"] == 2

    def test_list_of_component_refs(self):
        tree = to_tree(html("{0}", [ComponentRef(1), ComponentRef(2)]))
        assert tree["0"] == {"d": [[1], [2]], "s": ["", ""]}

    def test_component_uses_resolver(self):
        tree = to_tree(html("<div>{0}</div>", Badge("new")), True, lambda c: c.render())
        assert tree["0"] == {"0": "new", "s": ["<span>", "</span>"]}

    def test_component_without_resolver_raises(self):
        with pytest.raises(LiveViewError):
            to_tree(html("<div>{0}</div>", Badge("new")))


class TestPreload:
    def test_collects_nested_components(self):
        a, b = Badge("a"), Badge("b")
        template = html("{0}{1}", a, html("<p>{0}</p>", [b]))
        assert collect_components(template) == [a, b]

    def test_preload_called_once_per_class(self):
        Badge.preloaded = []
        preload_components(html("{0}{1}", Badge("a"), [Badge("b")]))
        assert Badge.preloaded == [["a", "b"]]


class TestTreeToHtml:
    def test_roundtrips_markup(self):
        template = html("<p class='{0}'>{1}</p>", "x", html("<b>{0}</b>", 2))
        assert tree_to_html(to_tree(template)) == "<p class='x'><b>2</b></p>"

    def test_renders_rows(self):
        items = [html("<li>{0}</li>", n) for n in (1, 2)]
        assert tree_to_html(to_tree(html("<ul>{0}</ul>", items))) == "<ul><li>1</li><li>2</li></ul>"

    def test_renders_components_from_c(self):
        tree = to_tree(html("<div>{0}</div>", ComponentRef(1)))
        tree["c"] = {"1": {"0": "on", "s": ["<button>", "</button>"]}}
        assert tree_to_html(tree) == "<div><button>on</button></div>"

    def test_unknown_component_renders_empty(self):
        tree = to_tree(html("<div>{0}</div>", ComponentRef(9)))
        assert tree_to_html(tree) == "<div></div>"
