"""
Tests for the JS command builder.
"""

import json

import pytest

from djlive import JS, html
from djlive.js import transition_body
from djlive.tree import to_tree


class TestTransitions:
    def test_none(self):
        assert transition_body(None) == [[], [], []]

    def test_class_string(self):
        assert transition_body("fade  slow") == [["fade", "slow"], [], []]

    def test_triple(self):
        assert transition_body(("ease-out duration-300", "opacity-0", "opacity-100")) == [
            ["ease-out", "duration-300"],
            ["opacity-0"],
            ["opacity-100"],
        ]

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            transition_body(("a", "b"))


class TestJS:
    def test_push_serializes_only_given_options(self):
        assert str(JS().push("inc")) == '[["push",{"event":"inc"}]]'
        cmds = json.loads(str(JS().push("save", target="#form", value={"id": 1})))
        assert cmds == [["push", {"event": "save", "target": "#form", "value": {"id": 1}}]]

    def test_commands_chain_in_order(self):
        js = JS().add_class("open shown", to="#nav").show(to="#nav", display="flex").focus_first(to="#nav")
        assert json.loads(str(js)) == [
            [
                "add_class",
                {"to": "#nav", "time": 200, "names": ["open", "shown"], "transition": [[], [], []], "blocking": True},
            ],
            ["show", {"to": "#nav", "time": 200, "transition": [[], [], []], "display": "flex"}],
            ["focus_first", {"to": "#nav"}],
        ]

    def test_toggle_transitions(self):
        js = JS().toggle(in_transition="fade-in", out_transition=("ease", "a", "b"), time=50)
        assert js.commands == [
            [
                "toggle",
                {"to": None, "time": 50, "ins": [["fade-in"], [], []], "outs": [["ease"], ["a"], ["b"]], "display": None},
            ]
        ]

    def test_attributes(self):
        js = JS().set_attribute(("aria-expanded", "true"), to="#menu").remove_attribute("hidden")
        js.toggle_attribute("aria-pressed", ("true", "false"))
        assert js.commands == [
            ["set_attr", {"to": "#menu", "attr": ["aria-expanded", "true"]}],
            ["remove_attr", {"to": None, "attr": "hidden"}],
            ["toggle_attr", {"to": None, "attr": "aria-pressed", "value": ["true", "false"]}],
        ]

    def test_dispatch_omits_missing_detail(self):
        assert JS().dispatch("copy").commands == [["dispatch", {"to": None, "event": "copy", "bubbles": True}]]
        assert JS().dispatch("copy", detail={"x": 1}, bubbles=False).commands == [
            ["dispatch", {"to": None, "event": "copy", "detail": {"x": 1}, "bubbles": False}]
        ]

    def test_navigation_and_focus(self):
        js = JS().patch("/a?b=1", replace=True).navigate("/c").pop_focus().push_focus().exec("data-confirm", to="#x")
        assert [kind for kind, _ in js.commands] == ["patch", "navigate", "pop_focus", "push_focus", "exec"]
        assert js.commands[0] == ["patch", {"href": "/a?b=1", "replace": True}]
        assert js.commands[2] == ["pop_focus", {}]

    def test_equality(self):
        assert JS().hide(to="#x") == JS().hide(to="#x")
        assert JS().hide() != JS().show()

    def test_escaped_once_in_attribute(self):
        template = html('<button phx-click="{0}">+</button>', JS().push("inc"))
        expected = "[[&quot;push&quot;,{&quot;event&quot;:&quot;inc&quot;}]]"
        assert str(template) == f'<button phx-click="{expected}">+</button>'
        assert to_tree(template)["0"] == expected
