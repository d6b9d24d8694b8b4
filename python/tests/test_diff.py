"""
Tests for deep_diff and the client-side merge used by the test client.
"""

from djlive.diff import apply_diff, deep_diff
from djlive.template import html
from djlive.tree import to_tree


def tree_of(count, label="n"):
    return to_tree(html("<h3>{0}</h3><p>{1}</p>", count, label))


class TestDeepDiff:
    def test_equal_trees_diff_to_empty(self):
        assert deep_diff(tree_of(1), tree_of(1)) == {}

    def test_changed_dynamic_only(self):
        assert deep_diff(tree_of(1), tree_of(2)) == {"0": "2"}

    def test_statics_never_resent_when_unchanged(self):
        assert "s" not in deep_diff(tree_of(1), tree_of(2, "m"))

    def test_changed_statics_sends_whole_level(self):
        before = to_tree(html("<h3>{0}</h3>", 1))
        after = to_tree(html("<h4>{0}</h4>", 1))
        assert deep_diff(before, after) == after

    def test_nested_levels_recurse(self):
        before = to_tree(html("<div>{0}{1}</div>", html("<i>{0}</i>", 1), "x"))
        after = to_tree(html("<div>{0}{1}</div>", html("<i>{0}</i>", 2), "x"))
        assert deep_diff(before, after) == {"0": {"0": "2"}}

    def test_nested_statics_change(self):
        before = to_tree(html("<div>{0}</div>", html("<i>{0}</i>", 1)))
        after = to_tree(html("<div>{0}</div>", html("<b>{0}</b>", 1)))
        assert deep_diff(before, after) == {"0": {"0": "1", "s": ["<b>", "</b>"]}}

    def test_string_replaced_by_tree(self):
        before = to_tree(html("<div>{0}</div>", ""))
        after = to_tree(html("<div>{0}</div>", html("<i>{0}</i>", 1)))
        assert deep_diff(before, after) == {"0": {"0": "1", "s": ["<i>", "</i>"]}}

    def test_rows_compared_as_whole(self):
        before = to_tree(html("<ul>{0}</ul>", [html("<li>{0}</li>", 1)]))
        after = to_tree(html("<ul>{0}</ul>", [html("<li>{0}</li>", 1), html("<li>{0}</li>", 2)]))
        assert deep_diff(before, after) == {"0": after["0"]}

    def test_from_empty_tree(self):
        after = tree_of(1)
        assert deep_diff({}, after) == after

    def test_removed_keys_not_reported(self):
        assert deep_diff({"0": "a", "1": "b"}, {"0": "a"}) == {}


class TestApplyDiff:
    def test_applying_diff_reproduces_next_tree(self):
        before, after = tree_of(1), tree_of(5, "<x>")
        assert apply_diff(before, deep_diff(before, after)) == after

    def test_does_not_mutate_input(self):
        before = tree_of(1)
        apply_diff(before, {"0": "9"})
        assert before["0"] == "1"

    def test_transient_keys_dropped(self):
        merged = apply_diff(tree_of(1), {"0": "2", "e": [["ping", {}]], "t": "Title"})
        assert "e" not in merged and "t" not in merged
        assert merged["0"] == "2"

    def test_components_merge_per_cid(self):
        tree = dict(tree_of(1), c={"1": {"0": "a", "s": ["<b>", "</b>"]}, "2": {"0": "x", "s": ["", ""]}})
        merged = apply_diff(tree, {"c": {"1": {"0": "b"}}})
        assert merged["c"]["1"] == {"0": "b", "s": ["<b>", "</b>"]}
        assert merged["c"]["2"] == {"0": "x", "s": ["", ""]}

    def test_full_replacement_keeps_components(self):
        tree = dict(tree_of(1), c={"1": {"0": "a", "s": ["", ""]}})
        replacement = to_tree(html("<h1>{0}</h1>", 1))
        merged = apply_diff(tree, replacement)
        assert merged["s"] == ["<h1>", "</h1>"]
        assert merged["c"] == {"1": {"0": "a", "s": ["", ""]}}
