"""
Parts tree diffing.

deep_diff() computes what the server sends after a re-render; apply_diff()
is the client-side merge of such a diff into the tree the client holds,
used by the test client to reconstruct the markup a browser would show.
"""

import copy
from typing import Any, Dict

Tree = Dict[str, Any]

# Keys the session adds next to a diff; the client consumes them and never stores them.
TRANSIENT_KEYS = ("e", "t")


def _is_parts_tree(value: Any) -> bool:
    return isinstance(value, dict) and "d" not in value


def deep_diff(previous: Tree, nxt: Tree) -> Tree:
    """
    Minimal tree that turns ``previous`` into ``nxt``.

    Unchanged keys are omitted, ``s`` included. When the statics of a level
    differ the whole level of ``nxt`` is returned so the client rebuilds it.
    Keys absent from ``nxt`` are not reported; the client keeps what it has.
    Comprehensions (``d``), component references and any other non-tree
    value are compared as opaque values.

    Args:
        previous: The last full tree sent to the client
        nxt: The freshly serialized full tree

    Returns:
        The diff tree, ``{}`` when nothing changed
    """
    if previous == nxt:
        return {}
    if previous.get("s") != nxt.get("s"):
        return nxt

    diff: Tree = {}
    for key, value in nxt.items():
        if key == "s":
            continue
        if key not in previous:
            diff[key] = value
            continue
        before = previous[key]
        if before == value:
            continue
        if _is_parts_tree(before) and _is_parts_tree(value):
            nested = deep_diff(before, value)
            if nested:
                diff[key] = nested
        else:
            diff[key] = value
    return diff


def _merge(tree: Tree, diff: Tree) -> Tree:
    if "s" in diff:
        return copy.deepcopy(diff)
    merged = dict(tree)
    for key, value in diff.items():
        current = merged.get(key)
        if _is_parts_tree(value) and _is_parts_tree(current):
            merged[key] = _merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_diff(tree: Tree, diff: Tree) -> Tree:
    """
    Merge a diff (or a full render) into a client-held tree.

    Component trees under ``c`` merge per cid; ``e`` and ``t`` are dropped.
    The input tree is not mutated.
    """
    diff = {key: value for key, value in diff.items() if key not in TRANSIENT_KEYS}
    components = diff.pop("c", None)

    merged = _merge(tree, diff) if diff else dict(tree)
    if "c" in tree and "c" not in merged:
        merged["c"] = tree["c"]

    if components:
        current = dict(merged.get("c", {}))
        for cid, component_diff in components.items():
            current[cid] = _merge(current.get(cid, {}), component_diff)
        merged["c"] = current
    return merged
