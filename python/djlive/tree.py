"""
Parts tree serialization.

A Template is flattened into the JSON "parts tree" the Phoenix client
understands: dynamics keyed by their decimal index, the level's statics
under ``s``. The same tree drives the first HTTP paint (via tree_to_html)
and every later diff, so both paths share one wire model.

    >>> to_tree(html("<h3>{count}</h3>", count=0))
    {'0': '0', 's': ['<h3>', '</h3>']}
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .components.base import Component
from .exceptions import LiveViewError
from .template import ComponentRef, Template, escape_html

logger = logging.getLogger(__name__)

# Statics for list-rendered collections; rows carry their own statics.
LIST_STATICS = ["", ""]

ComponentResolver = Callable[[Component], Any]


def to_tree(
    template: Template,
    include_statics: bool = True,
    resolve_component: Optional[ComponentResolver] = None,
) -> Dict[str, Any]:
    """
    Serialize a Template into a parts tree.

    Args:
        template: The render result to serialize
        include_statics: Attach the level's statics under ``s``
        resolve_component: Called with each embedded Component instance; returns
            the Template (stateless) or ComponentRef (stateful) to emit in its place

    Returns:
        The parts tree for this level
    """
    tree: Dict[str, Any] = {}
    for index, dynamic in enumerate(template.dynamics):
        tree[str(index)] = _serialize(dynamic, resolve_component)
    if include_statics:
        tree["s"] = list(template.statics)
    return tree


def _resolve(component: Component, resolve_component: Optional[ComponentResolver]):
    if resolve_component is None:
        raise LiveViewError(
            f"Cannot serialize component {type(component).__name__} without a resolver",
            "\n    Render components through meta.component(...) inside render().",
        )
    return resolve_component(component)


def _serialize(value: Any, resolve_component: Optional[ComponentResolver]) -> Any:
    if isinstance(value, Component):
        value = _resolve(value, resolve_component)

    if isinstance(value, ComponentRef):
        return value.cid
    if isinstance(value, Template):
        if len(value.statics) == 1:
            return value.statics[0]
        return to_tree(value, True, resolve_component)
    if isinstance(value, (list, tuple)):
        if not value:
            return ""
        if isinstance(value[0], (Template, ComponentRef, Component)):
            rows = [[_serialize_row(item, resolve_component)] for item in value]
            return {"d": rows, "s": list(LIST_STATICS)}
        return "".join(escape_html(item) for item in value)
    return escape_html(value)


def _serialize_row(item: Any, resolve_component: Optional[ComponentResolver]) -> Any:
    if isinstance(item, Component):
        item = _resolve(item, resolve_component)
    if isinstance(item, ComponentRef):
        return item.cid
    if isinstance(item, Template):
        return to_tree(item, True, resolve_component)
    return _serialize(item, resolve_component)


def collect_components(template: Template) -> List[Component]:
    """Component instances embedded anywhere in a template, in render order."""
    found: List[Component] = []

    def walk(value):
        if isinstance(value, Component):
            found.append(value)
        elif isinstance(value, Template):
            for dynamic in value.dynamics:
                walk(dynamic)
        elif isinstance(value, (list, tuple)):
            for item in value:
                walk(item)

    walk(template)
    return found


def preload_components(
    template: Template, instance_for: Optional[Callable[[Component], Component]] = None
) -> None:
    """
    Call ``preload`` once per component class with all of its instances.

    ``instance_for`` maps an embedded component to the instance that will
    actually render it, e.g. the stored instance of a stateful component.
    """
    by_class: Dict[type, List[Component]] = {}
    seen = set()
    for component in collect_components(template):
        if instance_for is not None:
            component = instance_for(component)
        if id(component) in seen:
            continue
        seen.add(id(component))
        by_class.setdefault(type(component), []).append(component)
    for components in by_class.values():
        components[0].preload(components)


def tree_to_html(tree: Dict[str, Any], components: Optional[Dict[str, Any]] = None) -> str:
    """
    Rebuild markup from a full parts tree.

    Integer parts are component references looked up in ``components``
    (defaults to the tree's own ``c`` key).
    """
    if components is None:
        components = tree.get("c", {})
    return _render_level(tree, components)


def _render_level(tree: Dict[str, Any], components: Dict[str, Any]) -> str:
    statics = tree.get("s", [""])
    out = [statics[0]]
    for index, static in enumerate(statics[1:]):
        out.append(_render_part(tree.get(str(index), ""), components))
        out.append(static)
    return "".join(out)


def _render_part(part: Any, components: Dict[str, Any]) -> str:
    if isinstance(part, bool):
        return "true" if part else "false"
    if isinstance(part, int):
        component_tree = components.get(str(part))
        if component_tree is None:
            logger.warning("Parts tree references unknown component cid %s", part)
            return ""
        return _render_level(component_tree, components)
    if isinstance(part, dict):
        if "d" in part:
            statics = part.get("s", LIST_STATICS)
            out = []
            for row in part["d"]:
                out.append(statics[0])
                for index, static in enumerate(statics[1:]):
                    value = row[index] if index < len(row) else ""
                    out.append(_render_part(value, components))
                    out.append(static)
            return "".join(out)
        return _render_level(part, components)
    return str(part)
