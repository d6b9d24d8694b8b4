"""
Template values for djlive.

A render result is an immutable Template: the literal ``statics`` of the
markup interleaved with the ``dynamics`` that change between renders.

    >>> t = html("<h3>{count}</h3>", count=3)
    >>> t.statics, t.dynamics
    (('<h3>', '</h3>'), (3,))
    >>> str(t)
    '<h3>3</h3>'

A dynamic may be a literal (str, int, float, bool, None), a nested
Template, a ComponentRef produced for a stateful component, a Component
instance resolved while the tree is serialized, or a list of any of these.
"""

import re
import string
from dataclasses import dataclass
from typing import Any, Iterable, Sequence, Tuple

from .exceptions import MalformedTemplateError

ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
    "/": "&#x2F;",
    "`": "&#x60;",
    "=": "&#x3D;",
}

_ENTITY_RE = re.compile("[" + re.escape("".join(ENTITIES)) + "]")

_formatter = string.Formatter()


def to_text(value: Any) -> str:
    """Stringify a literal dynamic without escaping."""
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value)


def escape_html(value: Any) -> str:
    """
    Escape a value for interpolation into markup.

    Templates are already markup and are rendered without escaping; lists
    are escaped element-wise and concatenated.
    """
    if isinstance(value, Template):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "".join(escape_html(item) for item in value)
    return _ENTITY_RE.sub(lambda m: ENTITIES[m.group(0)], to_text(value))


@dataclass(frozen=True)
class ComponentRef:
    """Placeholder emitted in place of a stateful component's markup."""

    cid: int

    def __str__(self) -> str:
        return str(self.cid)


@dataclass(frozen=True)
class Template:
    """
    An immutable render result: ``len(statics) == len(dynamics) + 1``.

    Raises:
        MalformedTemplateError: if the statics and dynamics do not interleave
    """

    statics: Tuple[str, ...]
    dynamics: Tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "statics", tuple(self.statics))
        object.__setattr__(self, "dynamics", tuple(self.dynamics))
        if len(self.statics) != len(self.dynamics) + 1:
            raise MalformedTemplateError(len(self.statics), len(self.dynamics))

    def with_dynamics(self, dynamics: Sequence[Any]) -> "Template":
        """Copy of this template with its dynamics replaced."""
        return Template(self.statics, dynamics)

    def __str__(self) -> str:
        parts = [self.statics[0]]
        for dynamic, static in zip(self.dynamics, self.statics[1:]):
            parts.append(_render_dynamic(dynamic))
            parts.append(static)
        return "".join(parts)

    def __html__(self) -> str:
        return str(self)


def _render_dynamic(value: Any) -> str:
    from .components.base import Component, render_offline

    if isinstance(value, Component):
        return str(render_offline(value))
    if isinstance(value, (list, tuple)):
        return "".join(_render_dynamic(item) for item in value)
    if isinstance(value, ComponentRef):
        return str(value)
    return escape_html(value)


def html(source: str, *args, **kwargs) -> Template:
    """
    Build a Template from a format string.

    Literal text becomes the statics and every replacement field becomes a
    dynamic, so values are escaped at serialization time rather than here.
    Conversions and format specs are applied eagerly::

        html("<li class='{cls}'>{price:.2f}</li>", cls="item", price=3)
    """
    statics = []
    dynamics = []
    current = ""
    auto_index = 0
    for literal, field_name, format_spec, conversion in _formatter.parse(source):
        current += literal
        if field_name is None:
            continue
        statics.append(current)
        current = ""
        if field_name == "" or field_name[0] in ".[":
            field_name = f"{auto_index}{field_name}"
            auto_index += 1
        value, _ = _formatter.get_field(field_name, args, kwargs)
        if conversion:
            value = _formatter.convert_field(value, conversion)
        if format_spec:
            value = format(value, format_spec)
        dynamics.append(value)
    statics.append(current)
    return Template(statics, dynamics)


def safe(value: Any) -> Template:
    """Mark a value as trusted markup that is never escaped."""
    if isinstance(value, Template):
        return value
    return Template((to_text(value),))


def join(items: Iterable[Any], separator: str = "") -> Template:
    """Interleave items with a literal separator."""
    items = list(items)
    if not items:
        return Template(("",))
    statics = [""] + [separator] * (len(items) - 1) + [""]
    return Template(statics, items)
