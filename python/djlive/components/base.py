"""
Base class for djlive components.

A component is a reusable piece of a view's render output. Components
without an ``id`` are stateless: they are mounted, updated and rendered
every time the view embeds them and their markup is inlined into the
view's tree. Components with an ``id`` are stateful: the session keeps
the instance between renders, mounts it once, and the view's tree only
carries the component's numeric ``cid`` while the component's own tree
travels under the ``c`` key.
"""

import hashlib
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple, Union

from ..exceptions import LiveViewError

logger = logging.getLogger(__name__)

# Sources that make up a component's identity, in hashing order.
_HASHED_MEMBERS = ("__init__", "mount", "update", "render", "handle_event")


def _noop(*args, **kwargs) -> None:
    return None


@dataclass
class ComponentContext:
    """
    What a component sees of its hosting view.

    Attributes:
        parent_id: Id of the view (topic) hosting the component
        connected: True over a live websocket, False during the HTTP render
        dispatch_event: Queue an ``info`` message for the parent view
        push_event: Queue a client-side event for the next reply
    """

    parent_id: str
    connected: bool = False
    dispatch_event: Callable[[Any], Any] = field(default=_noop)
    push_event: Callable[[Any], Any] = field(default=_noop)


def input_names(cls: type) -> Tuple[str, ...]:
    """Constructor parameters of a component class, other than ``id``."""
    try:
        parameters = inspect.signature(cls.__init__).parameters.values()
    except (TypeError, ValueError):
        return ()
    return tuple(
        p.name
        for p in parameters
        if p.name not in ("self", "id") and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
    )


def _source_of(obj) -> str:
    try:
        return inspect.getsource(obj)
    except (OSError, TypeError):
        return getattr(obj, "__qualname__", "")


def hash_component(component: "Component") -> str:
    """
    SHA-1 of the component's class and lifecycle method sources.

    Two instances of the same class hash identically, so the hash plus the
    instance ``id`` identifies a stateful component across renders.
    """
    cls = type(component)
    code = _source_of(cls)
    for name in _HASHED_MEMBERS:
        member = getattr(cls, name, None)
        if member is not None:
            code += _source_of(member)
    if not code:
        raise LiveViewError(f"Cannot hash an empty Component: {cls!r}")
    return hashlib.sha1(code.encode("utf-8")).hexdigest()


class Component(ABC):
    """
    Base class for live components.

    Usage:
        class Toggle(Component):
            def __init__(self, label, id=None):
                super().__init__(id=id)
                self.label = label
                self.on = False

            def handle_event(self, ctx, event):
                if event["type"] == "toggle":
                    self.on = not self.on

            def render(self):
                return html(
                    '<button phx-click="toggle" phx-target="{cid}">{label}: {state}</button>',
                    cid=self.cid, label=self.label, state="on" if self.on else "off",
                )

    ``handle_event`` is optional; define it only on components that take
    events. Only components with an ``id`` can receive them.
    """

    id: Optional[Union[str, int]] = None
    cid: Optional[int] = None
    _hash: Optional[str] = None

    def __init__(self, id: Optional[Union[str, int]] = None):
        self.id = id
        self.cid: Optional[int] = None
        self._hash: Optional[str] = None

    @property
    def stateful(self) -> bool:
        return self.id is not None and self.id != ""

    @property
    def hash(self) -> str:
        if self._hash is None:
            self._hash = hash_component(self)
        return self._hash

    @property
    def key(self) -> str:
        """Identity of a stateful component within a session."""
        return f"{self.hash}_{self.id}"

    def receive(self, incoming: "Component") -> None:
        """
        Take the inputs of a newly constructed instance with the same key.

        Runs on the stored instance of a stateful component each time the
        view embeds it again, before ``update``. Inputs are the constructor
        parameters other than ``id``; attributes under other names are state
        and are kept. Override to merge inputs differently.
        """
        if incoming is self:
            return
        values = vars(incoming)
        for name in input_names(type(self)):
            if name in values:
                setattr(self, name, values[name])

    def preload(self, components: List["Component"]) -> List["Component"]:
        """
        Batch-load data for every component of this class in a render.

        Called once per class with all instances before the first paint.
        """
        return components

    def mount(self, ctx: ComponentContext) -> None:
        pass

    def update(self, ctx: ComponentContext) -> None:
        pass

    def shutdown(self) -> None:
        pass

    @abstractmethod
    def render(self):
        """Return the component's Template."""


def accepts_events(component: Component) -> bool:
    return callable(getattr(component, "handle_event", None))


def render_offline(component: Component, ctx: Optional[ComponentContext] = None):
    """Run the full mount, update, render lifecycle outside a live session."""
    if ctx is None:
        ctx = ComponentContext(parent_id="", connected=False)
    component.mount(ctx)
    component.update(ctx)
    return component.render()
