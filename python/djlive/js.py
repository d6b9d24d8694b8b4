"""
Client-side JS commands.

A chainable builder for Phoenix LiveView JS commands. The browser runs
them without a server roundtrip::

    html(
        '<button phx-click="{0}">Menu</button>',
        JS().toggle(to="#menu").push("menu-opened"),
    )

A JS value is interpolated like any other dynamic: its JSON is entity
escaped once and the browser decodes the attribute back to JSON.
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

# A class string, or (transition classes, start classes, end classes)
Transition = Union[str, Sequence[str]]

DEFAULT_TIME = 200


def transition_body(transition: Optional[Transition]) -> List[List[str]]:
    if transition is None:
        return [[], [], []]
    if isinstance(transition, str):
        return [transition.split(), [], []]
    if len(transition) != 3:
        raise ValueError("A transition is a class string or a (transition, start, end) triple")
    return [part.split() for part in transition]


class JS:
    """
    Ordered list of JS commands.

    Every command method appends to this instance and returns it, so
    commands chain: ``JS().add_class("open", to="#nav").focus_first(to="#nav")``.
    """

    def __init__(self, commands: Optional[List[List[Any]]] = None):
        self.commands: List[List[Any]] = list(commands or [])

    def _add(self, kind: str, body: Dict[str, Any]) -> "JS":
        self.commands.append([kind, body])
        return self

    # Navigation

    def patch(self, href: str, replace: bool = False) -> "JS":
        return self._add("patch", {"href": href, "replace": replace})

    def navigate(self, href: str, replace: bool = False) -> "JS":
        return self._add("navigate", {"href": href, "replace": replace})

    # Focus

    def focus(self, to: Optional[str] = None) -> "JS":
        return self._add("focus", {"to": to})

    def focus_first(self, to: Optional[str] = None) -> "JS":
        return self._add("focus_first", {"to": to})

    def pop_focus(self) -> "JS":
        return self._add("pop_focus", {})

    def push_focus(self, to: Optional[str] = None) -> "JS":
        return self._add("push_focus", {"to": to})

    def exec(self, attr: str, to: Optional[str] = None) -> "JS":
        """Run the commands stored in ``attr`` of the target element."""
        return self._add("exec", {"attr": attr, "to": to})

    # Classes

    def _class_command(self, kind, names, to, time, transition, blocking) -> "JS":
        return self._add(
            kind,
            {
                "to": to,
                "time": time,
                "names": names.split(),
                "transition": transition_body(transition),
                "blocking": blocking,
            },
        )

    def add_class(
        self,
        names: str,
        to: Optional[str] = None,
        time: int = DEFAULT_TIME,
        transition: Optional[Transition] = None,
        blocking: bool = True,
    ) -> "JS":
        return self._class_command("add_class", names, to, time, transition, blocking)

    def remove_class(
        self,
        names: str,
        to: Optional[str] = None,
        time: int = DEFAULT_TIME,
        transition: Optional[Transition] = None,
        blocking: bool = True,
    ) -> "JS":
        return self._class_command("remove_class", names, to, time, transition, blocking)

    def toggle_class(
        self,
        names: str,
        to: Optional[str] = None,
        time: int = DEFAULT_TIME,
        transition: Optional[Transition] = None,
        blocking: bool = True,
    ) -> "JS":
        return self._class_command("toggle_class", names, to, time, transition, blocking)

    # Visibility

    def show(
        self,
        to: Optional[str] = None,
        time: int = DEFAULT_TIME,
        transition: Optional[Transition] = None,
        display: Optional[str] = None,
    ) -> "JS":
        return self._add(
            "show",
            {"to": to, "time": time, "transition": transition_body(transition), "display": display},
        )

    def hide(
        self,
        to: Optional[str] = None,
        time: int = DEFAULT_TIME,
        transition: Optional[Transition] = None,
    ) -> "JS":
        return self._add("hide", {"to": to, "time": time, "transition": transition_body(transition)})

    def toggle(
        self,
        to: Optional[str] = None,
        time: int = DEFAULT_TIME,
        in_transition: Optional[Transition] = None,
        out_transition: Optional[Transition] = None,
        display: Optional[str] = None,
    ) -> "JS":
        return self._add(
            "toggle",
            {
                "to": to,
                "time": time,
                "ins": transition_body(in_transition),
                "outs": transition_body(out_transition),
                "display": display,
            },
        )

    def transition(self, transition: Transition, to: Optional[str] = None, time: int = DEFAULT_TIME) -> "JS":
        return self._add("transition", {"to": to, "time": time, "transition": transition_body(transition)})

    # Attributes

    def set_attribute(self, attr: Tuple[str, str], to: Optional[str] = None) -> "JS":
        name, value = attr
        return self._add("set_attr", {"to": to, "attr": [name, value]})

    def remove_attribute(self, attr: str, to: Optional[str] = None) -> "JS":
        return self._add("remove_attr", {"to": to, "attr": attr})

    def toggle_attribute(
        self, attr: str, value: Union[str, Tuple[str, str]], to: Optional[str] = None
    ) -> "JS":
        """Set or remove ``attr``, or flip it between the two values of a pair."""
        if not isinstance(value, str):
            value = list(value)
        return self._add("toggle_attr", {"to": to, "attr": attr, "value": value})

    # Events

    def dispatch(
        self,
        event: str,
        to: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
        bubbles: bool = True,
    ) -> "JS":
        body: Dict[str, Any] = {"to": to, "event": event}
        if detail is not None:
            body["detail"] = detail
        body["bubbles"] = bubbles
        return self._add("dispatch", body)

    def push(
        self,
        event: str,
        target: Optional[str] = None,
        loading: Optional[str] = None,
        page_loading: Optional[bool] = None,
        value: Optional[Dict[str, Any]] = None,
    ) -> "JS":
        """Push ``event`` to the server; only the options given are sent."""
        body: Dict[str, Any] = {"event": event}
        options = {"target": target, "loading": loading, "page_loading": page_loading, "value": value}
        body.update((key, option) for key, option in options.items() if option is not None)
        return self._add("push", body)

    def __str__(self) -> str:
        return json.dumps(self.commands, separators=(",", ":"))

    def __repr__(self) -> str:
        return f"JS({self.commands!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, JS) and other.commands == self.commands
