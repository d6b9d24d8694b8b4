"""
Per-session table of stateful components.
"""

import logging
from typing import Dict, Iterator, Optional

from .base import Component

logger = logging.getLogger(__name__)


class ComponentRegistry:
    """
    Stateful components owned by one live session.

    Components are keyed by ``"<hash>_<id>"`` and get sequential cids
    starting at 1 in the order they are first rendered. Instances live
    until the session tears down.
    """

    def __init__(self):
        self._by_key: Dict[str, Component] = {}
        self._by_cid: Dict[int, Component] = {}
        self._cid_index = 0

    def get(self, key: str) -> Optional[Component]:
        return self._by_key.get(key)

    def get_by_cid(self, cid) -> Optional[Component]:
        try:
            return self._by_cid.get(int(cid))
        except (TypeError, ValueError):
            return None

    def register(self, component: Component) -> int:
        """Assign the next cid to a component and start tracking it."""
        self._cid_index += 1
        component.cid = self._cid_index
        self._by_key[component.key] = component
        self._by_cid[component.cid] = component
        logger.debug(
            "Registered component %s id=%s as cid %d",
            type(component).__name__,
            component.id,
            component.cid,
        )
        return component.cid

    def values(self):
        return list(self._by_key.values())

    def clear(self) -> None:
        self._by_key.clear()
        self._by_cid.clear()

    def __iter__(self) -> Iterator[Component]:
        return iter(self.values())

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: str) -> bool:
        return key in self._by_key
