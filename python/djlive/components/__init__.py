"""
djlive components: reusable, optionally stateful pieces of a view's render.
"""

from .base import Component, ComponentContext, hash_component, render_offline
from .registry import ComponentRegistry

__all__ = [
    "Component",
    "ComponentContext",
    "ComponentRegistry",
    "hash_component",
    "render_offline",
]
