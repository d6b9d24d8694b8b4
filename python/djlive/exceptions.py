"""
Custom exceptions and error messages for djlive.

Protocol, application and consistency errors raised while a live session
processes messages. Upload validation failures are not exceptions; they are
recorded on the upload entry instead.
"""

from typing import Optional


class LiveViewError(Exception):
    """Base exception for LiveView errors."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


class MalformedTemplateError(LiveViewError):
    """Raised when a Template's statics and dynamics do not interleave."""

    def __init__(self, statics_count: int, dynamics_count: int):
        message = (
            f"Malformed template: {statics_count} static(s) for {dynamics_count} dynamic(s). "
            f"A template needs exactly one more static than dynamics."
        )
        hint = (
            "\n    Build templates with html() so the statics are split for you:\n"
            "        html('<h3>{count}</h3>', count=self.count)"
        )
        super().__init__(message, hint)


class ProtocolError(LiveViewError):
    """Raised when an inbound frame cannot be decoded into a protocol message."""


class UnknownProtocolEventError(ProtocolError):
    """Raised for a protocol event name the session does not handle."""

    def __init__(self, event: str):
        super().__init__(f"Unexpected protocol event: {event}")
        self.event = event


class CSRFMismatchError(LiveViewError):
    """Raised when a form event carries a CSRF token different from the session's."""

    def __init__(self):
        super().__init__(
            "Mismatched CSRF token",
            "\n    Render meta.csrf_token into a hidden input named '_csrf_token'.",
        )


class RouteNotFoundError(LiveViewError):
    """Raised when no registered route matches a join URL."""

    def __init__(self, url: str):
        super().__init__(f"No view found for {url}")
        self.url = url


class ViewNotJoinedError(LiveViewError):
    """Raised when a message needing a mounted view arrives before a join."""

    def __init__(self, event: str):
        super().__init__(f"Received '{event}' before the view was joined")


class ComponentNotFoundError(LiveViewError):
    """Raised when an event targets a cid with no registered component."""

    def __init__(self, cid):
        super().__init__(f"Could not find component for cid:{cid}")
        self.cid = cid


class ComponentNotStatefulError(LiveViewError):
    """Raised when an event targets a component that has no id."""

    def __init__(self, component_name: str):
        message = (
            f'Component "{component_name}" has no id and therefore is not stateful '
            f"and cannot handle events"
        )
        hint = "\n    Pass an id when constructing the component: Toggle(id='toggle-1')"
        super().__init__(message, hint)


class ComponentEventError(LiveViewError):
    """Raised when an event targets a stateful component without handle_event()."""

    def __init__(self, component_name: str, component_id):
        super().__init__(
            f'Component "{component_name}" with id:{component_id} has not implemented '
            f"handle_event()"
        )


class UploadConfigNotFoundError(LiveViewError):
    """Raised when an upload message references an unknown upload config."""

    def __init__(self, ref: str):
        super().__init__(f"Could not find upload config for ref {ref}")
        self.ref = ref


class UploadInProgressError(LiveViewError):
    """Raised when consuming upload entries while some are still uploading."""

    def __init__(self, name: str):
        super().__init__(
            "Cannot consume entries while uploads are still in progress",
            f"\n    Check ctx.uploaded_entries('{name}') before consuming.",
        )


# Export all exception classes
__all__ = [
    "LiveViewError",
    "MalformedTemplateError",
    "ProtocolError",
    "UnknownProtocolEventError",
    "CSRFMismatchError",
    "RouteNotFoundError",
    "ViewNotJoinedError",
    "ComponentNotFoundError",
    "ComponentNotStatefulError",
    "ComponentEventError",
    "UploadConfigNotFoundError",
    "UploadInProgressError",
]
