"""
Decoding and dispatch of client ``event`` messages.

Payload shapes sent by the Phoenix client::

    {"type": "click", "event": "inc", "value": {"value": ""}}
    {"type": "keyup", "event": "search", "value": {"key": "a", "value": "foo"}}
    {"type": "form", "event": "save", "value": "name=a&_target=name", "uploads": {...}}
    {"type": "hook", "event": "edit", "value": {"id": "abc"}}

A ``cid`` key targets a stateful component instead of the view.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Union

from asgiref.sync import sync_to_async
from django.http import QueryDict

from .components.base import ComponentContext, accepts_events
from .exceptions import (
    ComponentEventError,
    ComponentNotFoundError,
    ComponentNotStatefulError,
    CSRFMismatchError,
    LiveViewError,
)
from .security import sanitize_for_log
from .template import Template
from .tree import to_tree
from .uploads import UploadEntry
from .utils import call_handler

if TYPE_CHECKING:
    from .context import LiveViewContext
    from .handler import LiveSession

logger = logging.getLogger(__name__)

VALUE_EVENT_TYPES = ("click", "keyup", "keydown", "blur", "focus", "hook")
FORM_EVENT_TYPE = "form"
CLEAR_FLASH_EVENT = "lv:clear-flash"


def _apply_form_uploads(ctx: "LiveViewContext", value: Dict[str, Any], uploads: Dict[str, Any]) -> None:
    target = value.get("_target")
    if not target or target not in ctx.upload_configs:
        return
    upload_config = ctx.upload_configs[target]
    if upload_config.ref in uploads:
        upload_config.set_entries(
            [UploadEntry.from_client(upload, upload_config) for upload in uploads[upload_config.ref]]
        )


def decode_event_value(ctx: "LiveViewContext", payload: Dict[str, Any]) -> Union[Dict[str, Any], str, int, float]:
    """
    Extract the event's values from a typed payload.

    Form payloads are URL-decoded, checked against the session CSRF token
    and may replace the entries of the upload config named by ``_target``.

    Raises:
        CSRFMismatchError: if a form carries a different ``_csrf_token``
        LiveViewError: for an unknown payload type
    """
    event_type = payload.get("type")

    if event_type in VALUE_EVENT_TYPES:
        value = payload.get("value")
        return {} if value is None else value

    if event_type == FORM_EVENT_TYPE:
        value = QueryDict(payload.get("value") or "").dict()
        if "_csrf_token" in value:
            if value["_csrf_token"] != ctx.csrf_token:
                raise CSRFMismatchError()
        else:
            logger.warning(
                "Form event %s has no _csrf_token value; render meta.csrf_token into a "
                'hidden input named "_csrf_token"',
                sanitize_for_log(payload.get("event")),
            )
        uploads = payload.get("uploads")
        if uploads:
            _apply_form_uploads(ctx, value, uploads)
        return value

    raise LiveViewError(f"Unknown event type: {sanitize_for_log(event_type)}")


def _component_event(component, cctx: ComponentContext, event: Dict[str, Any], resolve) -> Dict[str, Any]:
    component.handle_event(cctx, event)
    component.update(cctx)
    return to_tree(component.render(), True, resolve)


async def handle_event(session: "LiveSession", payload: Dict[str, Any]) -> Union[Template, Dict[str, Any]]:
    """
    Run a client event against the view or a targeted component.

    Returns:
        The view's new Template, or ``{"c": {"<cid>": tree}}`` when a
        component handled the event
    """
    ctx = session.ctx
    view = session.view
    event_name = payload.get("event")
    cid = payload.get("cid")

    value = decode_event_value(ctx, payload)

    if event_name == CLEAR_FLASH_EVENT:
        key = value.get("key") if isinstance(value, dict) else None
        ctx.clear_flash(key)
        return await call_handler(view.render, session.meta())

    if not isinstance(value, dict):
        value = {"value": value}
    event = {**value, "type": event_name}

    if cid is None or cid == "":
        await call_handler(view.handle_event, ctx, event)
        return await call_handler(view.render, session.meta())

    component = session.components.get_by_cid(cid)
    if component is None:
        raise ComponentNotFoundError(cid)
    if not component.stateful:
        raise ComponentNotStatefulError(type(component).__name__)
    if not accepts_events(component):
        raise ComponentEventError(type(component).__name__, component.id)

    cctx = ComponentContext(
        parent_id=ctx.id,
        connected=True,
        dispatch_event=ctx.dispatch_event,
        push_event=ctx.push_event,
    )
    tree = await sync_to_async(_component_event)(component, cctx, event, ctx.component)
    return {"c": {str(component.cid): tree}}
