"""
Per-connection live session.

LiveSession owns one joined view and everything reachable from it: the
last parts tree sent to the client, the stateful component table, the
upload configs and the pub/sub subscriptions. It speaks the Phoenix
channel protocol over any transport exposing::

    closed: bool
    async send(text: str) -> int   # > 0 sent, 0 dropped

Inbound messages are handled one at a time in arrival order. Messages the
session synthesizes while handling one (``info`` from dispatch_event,
``live_patch`` from push_patch, ``phx_leave`` from the heartbeat watchdog)
are queued behind it.
"""

import asyncio
import collections
import enum
import logging
import time
from typing import Any, Callable, Dict, Optional, Set
from urllib.parse import urljoin

from asgiref.sync import sync_to_async

from . import protocol
from .components.registry import ComponentRegistry
from .config import config as djlive_config
from .context import LiveViewContext
from .diff import deep_diff
from .events import handle_event
from .exceptions import (
    LiveViewError,
    ProtocolError,
    UnknownProtocolEventError,
    UploadConfigNotFoundError,
    ViewNotJoinedError,
)
from .live_view import RenderMeta
from .mixins import LIVE_PATCH, LIVE_REDIRECT
from .protocol import Message
from .routing import LiveRouter
from .security import sanitize_for_log
from .template import Template, safe
from .tree import preload_components, to_tree
from .uploads import UploadEntry, sign_entry_token, verify_entry_token
from .utils import call_handler

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    UNJOINED = "unjoined"
    JOINED = "joined"
    CLOSED = "closed"


class LiveSession:
    """
    Protocol state machine for one client connection.

    Args:
        transport: Object with ``closed`` and ``async send(text) -> int``
        router: Resolves join URLs to view factories
        csrf_token: Token the client must echo in its join params
        pubsub: Optional object with async subscribe/unsubscribe/publish
        on_error: Called with every error raised while handling a message
        debug: Called with a description of every inbound message
        wrapper_template: Wraps every render, e.g. in a layout with flash markup
        heartbeat_interval: Seconds between watchdog checks
        heartbeat_timeout: Seconds without a heartbeat before the session leaves
    """

    def __init__(
        self,
        transport,
        router: LiveRouter,
        csrf_token: str,
        *,
        pubsub=None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
        debug: Optional[Callable[[str], Any]] = None,
        wrapper_template: Optional[Callable[[Template], Template]] = None,
        heartbeat_interval: Optional[float] = None,
        heartbeat_timeout: Optional[float] = None,
    ):
        self.transport = transport
        self.router = router
        self.csrf_token = csrf_token
        self.pubsub = pubsub
        self.on_error = on_error
        self.debug = debug
        self.wrapper_template = wrapper_template
        self.heartbeat_interval = heartbeat_interval or djlive_config.get("heartbeat_interval")
        self.heartbeat_timeout = heartbeat_timeout or djlive_config.get("heartbeat_timeout")

        self.state = SessionState.UNJOINED
        self.view = None
        self.ctx: Optional[LiveViewContext] = None
        self.join_ref: Optional[str] = None
        self.parts: Dict[str, Any] = {}
        self.components = ComponentRegistry()
        self.subscriptions: Set[str] = set()

        self._queue = collections.deque()
        self._active = False
        self._closing = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()
        self._watchdog: Optional[asyncio.Task] = None
        self._last_heartbeat: Optional[float] = None

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_text(self, text: str) -> None:
        try:
            message = protocol.parse_text(text)
        except ProtocolError as e:
            self._handle_error(e)
            return
        await self.handle_message(message)

    async def handle_binary(self, data: bytes) -> None:
        try:
            message = protocol.parse_binary(data)
        except ProtocolError as e:
            self._handle_error(e)
            return
        await self.handle_message(message)

    async def handle_message(self, message: Message) -> None:
        """
        Queue a message and process the queue unless a message is in flight.

        When a message is already being handled this returns immediately and
        the message runs after it.
        """
        self._loop = asyncio.get_running_loop()
        self._maybe_debug(message)
        self._queue.append(message)
        await self._drain()

    async def _drain(self) -> None:
        if self._active:
            return
        self._active = True
        try:
            while self._queue:
                message = self._queue.popleft()
                try:
                    await self._dispatch(message)
                except Exception as e:
                    self._handle_error(e, message)
        finally:
            self._active = False

    def _enqueue(self, message: Message) -> None:
        self._maybe_debug(message)
        self._queue.append(message)
        if not self._active:
            self._track(self._loop.create_task(self._drain()))

    async def _dispatch(self, message: Message) -> None:
        event = message.event
        if event == "phx_join":
            if message.is_view_topic:
                await self._join_view(message)
            elif message.is_upload_topic:
                await self._join_upload(message)
            else:
                raise ProtocolError(f"Unknown phx_join topic: {message.topic}")
        elif event == "event":
            await self._on_event(message)
        elif event == "info":
            await self._on_info(message)
        elif event == LIVE_PATCH:
            await self._on_live_patch(message)
        elif event == LIVE_REDIRECT:
            await self._on_live_redirect(message)
        elif event == "allow_upload":
            await self._on_allow_upload(message)
        elif event == "progress":
            await self._on_progress(message)
        elif event == "chunk":
            await self._on_chunk(message)
        elif event == "heartbeat":
            self._last_heartbeat = time.monotonic()
            await self.send(protocol.heartbeat_reply(message))
        elif event == "phx_leave":
            await self._teardown()
        else:
            raise UnknownProtocolEventError(event)

    def _require_view(self, message: Message) -> None:
        if self.state is not SessionState.JOINED or self.ctx is None:
            raise ViewNotJoinedError(message.event)

    # ------------------------------------------------------------------
    # Join
    # ------------------------------------------------------------------

    async def _join_view(self, message: Message) -> None:
        payload = message.payload or {}
        url = payload.get("url") or payload.get("redirect")
        if not url:
            raise ProtocolError("Join message must have either a url or redirect property")

        params = payload.get("params") or {}
        if params.get("_csrf_token") != self.csrf_token:
            logger.error("Rejecting join of %s due to mismatched CSRF tokens", message.topic)
            return

        match = self.router.resolve(url)

        if self.state is SessionState.JOINED:
            await self._teardown()
        self._reset()

        view = match.factory()
        ctx = LiveViewContext(self, message.topic, url, self.csrf_token)
        self.view, self.ctx, self.join_ref = view, ctx, message.join_ref

        mount_event = {
            "type": "mount",
            **params,
            "params": match.params,
            "query": match.query,
        }
        await call_handler(view.mount, ctx, mount_event)
        await call_handler(view.handle_params, ctx, ctx.url)
        template = await call_handler(view.render, self.meta())

        parts = await self._full_tree(template)
        self.state = SessionState.JOINED
        await self.send(protocol.rendered_reply(message, parts))

        self._last_heartbeat = time.monotonic()
        self._start_watchdog()

    async def _join_upload(self, message: Message) -> None:
        token = (message.payload or {}).get("token")
        if not token or verify_entry_token(token) is None:
            logger.warning("Upload join on %s without a valid token", message.topic)
        await self.send(protocol.rendered_reply(message, {}))

    def _reset(self) -> None:
        self.parts = {}
        self.components = ComponentRegistry()
        self.subscriptions = set()
        self._closing = False

    # ------------------------------------------------------------------
    # Events and info
    # ------------------------------------------------------------------

    async def _on_event(self, message: Message) -> None:
        self._require_view(message)
        result = await handle_event(self, message.payload or {})

        redirect_url = self.ctx._take_redirect()
        if redirect_url:
            await self.send(protocol.redirect_reply(message, redirect_url))
            return

        if isinstance(result, Template):
            diff = await self._view_diff(result)
        else:
            diff = self._decorate(result, None)
        await self.send(protocol.diff_reply(message, diff))

    async def _on_info(self, message: Message) -> None:
        self._require_view(message)
        event = message.payload
        if isinstance(event, str):
            event = {"type": event}
        await call_handler(self.view.handle_event, self.ctx, event)
        template = await call_handler(self.view.render, self.meta())
        diff = await self._view_diff(template)
        await self.send(protocol.diff_push(None, self.ctx.id, diff))

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def _on_live_patch(self, message: Message) -> None:
        self._require_view(message)
        payload = message.payload or {}
        if "url" in payload:
            # Client followed a patch link
            self.ctx.url = payload["url"]
            await call_handler(self.view.handle_params, self.ctx, self.ctx.url)
            template = await call_handler(self.view.render, self.meta())
            diff = await self._view_diff(template)
            await self.send(protocol.diff_reply(message, diff))
            return

        await self._forward_navigation(message)
        template = await call_handler(self.view.render, self.meta())
        diff = await self._view_diff(template)
        if diff:
            await self.send(protocol.diff_push(None, self.ctx.id, diff))

    async def _on_live_redirect(self, message: Message) -> None:
        self._require_view(message)
        await self._forward_navigation(message)

    async def _forward_navigation(self, message: Message) -> None:
        to = (message.payload or {}).get("to")
        if not to:
            raise ProtocolError(f"{message.event} message must carry a 'to' location")
        self.ctx.url = urljoin(self.ctx.url, to)
        await call_handler(self.view.handle_params, self.ctx, self.ctx.url)
        await self.send(list(message))

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def _on_allow_upload(self, message: Message) -> None:
        self._require_view(message)
        payload = message.payload or {}
        ref = payload.get("ref")
        self.ctx.active_upload_ref = ref
        upload_config = self.ctx.upload_config_by_ref(ref)
        if upload_config is None:
            raise UploadConfigNotFoundError(ref)

        upload_config.set_entries(
            [UploadEntry.from_client(entry, upload_config) for entry in payload.get("entries") or []]
        )

        entries: Dict[str, Any] = {"ref": ref}
        for entry in upload_config.entries:
            if not entry.valid:
                continue
            if upload_config.external is not None:
                entry.meta = await call_handler(upload_config.external, entry.to_json())
                entries[entry.ref] = entry.meta
            else:
                entries[entry.ref] = sign_entry_token(upload_config, entry)

        template = await call_handler(self.view.render, self.meta())
        diff = await self._view_diff(template)
        await self.send(protocol.allow_upload_reply(message, diff, upload_config.to_json(), entries))

    async def _on_progress(self, message: Message) -> None:
        self._require_view(message)
        payload = message.payload or {}
        upload_config = self.ctx.upload_config_by_ref(payload.get("ref"))
        if upload_config is None:
            logger.error("Received upload progress for unknown upload config %s", payload.get("ref"))
        else:
            entry = upload_config.find_entry(payload.get("entry_ref"))
            if entry is not None:
                entry.update_progress(payload.get("progress") or 0)

        template = await call_handler(self.view.render, self.meta())
        diff = await self._view_diff(template)
        await self.send(protocol.diff_reply(message, diff))

    def _find_upload_entry(self, entry_ref: str) -> Optional[UploadEntry]:
        active = self.ctx.upload_config_by_ref(self.ctx.active_upload_ref)
        configs = [active] if active is not None else []
        configs += [c for c in self.ctx.upload_configs.values() if c is not active]
        for upload_config in configs:
            entry = upload_config.find_entry(entry_ref)
            if entry is not None:
                return entry
        return None

    async def _on_chunk(self, message: Message) -> None:
        self._require_view(message)
        entry_ref = message.topic.split(":", 1)[1]
        entry = self._find_upload_entry(entry_ref)
        if entry is None:
            raise LiveViewError(f"Could not find upload entry for ref {entry_ref}")

        first_chunk = entry.progress == 0
        progress = await sync_to_async(entry.append_chunk)(bytes(message.payload))
        entry.update_progress(max(entry.progress, progress))

        # Only the 0 -> started transition is worth a render
        if first_chunk:
            template = await call_handler(self.view.render, self.meta())
            diff = await self._view_diff(template)
            await self.send(protocol.diff_push(message.join_ref, self.ctx.id, diff))
        await self.send(protocol.ack_reply(message))

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def meta(self) -> RenderMeta:
        return RenderMeta(
            csrf_token=self.csrf_token,
            uploads=self.ctx.upload_configs,
            component=self.ctx.component,
            flash=self.ctx.flash,
        )

    async def _wrap(self, template: Template) -> Template:
        if self.wrapper_template is None:
            return template
        return await call_handler(self.wrapper_template, safe(template))

    def _serialize(self, template: Template):
        preload_components(template, self.ctx._rendered_instance)
        tree = to_tree(template, True, self.ctx.component)
        return tree, self._component_trees()

    def _component_trees(self) -> Dict[str, Any]:
        """Full trees of every stateful component, including ones registered while rendering."""
        trees: Dict[str, Any] = {}
        while True:
            pending = [c for c in self.components.values() if str(c.cid) not in trees]
            if not pending:
                return trees
            for component in pending:
                trees[str(component.cid)] = to_tree(component.render(), True, self.ctx.component)

    async def _full_tree(self, template: Template) -> Dict[str, Any]:
        template = await self._wrap(template)
        tree, components = await sync_to_async(self._serialize)(template)
        self.parts = tree
        return self._decorate(dict(tree), components)

    async def _view_diff(self, template: Template) -> Dict[str, Any]:
        template = await self._wrap(template)
        tree, components = await sync_to_async(self._serialize)(template)
        diff = deep_diff(self.parts, tree)
        self.parts = tree
        return self._decorate(dict(diff), components)

    def _decorate(self, tree: Dict[str, Any], components: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if components:
            merged = dict(tree.get("c", {}))
            merged.update(components)
            tree["c"] = merged
        events = self.ctx._drain_push_events()
        if events:
            tree["e"] = events
        title = self.ctx._take_page_title()
        if title is not None:
            tree["t"] = title
        return tree

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def transport_is_closed(self) -> bool:
        return bool(getattr(self.transport, "closed", False))

    async def send(self, reply) -> bool:
        """
        Serialize and send a reply.

        A closed transport or a dropped send tears the session down; errors
        go to the error hook and are never raised to the caller.
        """
        if self.transport_is_closed():
            logger.debug("Transport closed, shutting down %s", self.ctx.id if self.ctx else "session")
            self.close()
            return False
        try:
            status = await self.transport.send(protocol.serialize(reply))
        except Exception as e:
            self._handle_error(e)
            self.close()
            return False
        if status == 0:
            self._handle_error(LiveViewError("send error: message dropped by transport"))
            self.close()
            return False
        return True

    def push_navigation(self, event: str, to: str, replace: bool = False) -> None:
        """Queue a server-initiated live_patch or live_redirect."""
        if self.ctx is None:
            return
        self._call_soon(self._enqueue, protocol.navigation(self.ctx.id, event, to, replace))

    def send_info(self, event: Dict[str, Any]) -> None:
        """Queue an ``info`` message for the view."""
        if self.ctx is None:
            logger.debug("Dropping info for a session with no joined view")
            return
        self._call_soon(self._enqueue, Message(None, None, self.ctx.id, "info", event))

    def subscribe(self, topic: str) -> None:
        if topic in self.subscriptions:
            return
        self.subscriptions.add(topic)
        if self.pubsub is None:
            logger.warning("No pub/sub configured; subscription to %s is local only", topic)
            return
        self._spawn(self.pubsub.subscribe, topic)

    def publish(self, topic: str, event: Dict[str, Any]) -> None:
        if self.pubsub is None:
            logger.warning("No pub/sub configured; dropping publish to %s", topic)
            return
        self._spawn(self.pubsub.publish, topic, event)

    def close(self) -> None:
        """Leave the view once the in-flight message, if any, completes."""
        if self._closing or self._loop is None:
            return
        self._closing = True
        topic = self.ctx.id if self.ctx else "unknown"
        self._call_soon(self._enqueue, Message(None, None, topic, "phx_leave", None))

    async def transport_closed(self) -> None:
        """Called by the transport once the connection is gone."""
        if self.state is SessionState.CLOSED and self.ctx is None:
            return
        self._closing = True
        topic = self.ctx.id if self.ctx else "unknown"
        await self.handle_message(Message(None, None, topic, "phx_leave", None))

    async def wait_idle(self) -> None:
        """Wait until queued messages and background pub/sub calls have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _call_soon(self, callback, *args) -> None:
        if self._loop is None:
            raise LiveViewError("Live session has no running event loop")
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            callback(*args)
        else:
            self._loop.call_soon_threadsafe(callback, *args)

    def _spawn(self, func, *args) -> None:
        def start():
            self._track(self._loop.create_task(func(*args)))

        self._call_soon(start)

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._handle_error(task.exception())

    # ------------------------------------------------------------------
    # Heartbeat
    # ------------------------------------------------------------------

    def _start_watchdog(self) -> None:
        self._stop_watchdog()
        self._watchdog = self._loop.create_task(self._watch_heartbeat())

    def _stop_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    async def _watch_heartbeat(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.heartbeat_interval)
                if time.monotonic() - self._last_heartbeat > self.heartbeat_timeout:
                    logger.info(
                        "No heartbeat for %ss on %s, closing session",
                        self.heartbeat_timeout,
                        self.ctx.id if self.ctx else "unknown",
                    )
                    self.close()
                    return
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def _teardown(self) -> None:
        try:
            self._stop_watchdog()
        except Exception as e:
            logger.warning("Error stopping heartbeat watchdog: %s", e)

        for component in self.components.values():
            try:
                await call_handler(component.shutdown)
            except Exception as e:
                logger.warning("Error shutting down component %s: %s", type(component).__name__, e)

        if self.view is not None:
            try:
                await call_handler(self.view.shutdown)
            except Exception as e:
                logger.warning("Error shutting down view %s: %s", type(self.view).__name__, e)

        if self.ctx is not None:
            try:
                self.ctx._cleanup_uploads()
            except Exception as e:
                logger.warning("Error cleaning up uploads: %s", e)

        for topic in list(self.subscriptions):
            try:
                if self.pubsub is not None:
                    await self.pubsub.unsubscribe(topic)
            except Exception as e:
                logger.warning("Error unsubscribing from %s: %s", topic, e)
        self.subscriptions = set()

        self.components.clear()
        self.parts = {}
        self.view = None
        self.ctx = None
        self.state = SessionState.CLOSED

    # ------------------------------------------------------------------
    # Errors and debug
    # ------------------------------------------------------------------

    def _handle_error(self, error: BaseException, message: Optional[Message] = None) -> None:
        if message is not None:
            logger.error(
                "Error handling %s on %s: %s",
                message.event,
                message.topic,
                error,
                exc_info=error,
            )
        else:
            logger.error("Live session error: %s", error, exc_info=error)
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception:
                logger.exception("Error calling on_error hook")
        if self.transport_is_closed():
            self.close()

    def _maybe_debug(self, message: Message) -> None:
        if djlive_config.get("debug_protocol"):
            logger.debug("[LiveSession] %s %s", message.event, sanitize_for_log(message.topic))
        if self.debug is not None:
            try:
                payload = message.payload
                if isinstance(payload, (bytes, bytearray)):
                    payload = f"<{len(payload)} bytes>"
                self.debug(repr(list(message[:4]) + [payload]))
            except Exception:
                logger.exception("Error calling debug hook")
