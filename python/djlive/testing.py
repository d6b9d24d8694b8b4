"""
Testing utilities for djlive views.

Drives a real LiveSession over an in-memory transport, so tests exercise
the same protocol path as a browser without a websocket:

    from djlive.testing import LiveViewTestClient

    @pytest.mark.asyncio
    async def test_increment():
        client = LiveViewTestClient(router, url="/counter/")
        await client.join()
        assert client.html() == "<h3>0</h3>"

        await client.send_event("inc")
        assert client.html() == "<h3>1</h3>"
        client.assert_state(count=1)

The client keeps the merged parts tree the way the browser does, applying
every rendered reply, diff reply and diff push it receives.
"""

import itertools
import json
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from .diff import apply_diff
from .handler import LiveSession
from .protocol import Message, encode_binary
from .routing import LiveRouter
from .tree import tree_to_html


class MemoryTransport:
    """Records every frame a session sends."""

    def __init__(self):
        self.sent: List[str] = []
        self.closed = False

    async def send(self, text: str) -> int:
        if self.closed:
            return 0
        self.sent.append(text)
        return len(text)

    @property
    def messages(self) -> List[List[Any]]:
        return [json.loads(text) for text in self.sent]

    def clear(self) -> None:
        self.sent = []


class LocalPubSub:
    """In-process broker connecting test sessions."""

    def __init__(self):
        self._subscribers: Dict[str, List["LocalSubscriber"]] = {}

    def connect(self) -> "LocalSubscriber":
        return LocalSubscriber(self)


class LocalSubscriber:
    def __init__(self, broker: LocalPubSub):
        self.broker = broker
        self.session: Optional[LiveSession] = None

    async def subscribe(self, topic: str) -> None:
        subscribers = self.broker._subscribers.setdefault(topic, [])
        if self not in subscribers:
            subscribers.append(self)

    async def unsubscribe(self, topic: str) -> None:
        subscribers = self.broker._subscribers.get(topic, [])
        if self in subscribers:
            subscribers.remove(self)

    async def publish(self, topic: str, event: Dict[str, Any]) -> None:
        for subscriber in list(self.broker._subscribers.get(topic, [])):
            if subscriber.session is not None:
                subscriber.session.send_info(event)


class LiveViewTestClient:
    """
    Test a live view over an in-memory live session.

    Args:
        router: LiveRouter the view is registered on
        url: URL to join with
        csrf_token: Token the session expects; join sends it unless overridden
        pubsub: Optional LocalPubSub shared between clients
        **session_options: Passed to LiveSession (on_error, wrapper_template, ...)
    """

    def __init__(
        self,
        router: LiveRouter,
        url: str = "/",
        csrf_token: str = "test-token",
        pubsub: Optional[LocalPubSub] = None,
        **session_options,
    ):
        self.url = url
        self.csrf_token = csrf_token
        self.transport = MemoryTransport()
        subscriber = pubsub.connect() if pubsub is not None else None
        self.session = LiveSession(
            self.transport, router, csrf_token, pubsub=subscriber, **session_options
        )
        if subscriber is not None:
            subscriber.session = self.session

        self.topic = f"lv:phx-{uuid.uuid4()}"
        self.join_ref: Optional[str] = None
        self.tree: Dict[str, Any] = {}
        self.title: Optional[str] = None
        self.pushed_events: List[List[Any]] = []
        self.navigation: List[Dict[str, Any]] = []
        self.redirect: Optional[str] = None
        self._refs = itertools.count(1)
        self._seen = 0

    def _next_ref(self) -> str:
        return str(next(self._refs))

    @property
    def view(self):
        return self.session.view

    async def flush(self) -> None:
        """Apply frames pushed without a client message, e.g. pub/sub broadcasts."""
        await self.session.wait_idle()
        self._process()

    async def _roundtrip(self, message: Message) -> Optional[Dict[str, Any]]:
        await self.session.handle_message(message)
        await self.session.wait_idle()
        return self._process(message.msg_ref)

    def _process(self, msg_ref: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Apply frames received since the last call; return the reply to ``msg_ref``."""
        reply = None
        frames = self.transport.messages[self._seen :]
        self._seen += len(frames)
        for _, ref, topic, event, payload in frames:
            if event == "phx_reply":
                if msg_ref is not None and ref == msg_ref:
                    reply = payload
                if topic != self.topic:
                    continue
                response = payload.get("response", {})
                if "rendered" in response:
                    self.tree = {}
                    self._apply(response["rendered"])
                if "diff" in response:
                    self._apply(response["diff"])
                if "redirect" in response:
                    self.redirect = response["redirect"]["to"]
            elif event == "diff":
                self._apply(payload)
            elif event in ("live_patch", "live_redirect"):
                self.navigation.append({"event": event, **payload})
        return reply

    def _apply(self, diff: Dict[str, Any]) -> None:
        if diff.get("e"):
            self.pushed_events.extend(diff["e"])
        if "t" in diff:
            self.title = diff["t"]
        self.tree = apply_diff(self.tree, diff)

    async def join(self, params: Optional[Dict[str, Any]] = None, csrf_token: Optional[str] = None):
        """Join the view at ``url``; returns the join reply or None if it was dropped."""
        self.join_ref = self._next_ref()
        join_params = {"_csrf_token": self.csrf_token if csrf_token is None else csrf_token}
        join_params.update(params or {})
        message = Message(
            self.join_ref,
            self.join_ref,
            self.topic,
            "phx_join",
            {"url": self.url, "params": join_params},
        )
        return await self._roundtrip(message)

    async def send_event(
        self,
        event: str,
        value: Any = None,
        type: str = "click",
        cid: Optional[int] = None,
    ):
        payload: Dict[str, Any] = {"type": type, "event": event, "value": value or {}}
        if cid is not None:
            payload["cid"] = cid
        return await self._roundtrip(Message(self.join_ref, self._next_ref(), self.topic, "event", payload))

    async def send_form(
        self,
        event: str,
        data: Dict[str, Any],
        uploads: Optional[Dict[str, Any]] = None,
        cid: Optional[int] = None,
        include_csrf: bool = True,
    ):
        values = dict(data)
        if include_csrf:
            values.setdefault("_csrf_token", self.csrf_token)
        payload: Dict[str, Any] = {"type": "form", "event": event, "value": urlencode(values, doseq=True)}
        if uploads:
            payload["uploads"] = uploads
        if cid is not None:
            payload["cid"] = cid
        return await self._roundtrip(Message(self.join_ref, self._next_ref(), self.topic, "event", payload))

    async def info(self, event: Any):
        await self._roundtrip(Message(None, None, self.topic, "info", event))

    async def live_patch(self, url: str):
        return await self._roundtrip(
            Message(self.join_ref, self._next_ref(), self.topic, "live_patch", {"url": url})
        )

    async def allow_upload(self, ref: str, entries: List[Dict[str, Any]]):
        payload = {"ref": ref, "entries": entries}
        return await self._roundtrip(
            Message(self.join_ref, self._next_ref(), self.topic, "allow_upload", payload)
        )

    async def join_upload(self, entry_ref: str, token: str):
        ref = self._next_ref()
        return await self._roundtrip(Message(ref, ref, f"lvu:{entry_ref}", "phx_join", {"token": token}))

    async def send_chunk(self, entry_ref: str, data: bytes, join_ref: Optional[str] = None):
        message = Message(join_ref, self._next_ref(), f"lvu:{entry_ref}", "chunk", data)
        await self.session.handle_binary(encode_binary(message))
        await self.session.wait_idle()
        return self._process(message.msg_ref)

    async def progress(self, ref: str, entry_ref: str, progress: int):
        payload = {"event": None, "ref": ref, "entry_ref": entry_ref, "progress": progress}
        return await self._roundtrip(Message(self.join_ref, self._next_ref(), self.topic, "progress", payload))

    async def heartbeat(self):
        return await self._roundtrip(Message(None, self._next_ref(), "phoenix", "heartbeat", {}))

    async def leave(self):
        await self._roundtrip(Message(self.join_ref, self._next_ref(), self.topic, "phx_leave", {}))

    async def close_transport(self):
        """Simulate the browser going away."""
        self.transport.closed = True
        await self.session.transport_closed()
        await self.session.wait_idle()

    def html(self) -> str:
        """Markup of the client-side tree."""
        return tree_to_html(self.tree) if self.tree else ""

    def assert_state(self, **expected: Any) -> None:
        """
        Assert that view attributes match expected values.

        Raises:
            AssertionError: If any attribute doesn't match
        """
        for key, value in expected.items():
            actual = getattr(self.view, key, None)
            if actual != value:
                raise AssertionError(
                    f"State mismatch for '{key}':\n  expected: {value!r}\n  actual:   {actual!r}"
                )
