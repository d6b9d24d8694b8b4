"""
Tests for the Channels consumer serving live sessions.
"""

import json

import pytest
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator

from djlive import LiveRouter, LiveView, html
from djlive.protocol import Message, encode_binary
from djlive.pubsub import BROADCAST_TYPE, publish, topic_group_name
from djlive.routing import live_websocket_urlpatterns
from djlive.websocket import LiveSocketConsumer


class ClockView(LiveView):
    def mount(self, ctx, event):
        self.ticks = 0
        if ctx.connected:
            ctx.subscribe("clock")

    def handle_event(self, ctx, event):
        if event["type"] in ("tick", "clock"):
            self.ticks += 1

    def render(self, meta):
        return html("<time>{0}</time>", self.ticks)


@pytest.fixture
def router():
    router = LiveRouter()
    router.register("clock/", ClockView)
    return router


def with_session(app, session):
    async def wrapped(scope, receive, send):
        return await app(dict(scope, session=session), receive, send)

    return wrapped


async def connect(router, token="tok"):
    app = with_session(LiveSocketConsumer.as_asgi(router=router), {"djlive_csrf_token": token})
    communicator = WebsocketCommunicator(app, "/live/websocket")
    connected, _ = await communicator.connect()
    assert connected
    return communicator


def join_frame(token="tok", url="/clock/"):
    return json.dumps(["1", "1", "lv:phx-abc", "phx_join", {"url": url, "params": {"_csrf_token": token}}])


@pytest.mark.asyncio
class TestLiveSocketConsumer:
    async def test_join_and_event(self, router):
        communicator = await connect(router)

        await communicator.send_to(text_data=join_frame())
        reply = await communicator.receive_json_from(timeout=2)
        assert reply == [
            "1",
            "1",
            "lv:phx-abc",
            "phx_reply",
            {"status": "ok", "response": {"rendered": {"0": "0", "s": ["<time>", "</time>"]}}},
        ]

        await communicator.send_json_to(["1", "2", "lv:phx-abc", "event", {"type": "click", "event": "tick", "value": {}}])
        reply = await communicator.receive_json_from(timeout=2)
        assert reply[1] == "2"
        assert reply[4]["response"]["diff"] == {"0": "1"}

        await communicator.disconnect()

    async def test_join_with_wrong_token_is_ignored(self, router):
        communicator = await connect(router)
        await communicator.send_to(text_data=join_frame(token="forged"))
        assert await communicator.receive_nothing(timeout=0.2)
        await communicator.disconnect()

    async def test_heartbeat(self, router):
        communicator = await connect(router)
        await communicator.send_json_to([None, "5", "phoenix", "heartbeat", {}])
        reply = await communicator.receive_json_from(timeout=2)
        assert reply == [None, "5", "phoenix", "phx_reply", {"status": "ok", "response": {}}]
        await communicator.disconnect()

    async def test_binary_frames_reach_session(self, router):
        communicator = await connect(router)
        await communicator.send_to(text_data=join_frame())
        await communicator.receive_json_from(timeout=2)

        # chunk for an entry that was never allowed: reported, no reply
        frame = encode_binary(Message("1", "3", "lvu:missing", "chunk", b"data"))
        await communicator.send_to(bytes_data=frame)
        assert await communicator.receive_nothing(timeout=0.2)
        await communicator.disconnect()

    async def test_broadcast_arrives_as_info(self, router):
        communicator = await connect(router)
        await communicator.send_to(text_data=join_frame())
        await communicator.receive_json_from(timeout=2)
        # let the channel-layer subscription land
        await communicator.receive_nothing(timeout=0.1)

        channel_layer = get_channel_layer()
        await channel_layer.group_send(
            topic_group_name("clock"),
            {"type": BROADCAST_TYPE, "topic": "clock", "event": {"type": "clock"}},
        )
        push = await communicator.receive_json_from(timeout=2)
        assert push == [None, None, "lv:phx-abc", "diff", {"0": "1"}]
        await communicator.disconnect()


class TestPubSubHelpers:
    def test_group_names(self):
        assert topic_group_name("clock") == "djlive.topic.clock"
        hashed = topic_group_name("room:42 / lobby")
        assert hashed.startswith("djlive.topic.")
        assert len(hashed) == len("djlive.topic.") + 40

    def test_publish_without_subscribers(self):
        publish("nobody-listens", {"type": "noop"})


class TestWebsocketUrlpatterns:
    def test_default_path(self, router):
        patterns = live_websocket_urlpatterns(router)
        assert len(patterns) == 1
        assert patterns[0].pattern.match("live/websocket")
        assert patterns[0].pattern.match("/live/websocket/")
