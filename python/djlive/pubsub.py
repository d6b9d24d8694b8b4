"""
Pub/sub between live sessions over the Channels layer.

A view subscribes to a topic with ``ctx.subscribe("chat")``; anything
published to that topic (by another session's ``ctx.publish`` or by
background code calling publish()) arrives as an ``info`` message.
"""

import hashlib
import logging
import re
from typing import Any, Dict

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from .config import config as djlive_config

logger = logging.getLogger(__name__)

BROADCAST_TYPE = "djlive.broadcast"

_GROUP_SAFE_RE = re.compile(r"^[A-Za-z0-9_.\-]{1,60}$")


def topic_group_name(topic: str) -> str:
    """Return the channel-layer group name for a pub/sub topic."""
    prefix = djlive_config.get("group_prefix")
    if _GROUP_SAFE_RE.match(topic):
        return f"{prefix}.topic.{topic}"
    digest = hashlib.sha1(topic.encode("utf-8")).hexdigest()
    return f"{prefix}.topic.{digest}"


def broadcast_message(topic: str, event: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": BROADCAST_TYPE, "topic": topic, "event": event}


class ChannelLayerPubSub:
    """Subscribes one consumer's channel to topic groups."""

    def __init__(self, channel_layer, channel_name: str):
        self.channel_layer = channel_layer
        self.channel_name = channel_name

    async def subscribe(self, topic: str) -> None:
        await self.channel_layer.group_add(topic_group_name(topic), self.channel_name)

    async def unsubscribe(self, topic: str) -> None:
        await self.channel_layer.group_discard(topic_group_name(topic), self.channel_name)

    async def publish(self, topic: str, event: Dict[str, Any]) -> None:
        await self.channel_layer.group_send(topic_group_name(topic), broadcast_message(topic, event))


def publish(topic: str, event: Dict[str, Any]) -> None:
    """
    Publish an event to every session subscribed to ``topic``.

    Works from any synchronous context: Celery tasks, management commands,
    Django signals, cron jobs, etc.

    Example::

        from djlive.pubsub import publish

        publish("orders", {"type": "order_created", "id": order.id})
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer configured; dropping publish to %s", topic)
        return
    async_to_sync(channel_layer.group_send)(topic_group_name(topic), broadcast_message(topic, event))
