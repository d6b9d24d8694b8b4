"""
Channels consumer serving the live socket.

One consumer instance is one connection and owns one LiveSession. The
consumer is only a transport: frames go to the session unchanged and the
session's replies come back through ConsumerTransport.
"""

import logging
from typing import Any, Dict, Optional

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer

from .config import config as djlive_config
from .handler import LiveSession
from .pubsub import ChannelLayerPubSub

logger = logging.getLogger(__name__)


class ConsumerTransport:
    """Adapts a websocket consumer to the session transport interface."""

    def __init__(self, consumer: AsyncWebsocketConsumer):
        self.consumer = consumer
        self.closed = False

    async def send(self, text: str) -> int:
        if self.closed:
            return 0
        await self.consumer.send(text_data=text)
        return len(text)


class LiveSocketConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer for live sessions.

    Expects the Django session in ``scope["session"]`` (SessionMiddlewareStack)
    holding the CSRF token issued by the HTTP first paint.
    """

    router = None

    def __init__(self, *args, router=None, **kwargs):
        super().__init__(*args, **kwargs)
        if router is not None:
            self.router = router
        self.session: Optional[LiveSession] = None
        self.transport: Optional[ConsumerTransport] = None

    async def connect(self):
        """Handle WebSocket connection"""
        await self.accept()

        pubsub = None
        if self.channel_layer is not None:
            pubsub = ChannelLayerPubSub(self.channel_layer, self.channel_name)

        self.transport = ConsumerTransport(self)
        self.session = LiveSession(
            self.transport,
            self.router,
            await self.get_csrf_token(),
            pubsub=pubsub,
            on_error=self.on_error,
        )

    @database_sync_to_async
    def get_csrf_token(self) -> str:
        session = self.scope.get("session")
        if session is None:
            logger.warning("No session in scope; wrap the live socket in SessionMiddlewareStack")
            return ""
        return session.get(djlive_config.get("csrf_session_key"), "")

    async def receive(self, text_data=None, bytes_data=None):
        """Handle incoming WebSocket messages"""
        if self.session is None:
            return
        if bytes_data is not None:
            await self.session.handle_binary(bytes_data)
        elif text_data is not None:
            await self.session.handle_text(text_data)

    async def disconnect(self, close_code):
        """Handle WebSocket disconnection"""
        if self.transport is not None:
            self.transport.closed = True
        if self.session is not None:
            try:
                await self.session.transport_closed()
            except Exception as e:
                logger.warning("Error tearing down live session: %s", e)
        self.session = None

    async def djlive_broadcast(self, event: Dict[str, Any]):
        """Channel-layer handler for pub/sub broadcasts."""
        if self.session is None or event.get("topic") not in self.session.subscriptions:
            return
        self.session.send_info(event["event"])

    def on_error(self, error: BaseException) -> Any:
        """Hook for subclasses; errors are already logged by the session."""
