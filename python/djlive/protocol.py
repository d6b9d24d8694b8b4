"""
Phoenix channel wire format.

Every frame is a five element array::

    [join_ref, msg_ref, topic, event, payload]

Text frames carry JSON. Binary frames (upload chunks) use the Phoenix
binary push layout: one byte kind (0 = push), four one-byte lengths for
join_ref, msg_ref, topic and event, those strings, then the raw payload.
"""

import json
from typing import Any, Dict, List, NamedTuple, Optional

from django.core.serializers.json import DjangoJSONEncoder

from .exceptions import ProtocolError

VIEW_TOPIC_PREFIX = "lv:"
UPLOAD_TOPIC_PREFIX = "lvu:"
HEARTBEAT_TOPIC = "phoenix"

BINARY_PUSH = 0
_BINARY_HEADER = 5

Reply = List[Any]


class Message(NamedTuple):
    join_ref: Optional[str]
    msg_ref: Optional[str]
    topic: str
    event: str
    payload: Any

    @property
    def is_view_topic(self) -> bool:
        return self.topic.startswith(VIEW_TOPIC_PREFIX)

    @property
    def is_upload_topic(self) -> bool:
        return self.topic.startswith(UPLOAD_TOPIC_PREFIX)


def parse_text(text: str) -> Message:
    """
    Decode a JSON text frame.

    Raises:
        ProtocolError: if the frame is not a five element array
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Invalid JSON in protocol message: {e}") from e
    if not isinstance(data, list) or len(data) != 5:
        raise ProtocolError("Protocol message must be a five element array")
    join_ref, msg_ref, topic, event, payload = data
    if not isinstance(topic, str) or not isinstance(event, str):
        raise ProtocolError("Protocol message topic and event must be strings")
    return Message(join_ref, msg_ref, topic, event, payload)


def parse_binary(data: bytes) -> Message:
    """
    Decode a binary push frame; the payload stays raw bytes.

    Raises:
        ProtocolError: if the header is truncated, not UTF-8, or the kind is not a push
    """
    if len(data) < _BINARY_HEADER:
        raise ProtocolError("Binary frame shorter than its header")
    kind = data[0]
    if kind != BINARY_PUSH:
        raise ProtocolError(f"Unsupported binary frame kind {kind}")

    sizes = data[1:_BINARY_HEADER]
    if _BINARY_HEADER + sum(sizes) > len(data):
        raise ProtocolError("Binary frame header sizes exceed frame length")

    fields = []
    offset = _BINARY_HEADER
    for size in sizes:
        try:
            fields.append(data[offset : offset + size].decode("utf-8"))
        except UnicodeDecodeError as e:
            raise ProtocolError("Binary frame header is not valid UTF-8") from e
        offset += size
    join_ref, msg_ref, topic, event = fields
    return Message(join_ref or None, msg_ref or None, topic, event, data[offset:])


def encode_binary(message: Message) -> bytes:
    """Encode a push frame the way the browser client does."""
    fields = [
        (message.join_ref or "").encode("utf-8"),
        (message.msg_ref or "").encode("utf-8"),
        message.topic.encode("utf-8"),
        message.event.encode("utf-8"),
    ]
    header = bytes([BINARY_PUSH] + [len(f) for f in fields])
    return header + b"".join(fields) + bytes(message.payload)


def _ok(message: Message, response: Dict[str, Any]) -> Reply:
    return [
        message.join_ref,
        message.msg_ref,
        message.topic,
        "phx_reply",
        {"status": "ok", "response": response},
    ]


def rendered_reply(message: Message, parts: Dict[str, Any]) -> Reply:
    """Reply to a join with the full parts tree."""
    return _ok(message, {"rendered": parts})


def diff_reply(message: Message, diff: Dict[str, Any]) -> Reply:
    """Reply to a client message with the changed parts."""
    return _ok(message, {"diff": diff})


def diff_push(join_ref: Optional[str], topic: str, diff: Dict[str, Any]) -> Reply:
    """Server-initiated diff, not tied to an inbound message."""
    return [join_ref, None, topic, "diff", diff]


def allow_upload_reply(
    message: Message, diff: Dict[str, Any], config: Dict[str, Any], entries: Dict[str, Any]
) -> Reply:
    return _ok(message, {"diff": diff, "config": config, "entries": entries})


def redirect_reply(message: Message, to: str) -> Reply:
    return _ok(message, {"redirect": {"to": to}})


def ack_reply(message: Message) -> Reply:
    return _ok(message, {})


def heartbeat_reply(message: Message) -> Reply:
    return [None, message.msg_ref, HEARTBEAT_TOPIC, "phx_reply", {"status": "ok", "response": {}}]


def navigation(topic: str, event: str, to: str, replace: bool = False) -> Message:
    """A live_patch / live_redirect instruction for the client."""
    return Message(None, None, topic, event, {"kind": "replace" if replace else "push", "to": to})


def serialize(reply: Reply) -> str:
    """Serialize a reply with Django type support"""
    return json.dumps(reply, cls=DjangoJSONEncoder)
