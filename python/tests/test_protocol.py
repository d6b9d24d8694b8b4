"""
Tests for Phoenix frame decoding and reply builders.
"""

import datetime
import json

import pytest

from djlive import protocol
from djlive.exceptions import ProtocolError
from djlive.protocol import Message


class TestParseText:
    def test_decodes_five_element_array(self):
        message = protocol.parse_text('["4","4","lv:phx-1","phx_join",{"url":"/"}]')
        assert message == Message("4", "4", "lv:phx-1", "phx_join", {"url": "/"})
        assert message.is_view_topic
        assert not message.is_upload_topic

    def test_null_refs(self):
        message = protocol.parse_text('[null,"7","phoenix","heartbeat",{}]')
        assert message.join_ref is None
        assert message.msg_ref == "7"

    @pytest.mark.parametrize(
        "text",
        ["not json", "{}", '["1","2","t","e"]', '[1,2,3,"e",{}]'],
    )
    def test_rejects_malformed(self, text):
        with pytest.raises(ProtocolError):
            protocol.parse_text(text)


class TestBinary:
    def test_roundtrips_push(self):
        message = Message("4", "9", "lvu:0", "chunk", b"\x00\x01data")
        assert protocol.parse_binary(protocol.encode_binary(message)) == message

    def test_empty_refs_become_none(self):
        message = protocol.parse_binary(protocol.encode_binary(Message(None, None, "lvu:1", "chunk", b"x")))
        assert message.join_ref is None and message.msg_ref is None
        assert message.is_upload_topic

    def test_layout(self):
        frame = protocol.encode_binary(Message("1", "2", "lvu:3", "chunk", b"zz"))
        assert frame[:5] == bytes([0, 1, 1, 5, 5])
        assert frame[5:] == b"12lvu:3chunkzz"

    def test_rejects_short_frame(self):
        with pytest.raises(ProtocolError):
            protocol.parse_binary(b"\x00\x01")

    def test_rejects_other_kinds(self):
        with pytest.raises(ProtocolError):
            protocol.parse_binary(bytes([1, 0, 0, 0, 0]))

    def test_rejects_sizes_beyond_frame(self):
        with pytest.raises(ProtocolError):
            protocol.parse_binary(bytes([0, 9, 0, 0, 0]) + b"ab")

    def test_rejects_invalid_utf8_header(self):
        with pytest.raises(ProtocolError, match="UTF-8"):
            protocol.parse_binary(bytes([0, 1, 0, 5, 5]) + b"\xff" + b"lvu:0" + b"chunk" + b"data")


class TestReplies:
    message = Message("4", "5", "lv:phx-1", "event", {})

    def test_rendered(self):
        assert protocol.rendered_reply(self.message, {"s": ["a"]}) == [
            "4",
            "5",
            "lv:phx-1",
            "phx_reply",
            {"status": "ok", "response": {"rendered": {"s": ["a"]}}},
        ]

    def test_diff(self):
        assert protocol.diff_reply(self.message, {"0": "1"})[4] == {
            "status": "ok",
            "response": {"diff": {"0": "1"}},
        }

    def test_diff_push(self):
        assert protocol.diff_push(None, "lv:phx-1", {"0": "1"}) == [None, None, "lv:phx-1", "diff", {"0": "1"}]

    def test_redirect(self):
        assert protocol.redirect_reply(self.message, "/x")[4]["response"] == {"redirect": {"to": "/x"}}

    def test_allow_upload(self):
        response = protocol.allow_upload_reply(self.message, {}, {"ref": "r"}, {"ref": "r"})[4]["response"]
        assert response == {"diff": {}, "config": {"ref": "r"}, "entries": {"ref": "r"}}

    def test_heartbeat(self):
        heartbeat = Message(None, "9", "phoenix", "heartbeat", {})
        assert protocol.heartbeat_reply(heartbeat) == [
            None,
            "9",
            "phoenix",
            "phx_reply",
            {"status": "ok", "response": {}},
        ]

    def test_navigation(self):
        message = protocol.navigation("lv:phx-1", "live_patch", "/a?b=1", replace=True)
        assert list(message) == [None, None, "lv:phx-1", "live_patch", {"kind": "replace", "to": "/a?b=1"}]

    def test_serialize_handles_django_types(self):
        text = protocol.serialize([None, None, "t", "diff", {"0": datetime.date(2024, 1, 2)}])
        assert json.loads(text)[4] == {"0": "2024-01-02"}
