"""
Tests for MessageRouter: classification, replies and fan-out.
"""

import json
import logging

import pytest

from message_router import MessageRouter


def send(router, conn, client_id, **payload):
    router.dispatch(conn, client_id, json.dumps(payload))


@pytest.fixture
def room_abc(backend, make_connection):
    a, b = make_connection("a"), make_connection("b")
    backend.join("A", a, "abc")
    backend.join("B", b, "abc")
    return a, b


class TestMalformedInput:

    @pytest.mark.parametrize("raw", ["not json", "{", b"\xc3\x28", "[1, 2]", "42", "null"])
    def test_bad_frames_are_dropped(self, router, backend, make_connection, caplog, raw):
        conn = make_connection()
        backend.join("c1", conn, "abc")

        with caplog.at_level(logging.ERROR, logger="message_router"):
            router.dispatch(conn, "c1", raw)

        assert conn.sent == []
        assert "Error parsing message" in caplog.text
        assert backend.members("abc") == [conn]

    @pytest.mark.parametrize("payload", [{"type": "bogus"}, {"no_type": True}, {"type": ["chat"]}])
    def test_unknown_type_warns(self, router, make_connection, caplog, payload):
        conn = make_connection()
        with caplog.at_level(logging.WARNING, logger="message_router"):
            router.dispatch(conn, "c1", json.dumps(payload))
        assert "Unknown message type" in caplog.text
        assert conn.sent == []

    @pytest.mark.parametrize("payload", [
        {"type": "create_room"},
        {"type": "create_room", "roomId": ""},
        {"type": "join_room", "roomId": 5},
        {"type": "chat", "roomId": "abc"},
        {"type": "file_transfer"},
    ])
    def test_missing_required_fields_are_dropped(self, router, backend, make_connection, payload):
        conn = make_connection()
        backend.join("c1", conn, "lobby")

        router.dispatch(conn, "c1", json.dumps(payload))

        assert conn.sent == []
        assert backend.room_summaries() == [{"room_id": "lobby", "member_count": 1}]

    def test_deeply_nested_frame_is_a_parse_failure(self, router, backend, make_connection, caplog):
        conn = make_connection()
        backend.join("c1", conn, "abc")

        with caplog.at_level(logging.ERROR, logger="message_router"):
            router.dispatch(conn, "c1", "[" * 200000)

        assert "Error parsing message" in caplog.text
        assert conn.sent == []
        assert backend.members("abc") == [conn]

    def test_unserializable_relay_is_dropped(self, router, backend, room_abc):
        a, b = room_abc
        depth = 900
        raw = '{"type": "file_transfer", "roomId": "abc", "meta": ' + "[" * depth + "]" * depth + "}"

        router.dispatch(a, "A", raw)

        assert b.sent == []
        assert set(backend.members("abc")) == {a, b}

        send(router, a, "A", type="chat", roomId="abc", message="still here")
        assert b.messages() == [{"clientId": "A", "message": "still here"}]


class TestCreateRoom:

    def test_existing_room_yields_error_and_no_mutation(self, router, backend, room_abc, make_connection):
        a, b = room_abc
        c = make_connection("c")
        backend.join("C", c, "lobby")

        send(router, c, "C", type="create_room", roomId="abc")

        assert c.messages() == [{"type": "error", "message": "Room already exists"}]
        assert set(backend.members("abc")) == {a, b}
        assert backend.lookup("C").room_id == "lobby"
        assert a.sent == [] and b.sent == []

    def test_fresh_room_has_only_creator(self, router, backend, make_connection):
        c = make_connection("c")
        backend.join("C", c, "lobby")

        send(router, c, "C", type="create_room", roomId="fresh")

        assert backend.members("fresh") == [c]
        assert backend.lookup("C").room_id == "fresh"
        assert not backend.room_exists("lobby")
        assert c.messages() == [
            {"type": "room_created", "message": "Room fresh created successfully"},
            {"type": "peer_connected-created", "data": True},
        ]


class TestJoinRoom:

    def test_join_missing_room_creates_it(self, router, backend, make_connection):
        c = make_connection("c")
        backend.join("C", c, "lobby")

        send(router, c, "C", type="join_room", roomId="new")

        assert backend.members("new") == [c]
        assert c.messages() == [{"type": "peer_connected-joined", "data": False}]

    def test_join_existing_room_notifies_each_member_once(self, router, backend, room_abc, make_connection):
        a, b = room_abc
        c = make_connection("c")
        backend.join("C", c, "lobby")

        send(router, c, "C", type="join_room", roomId="abc")

        assert set(backend.members("abc")) == {a, b, c}
        expected = {"type": "room_joined", "clientId": "C", "message": "C has joined the room"}
        assert a.messages() == [expected]
        assert b.messages() == [expected]
        assert c.messages() == [{"type": "peer_connected-joined", "data": False}]


class TestChat:

    def test_chat_reaches_every_other_member_once(self, router, backend, room_abc, make_connection):
        a, b = room_abc
        c = make_connection("c")
        backend.join("C", c, "abc")

        send(router, c, "C", type="chat", roomId="abc", message="hi")

        assert a.messages() == [{"clientId": "C", "message": "hi"}]
        assert b.messages() == [{"clientId": "C", "message": "hi"}]
        assert c.sent == []

    def test_chat_from_outside_the_room(self, router, room_abc, make_connection):
        a, b = room_abc
        c = make_connection("c")

        send(router, c, "C", type="chat", roomId="abc", message="hi")

        assert a.messages() == [{"clientId": "C", "message": "hi"}]
        assert b.messages() == [{"clientId": "C", "message": "hi"}]
        assert c.sent == []

    def test_chat_skips_closed_members(self, router, room_abc):
        a, b = room_abc
        b.is_open = False

        send(router, a, "A", type="chat", roomId="abc", message={"text": "hey"})

        assert b.sent == []
        assert a.sent == []

    def test_chat_to_missing_room(self, router, make_connection):
        c = make_connection()
        send(router, c, "C", type="chat", roomId="nowhere", message="hi")
        assert c.sent == []


class TestFileTransfer:

    def test_metadata_is_relayed_with_original_payload(self, router, room_abc):
        a, b = room_abc
        payload = {"type": "file_transfer", "roomId": "abc", "name": "a.txt", "size": 12}

        router.dispatch(a, "A", json.dumps(payload))

        assert b.messages() == [{"type": "file_transfer", "from": "A", "data": payload}]
        assert a.sent == []


class TestSignal:

    def test_signal_is_not_relayed_by_default(self, router, room_abc):
        a, b = room_abc
        send(router, a, "A", type="signal", roomId="abc", sdp="offer")
        assert a.sent == [] and b.sent == []

    def test_signal_relay_when_enabled(self, backend, room_abc):
        a, b = room_abc
        router = MessageRouter(backend, relay_signals=True)
        payload = {"type": "signal", "sdp": "offer"}

        router.dispatch(a, "A", json.dumps(payload))

        assert b.messages() == [{"type": "signal", "from": "A", "data": payload}]
        assert a.sent == []
