import pytest
from starlette.websockets import WebSocketDisconnect

from alumnilink.auth import create_user_token


def ws_url(user):
    return f"/api/ws?token={create_user_token(user)}"


def test_connection_without_token_is_refused(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect("/api/ws"):
            pass

    assert exc.value.code == 1008


def test_connection_with_bad_token_is_refused(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect("/api/ws?token=garbage"):
            pass

    assert exc.value.code == 1008


def test_join_and_ping(ws_client):
    alice = ws_client.app.state.alice

    with ws_client.websocket_connect(ws_url(alice)) as ws:
        ws.send_json({"action": "join", "data": {"user_id": alice.id}})
        assert ws.receive_json() == {"type": "joined", "data": {"user_id": alice.id}}

        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        online = ws_client.get("/api/ws/online-users").json()
        assert online == {"online_users": [alice.id], "count": 1}


def test_join_as_someone_else_is_rejected(ws_client):
    alice, bob = ws_client.app.state.alice, ws_client.app.state.bob

    with ws_client.websocket_connect(ws_url(alice)) as ws:
        ws.send_json({"action": "join", "data": {"user_id": bob.id}})
        event = ws.receive_json()

    assert event["type"] == "error"
    assert event["code"] == "USER_MISMATCH"


def test_send_message_reaches_connected_recipient(ws_client):
    alice, bob = ws_client.app.state.alice, ws_client.app.state.bob

    with ws_client.websocket_connect(ws_url(bob)) as bob_ws:
        bob_ws.send_json({"action": "join", "data": {}})
        bob_ws.receive_json()

        with ws_client.websocket_connect(ws_url(alice)) as alice_ws:
            alice_ws.send_json({"action": "join", "data": {}})
            alice_ws.receive_json()

            alice_ws.send_json({"action": "send_message", "data": {"recipient": bob.id, "content": "Hello Bob"}})
            pushed = bob_ws.receive_json()
            ack = alice_ws.receive_json()

    assert pushed["type"] == "new_message"
    assert pushed["data"]["content"] == "Hello Bob"
    assert ack["type"] == "message_sent"
    assert ack["data"]["id"] == pushed["data"]["id"]


def test_message_to_offline_user_is_stored(ws_client):
    alice, bob = ws_client.app.state.alice, ws_client.app.state.bob

    with ws_client.websocket_connect(ws_url(alice)) as ws:
        ws.send_json({"action": "send_message", "data": {"recipient": bob.id, "content": "see you later"}})
        ack = ws.receive_json()

    conversation = ws_client.get(
        f"/api/messages/conversation/{alice.id}",
        headers={"Authorization": f"Bearer {create_user_token(bob)}"},
    )

    assert ack["type"] == "message_sent"
    assert [m["content"] for m in conversation.json()] == ["see you later"]


def test_bad_frames_do_not_close_the_socket(ws_client):
    alice = ws_client.app.state.alice

    with ws_client.websocket_connect(ws_url(alice)) as ws:
        ws.send_text("{not json")
        invalid = ws.receive_json()

        ws.send_json({"action": "dance"})
        unknown = ws.receive_json()

        ws.send_json({"action": "send_message", "data": {"recipient": alice.id, "content": "me"}})
        to_self = ws.receive_json()

        ws.send_json({"action": "ping"})
        pong = ws.receive_json()

    assert invalid["code"] == "INVALID_FRAME"
    assert unknown["code"] == "UNKNOWN_ACTION"
    assert to_self["code"] == "VALIDATION_ERROR"
    assert pong == {"type": "pong"}


def test_binary_frame_is_rejected_without_closing(ws_client):
    alice = ws_client.app.state.alice

    with ws_client.websocket_connect(ws_url(alice)) as ws:
        ws.send_bytes(b"\x00\x01")
        binary = ws.receive_json()

        ws.send_json({"action": "ping"})
        pong = ws.receive_json()

    assert binary["code"] == "INVALID_FRAME"
    assert pong == {"type": "pong"}


def test_disconnect_unregisters(ws_client):
    alice = ws_client.app.state.alice

    with ws_client.websocket_connect(ws_url(alice)) as ws:
        ws.send_json({"action": "join", "data": {}})
        ws.receive_json()

    assert ws_client.get("/api/ws/online-users").json()["count"] == 0
