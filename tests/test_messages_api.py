import asyncio
import json

import pytest


@pytest.fixture
async def pair(make_user):
    return await make_user("Alice"), await make_user("Bob")


async def test_send_message_returns_serialized_message(client, pair, auth_headers):
    alice, bob = pair

    response = await client.post(
        "/api/messages/",
        json={"recipient": bob.id, "content": "Hi Bob"},
        headers=auth_headers(alice),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["content"] == "Hi Bob"
    assert data["sender"] == {"id": alice.id, "name": "Alice", "avatar": "", "role": "Student"}
    assert data["recipient"]["id"] == bob.id
    assert data["read"] is False
    assert data["conversationId"] == f"{alice.id}_{bob.id}"
    assert data["createdAt"].endswith("Z")


async def test_send_requires_token(client, pair):
    _, bob = pair

    response = await client.post("/api/messages/", json={"recipient": bob.id, "content": "hi"})

    assert response.status_code == 401
    assert response.json()["code"] == "NO_TOKEN"


async def test_send_rejects_invalid_token(client, pair):
    _, bob = pair

    response = await client.post(
        "/api/messages/",
        json={"recipient": bob.id, "content": "hi"},
        headers={"Authorization": "Bearer not-a-token"},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


async def test_send_to_self_or_unknown_recipient(client, pair, auth_headers):
    alice, _ = pair

    to_self = await client.post(
        "/api/messages/", json={"recipient": alice.id, "content": "hi"}, headers=auth_headers(alice)
    )
    unknown = await client.post(
        "/api/messages/", json={"recipient": 999, "content": "hi"}, headers=auth_headers(alice)
    )

    assert to_self.status_code == 400
    assert to_self.json() == {"message": "Cannot send message to yourself", "code": "VALIDATION_ERROR"}
    assert unknown.status_code == 404


async def test_malformed_body_is_a_validation_error(client, pair, auth_headers):
    alice, _ = pair

    response = await client.post("/api/messages/", json={"content": "hi"}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_send_pushes_to_connected_recipient(app, client, pair, auth_headers, fake_socket):
    alice, bob = pair
    socket = fake_socket()
    await app.state.relay.registry.register(bob.id, socket)

    response = await client.post(
        "/api/messages/", json={"recipient": bob.id, "content": "live"}, headers=auth_headers(alice)
    )

    event = json.loads(socket.sent[0])
    assert event["type"] == "new_message"
    assert event["data"]["id"] == response.json()["data"]["id"]


async def test_send_succeeds_when_push_fails(app, client, pair, auth_headers, fake_socket):
    alice, bob = pair
    await app.state.relay.registry.register(bob.id, fake_socket(fail=True))

    response = await client.post(
        "/api/messages/", json={"recipient": bob.id, "content": "still saved"}, headers=auth_headers(alice)
    )
    conversation = await client.get(f"/api/messages/conversation/{alice.id}", headers=auth_headers(bob))

    assert response.status_code == 201
    assert [m["content"] for m in conversation.json()] == ["still saved"]


async def test_send_is_not_held_up_by_stalled_recipient(app, client, pair, auth_headers, fake_socket):
    alice, bob = pair
    app.state.relay.send_timeout = 0.05
    await app.state.relay.registry.register(bob.id, fake_socket(stall=True))

    response = await asyncio.wait_for(
        client.post("/api/messages/", json={"recipient": bob.id, "content": "hi"}, headers=auth_headers(alice)),
        timeout=2,
    )

    assert response.status_code == 201
    assert not app.state.relay.registry.is_online(bob.id)


async def test_opening_conversation_marks_it_read(client, pair, auth_headers):
    alice, bob = pair
    for text in ("one", "two"):
        await client.post("/api/messages/", json={"recipient": bob.id, "content": text}, headers=auth_headers(alice))

    before = await client.get("/api/messages/unread-count", headers=auth_headers(bob))
    conversation = await client.get(f"/api/messages/conversation/{alice.id}", headers=auth_headers(bob))
    after = await client.get("/api/messages/unread-count", headers=auth_headers(bob))

    assert before.json() == {"unreadCount": 2}
    assert [m["content"] for m in conversation.json()] == ["one", "two"]
    assert all(m["isMine"] is False for m in conversation.json())
    assert after.json() == {"unreadCount": 0}


async def test_conversation_with_self_is_rejected(client, pair, auth_headers):
    alice, _ = pair

    response = await client.get(f"/api/messages/conversation/{alice.id}", headers=auth_headers(alice))

    assert response.status_code == 400


async def test_conversations_listing(client, pair, auth_headers, make_user):
    alice, bob = pair
    carol = await make_user("Carol")
    await client.post("/api/messages/", json={"recipient": alice.id, "content": "from bob"}, headers=auth_headers(bob))
    await client.post("/api/messages/", json={"recipient": alice.id, "content": "from carol"}, headers=auth_headers(carol))

    response = await client.get("/api/messages/conversations", headers=auth_headers(alice))

    listing = response.json()
    assert [c["counterpart"]["name"] for c in listing] == ["Carol", "Bob"]
    assert listing[0]["lastMessage"]["content"] == "from carol"
    assert [c["unreadCount"] for c in listing] == [1, 1]


async def test_mark_single_message_read(client, pair, auth_headers):
    alice, bob = pair
    sent = await client.post(
        "/api/messages/", json={"recipient": bob.id, "content": "ping"}, headers=auth_headers(alice)
    )
    message_id = sent.json()["data"]["id"]

    by_sender = await client.put(f"/api/messages/{message_id}/read", headers=auth_headers(alice))
    by_recipient = await client.put(f"/api/messages/{message_id}/read", headers=auth_headers(bob))

    assert by_sender.status_code == 403
    assert by_recipient.status_code == 200
    assert by_recipient.json()["data"]["read"] is True


async def test_mark_conversation_read_reports_count(client, pair, auth_headers):
    alice, bob = pair
    for text in ("a", "b", "c"):
        await client.post("/api/messages/", json={"recipient": bob.id, "content": text}, headers=auth_headers(alice))

    response = await client.put(f"/api/messages/conversation/{alice.id}/read", headers=auth_headers(bob))

    assert response.json()["modifiedCount"] == 3


async def test_delete_message(client, pair, auth_headers):
    alice, bob = pair
    sent = await client.post(
        "/api/messages/", json={"recipient": bob.id, "content": "regret"}, headers=auth_headers(alice)
    )
    message_id = sent.json()["data"]["id"]

    forbidden = await client.delete(f"/api/messages/{message_id}", headers=auth_headers(bob))
    deleted = await client.delete(f"/api/messages/{message_id}", headers=auth_headers(alice))
    conversation = await client.get(f"/api/messages/conversation/{bob.id}", headers=auth_headers(alice))

    assert forbidden.status_code == 403
    assert deleted.status_code == 200
    assert conversation.json() == []


async def test_search_messages(client, pair, auth_headers):
    alice, bob = pair
    await client.post("/api/messages/", json={"recipient": bob.id, "content": "Internship offer"}, headers=auth_headers(alice))
    await client.post("/api/messages/", json={"recipient": bob.id, "content": "lunch?"}, headers=auth_headers(alice))

    found = await client.get(
        "/api/messages/search", params={"query": "intern", "userId": bob.id}, headers=auth_headers(alice)
    )
    too_short = await client.get("/api/messages/search", params={"query": "i"}, headers=auth_headers(alice))

    assert [m["content"] for m in found.json()] == ["Internship offer"]
    assert too_short.status_code == 400


async def test_upload_and_send_attachment(client, pair, auth_headers):
    alice, bob = pair

    upload = await client.post(
        "/api/messages/upload",
        files={"file": ("resume.pdf", b"%PDF-1.4 test", "application/pdf")},
        headers=auth_headers(alice),
    )
    url = upload.json()["url"]
    sent = await client.post(
        "/api/messages/",
        json={"recipient": bob.id, "messageType": "file", "attachmentUrl": url},
        headers=auth_headers(alice),
    )

    assert upload.status_code == 200
    assert url.startswith("/uploads/file-") and url.endswith(".pdf")
    assert sent.status_code == 201
    assert sent.json()["data"]["attachmentUrl"] == url


async def test_upload_rejects_unsupported_type(client, pair, auth_headers):
    alice, _ = pair

    response = await client.post(
        "/api/messages/upload",
        files={"file": ("notes.txt", b"plain text", "text/plain")},
        headers=auth_headers(alice),
    )

    assert response.status_code == 400


async def test_upload_rejects_oversize_file(app, client, pair, auth_headers):
    alice, _ = pair
    app.state.file_storage.max_size = 10

    response = await client.post(
        "/api/messages/upload",
        files={"file": ("big.png", b"x" * 11, "image/png")},
        headers=auth_headers(alice),
    )

    assert response.status_code == 400
    assert list(app.state.file_storage.upload_dir.iterdir()) == []
