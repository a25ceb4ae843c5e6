from alumnilink.models.user import UserRole


async def test_chat_endpoint(client, fake_cohere, make_user, auth_headers):
    user = await make_user("Alice")
    fake_cohere.replies = ["Start with ***bold*** small projects."]

    response = await client.post("/api/chatbot/chat", json={"message": "How do I begin?"}, headers=auth_headers(user))

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert "fallback" not in body
    assert "***" not in body["message"]


async def test_chat_endpoint_validates_length(client, fake_cohere, make_user, auth_headers):
    user = await make_user()

    response = await client.post("/api/chatbot/chat", json={"message": ""}, headers=auth_headers(user))

    assert response.status_code == 400


async def test_suggestions_follow_role(client, make_user, auth_headers):
    alumnus = await make_user("Olga", role=UserRole.ALUMNI)

    response = await client.get("/api/chatbot/suggestions", headers=auth_headers(alumnus))

    assert "How to transition to management roles?" in response.json()["suggestions"]


async def test_health_reports_configuration(client, fake_cohere):
    response = await client.get("/api/chatbot/health")

    assert response.json()["aiConfigured"] is True
    assert response.json()["aiWorking"] is True
