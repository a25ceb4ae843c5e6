from alumnilink.models.user import UserRole


async def test_follow_toggle_updates_counts(client, make_user, auth_headers):
    alice, bob = await make_user("Alice"), await make_user("Bob")

    followed = await client.post(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))
    profile = await client.get(f"/api/users/{bob.id}", headers=auth_headers(alice))
    followers = await client.get(f"/api/users/{bob.id}/followers", headers=auth_headers(alice))
    unfollowed = await client.post(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))

    assert followed.json()["isFollowing"] is True
    assert followed.json()["followerCount"] == 1
    assert followed.json()["followingCount"] == 1
    assert profile.json()["isFollowing"] is True
    assert [u["id"] for u in followers.json()] == [alice.id]
    assert unfollowed.json()["isFollowing"] is False
    assert unfollowed.json()["followerCount"] == 0


async def test_cannot_follow_self_or_missing_user(client, make_user, auth_headers):
    alice = await make_user("Alice")

    to_self = await client.post(f"/api/users/{alice.id}/follow", headers=auth_headers(alice))
    missing = await client.post("/api/users/999/follow", headers=auth_headers(alice))

    assert to_self.status_code == 400
    assert missing.status_code == 404


async def test_search_excludes_caller_and_filters_role(client, make_user, auth_headers):
    alice = await make_user("Alice Student", email="alice@example.com")
    await make_user("Alice Alumna", role=UserRole.ALUMNI, email="alumna@example.com")
    await make_user("Bob")

    everyone = await client.get("/api/users/search", params={"query": "alice"}, headers=auth_headers(alice))
    alumni = await client.get(
        "/api/users/search", params={"query": "alice", "role": "Alumni"}, headers=auth_headers(alice)
    )
    empty = await client.get("/api/users/search", params={"query": " "}, headers=auth_headers(alice))

    assert [u["name"] for u in everyone.json()] == ["Alice Alumna"]
    assert [u["role"] for u in alumni.json()] == ["Alumni"]
    assert empty.status_code == 400


async def test_suggestions_skip_followed_users(client, make_user, auth_headers):
    alice, bob, carol = await make_user("Alice"), await make_user("Bob"), await make_user("Carol")
    await client.post(f"/api/users/{bob.id}/follow", headers=auth_headers(alice))

    response = await client.get("/api/users/suggestions", headers=auth_headers(alice))

    assert [u["id"] for u in response.json()] == [carol.id]


async def test_update_profile(client, make_user, auth_headers):
    alice = await make_user("Alice")

    updated = await client.put(
        "/api/users/profile",
        json={"bio": "  CS junior ", "skills": [" python ", "", "sql"], "graduationYear": 2027},
        headers=auth_headers(alice),
    )
    bad_year = await client.put("/api/users/profile", json={"graduationYear": 1900}, headers=auth_headers(alice))

    user = updated.json()["user"]
    assert user["bio"] == "CS junior"
    assert user["skills"] == ["python", "sql"]
    assert user["graduationYear"] == 2027
    assert bad_year.status_code == 400
