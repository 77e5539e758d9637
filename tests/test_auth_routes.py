from helpers import PASSWORD, login, register


async def test_register_returns_user_without_password(client):
    resp = await register(client, "Alice", email="alice@example.com", phone="+55 11 99999-0000")
    body = resp.json()

    assert resp.status_code == 201
    assert body["user"]["username"] == "Alice"
    assert body["user"]["role"] == "owner"
    assert body["user"]["isModerator"] is False
    assert "password" not in body["user"]
    assert "passwordHash" not in body["user"]


async def test_register_same_name_different_case_conflicts(client):
    assert (await register(client, "Alice")).status_code == 201
    resp = await register(client, "alice")
    assert resp.status_code == 409
    assert "message" in resp.json()


async def test_register_validation_errors_are_400(client):
    assert (await register(client, "al")).status_code == 400
    assert (await register(client, "alice", password="123")).status_code == 400
    assert (await register(client, "alice", role="admin")).status_code == 400
    assert (await register(client, "merda")).status_code == 400


async def test_login_sets_session_cookie(client):
    await register(client, "alice")
    resp = await client.post("/api/auth/login", json={"username": "ALICE", "password": PASSWORD})

    assert resp.status_code == 200
    assert resp.json()["user"]["username"] == "alice"
    assert "sid" in resp.cookies

    session = await client.get("/api/auth/session")
    assert session.status_code == 200
    assert session.json()["user"]["username"] == "alice"


async def test_login_failures_share_one_message(client):
    await register(client, "alice")
    wrong = await client.post("/api/auth/login", json={"username": "alice", "password": "nope-nope"})
    unknown = await client.post("/api/auth/login", json={"username": "ghost", "password": PASSWORD})

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["message"] == unknown.json()["message"]


async def test_moderator_claim_in_session(client):
    await register(client, "Moderator", role="user")
    headers = await login(client, "moderator")

    resp = await client.get("/api/auth/session", headers=headers)
    assert resp.json()["user"]["isModerator"] is True


async def test_logout_destroys_session(client):
    await register(client, "alice")
    headers = await login(client, "alice")

    assert (await client.get("/api/auth/session", headers=headers)).status_code == 200
    assert (await client.post("/api/auth/logout", headers=headers)).status_code == 200
    assert (await client.get("/api/auth/session", headers=headers)).status_code == 404


async def test_anonymous_session_is_404(client):
    assert (await client.get("/api/auth/session")).status_code == 404


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
