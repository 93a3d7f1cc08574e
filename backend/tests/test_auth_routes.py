from skillsphere.models import AuthSession
from skillsphere.routers.auth import hash_password, verify_password


def _signup(client, username="grace", password="hopper123", email="grace@example.com"):
    return client.post("/api/auth/signup", json={
        "username": username,
        "password": password,
        "email": email,
        "fullName": "Grace Hopper",
    })


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_password_hash_roundtrip():
    hashed = hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)


def test_placeholder_hash_never_verifies():
    assert not verify_password("anything", "!")


def test_signup_issues_working_token(client):
    r = _signup(client)
    assert r.status_code == 201
    body = r.json()
    assert body["username"] == "grace"
    assert body["token_type"] == "bearer"

    check = client.get("/api/auth/check", headers=_bearer(body["access_token"]))
    assert check.status_code == 200
    assert check.json()["user"]["id"] == body["userId"]
    assert check.json()["user"]["email"] == "grace@example.com"


def test_signup_duplicate_username(client):
    _signup(client)
    r = _signup(client, email="other@example.com")
    assert r.status_code == 409
    assert r.json() == {"error": "username already exists"}


def test_signup_duplicate_email(client):
    _signup(client)
    r = _signup(client, username="grace2", email="GRACE@example.com")
    assert r.status_code == 409


def test_signup_validates_password_length(client):
    r = _signup(client, password="123")
    assert r.status_code == 400
    assert "error" in r.json()


def test_login_with_username_or_email(client):
    _signup(client)
    by_name = client.post("/api/auth/login", json={"username": "grace", "password": "hopper123"})
    assert by_name.status_code == 200
    assert by_name.json()["user"]["username"] == "grace"
    by_email = client.post("/api/auth/login", json={"email": "grace@example.com", "password": "hopper123"})
    assert by_email.status_code == 200


def test_login_rejects_bad_credentials(client):
    _signup(client)
    assert client.post("/api/auth/login", json={"username": "grace", "password": "nope-nope"}).status_code == 401
    assert client.post("/api/auth/login", json={"username": "nobody", "password": "hopper123"}).status_code == 401


def test_login_requires_identifier(client):
    assert client.post("/api/auth/login", json={"password": "hopper123"}).status_code == 400


def test_logout_revokes_session(client):
    token = _signup(client).json()["access_token"]
    assert client.post("/api/auth/logout", headers=_bearer(token)).json() == {"success": True}
    r = client.get("/api/auth/check", headers=_bearer(token))
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"


def test_check_rejects_missing_or_garbage_token(client):
    assert client.get("/api/auth/check").status_code == 401
    assert client.get("/api/auth/check", headers=_bearer("not-a-jwt")).status_code == 401


def test_check_touches_session(client, db_session):
    body = _signup(client).json()
    client.get("/api/auth/check", headers=_bearer(body["access_token"]))
    rows = [s for s in db_session.query(AuthSession).all() if s.user_id == body["userId"]]
    assert len(rows) == 1
    assert rows[0].last_activity_at >= rows[0].created_at


def test_onboard_creates_user(client):
    r = client.post("/api/user/onboard", json={
        "name": "Alan Turing",
        "domains": ["Machine Learning", "Machine Learning", " Cybersecurity "],
    })
    assert r.status_code == 200
    body = r.json()
    assert body["username"].startswith("alan-turing-")
    assert body["selectedDomains"] == ["Machine Learning", "Cybersecurity"]
    profile = client.get(f"/api/user/{body['userId']}").json()
    assert profile["fullName"] == "Alan Turing"


def test_onboard_updates_existing_user(client, user):
    r = client.post("/api/user/onboard", json={"userId": user.id, "domains": ["DevOps"]})
    assert r.status_code == 200
    assert r.json()["selectedDomains"] == ["DevOps"]
    assert r.json()["userId"] == user.id


def test_onboard_requires_name_for_new_user(client):
    assert client.post("/api/user/onboard", json={"domains": ["DevOps"]}).status_code == 400


def test_onboard_unknown_user(client):
    assert client.post("/api/user/onboard", json={"userId": "ghost", "domains": ["DevOps"]}).status_code == 404


def test_patch_user_profile(client, user):
    r = client.patch(f"/api/user/{user.id}", json={
        "fullName": "Augusta Ada King",
        "email": "Ada@Example.com",
        "selectedDomains": ["Data Science"],
    })
    assert r.status_code == 200
    body = r.json()
    assert body["fullName"] == "Augusta Ada King"
    assert body["email"] == "ada@example.com"
    assert body["selectedDomains"] == ["Data Science"]


def test_patch_user_email_conflict(client, user):
    _signup(client)
    r = client.patch(f"/api/user/{user.id}", json={"email": "grace@example.com"})
    assert r.status_code == 409


def test_user_lookups_404(client):
    assert client.get("/api/user/ghost").status_code == 404
    assert client.get("/api/user/ghost/skills").status_code == 404
    assert client.get("/api/user/ghost/enrolled").status_code == 404
    assert client.get("/api/user/ghost/schedules").status_code == 404
    assert client.get("/api/user/ghost/chat-history").status_code == 404
