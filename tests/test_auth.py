from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from blog_api import auth_utils
from blog_api.errors import Forbidden, InvalidCredentials


def _login(client, username, password, captcha_token="captcha-ok"):
    return client.post(
        "/api/auth/login",
        json={"username": username, "password": password, "captchaToken": captcha_token},
    )


# =========================
# Login
# =========================

def test_login_returns_token_with_username(client, settings, alice):
    resp = _login(client, alice["username"], alice["password"])

    assert resp.status_code == 200
    claims = jwt.decode(resp.json()["token"], settings.access_token_secret, algorithms=["HS256"])
    assert claims["username"] == "alice"
    assert claims["exp"] - claims["iat"] == 3600


@pytest.mark.parametrize(
    "username,password",
    [("alice", "wrong-password"), ("mallory", "correct-horse")],
)
def test_login_failures_share_one_error_shape(client, alice, username, password):
    resp = _login(client, username, password)

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid username or password", "code": "INVALID_CREDENTIALS"}


def test_login_runs_captcha_before_credentials(client, captcha, alice):
    captcha.accept = False

    resp = _login(client, alice["username"], alice["password"], captcha_token="bot")

    assert resp.status_code == 400
    assert resp.json()["code"] == "CAPTCHA_FAILED"
    assert captcha.calls[0]["token"] == "bot"


def test_login_requires_captcha_token(client, alice):
    resp = client.post("/api/auth/login", json={"username": "alice", "password": "correct-horse"})

    assert resp.status_code == 400
    assert {"field": "captchaToken", "message": "Value is required"} in resp.json()["errors"]


def test_authenticate_user_unknown_user(repository, fast_hashing):
    with pytest.raises(InvalidCredentials):
        auth_utils.authenticate_user(repository, "nobody", "whatever")


# =========================
# Tokens
# =========================

def test_expired_token_rejected_by_gate_and_introspection(client, settings, alice):
    issued = datetime.now(timezone.utc) - timedelta(hours=1, minutes=1)
    token = auth_utils.create_access_token("alice", settings, now=issued)

    gate = client.get("/api/contacts", headers={"Authorization": f"Bearer {token}"})
    verify = client.post("/api/auth/verify", json={"token": token})

    assert gate.status_code == 403
    assert verify.status_code == 200
    assert verify.json() == {"valid": False}


def test_token_signed_with_other_secret_is_forbidden(client, settings):
    token = auth_utils.create_access_token("alice", settings.model_copy(update={"access_token_secret": "other"}))

    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"


def test_missing_or_malformed_authorization_header_is_unauthenticated(client):
    assert client.get("/api/auth/me").status_code == 401
    resp = client.get("/api/auth/me", headers={"Authorization": "Basic YWxpY2U6cHc="})
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


def test_me_returns_decoded_identity(client, auth_headers):
    resp = client.get("/api/auth/me", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json()["username"] == "alice"


def test_verify_endpoint_reports_identity(client, settings):
    token = auth_utils.create_access_token("alice", settings)

    body = client.post("/api/auth/verify", json={"token": token}).json()

    assert body["valid"] is True
    assert body["identity"]["username"] == "alice"


def test_verify_endpoint_garbage_token(client):
    resp = client.post("/api/auth/verify", json={"token": "not.a.jwt"})

    assert resp.status_code == 200
    assert resp.json() == {"valid": False}


def test_verify_endpoint_requires_token(client):
    resp = client.post("/api/auth/verify", json={})

    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "token"


def test_decode_rejects_token_without_username(settings):
    token = jwt.encode({"sub": "x"}, settings.access_token_secret, algorithm="HS256")

    with pytest.raises(Forbidden):
        auth_utils.decode_access_token(token, settings)


# =========================
# User creation
# =========================

def test_create_user_requires_token_by_default(client, repository):
    resp = client.post("/api/auth/create-user", json={"username": "bob", "password": "s3cret-pass"})

    assert resp.status_code == 401
    assert "bob" not in repository.users


def test_create_user_with_token(client, repository, auth_headers):
    resp = client.post(
        "/api/auth/create-user",
        json={"username": "bob", "password": "s3cret-pass"},
        headers=auth_headers,
    )

    assert resp.status_code == 201
    assert resp.json() == {"message": "User created", "userId": 2}
    assert auth_utils.verify_password("s3cret-pass", repository.users["bob"]["password"])


def test_create_user_open_when_configured(app, client, settings, repository):
    app.state.settings = settings.model_copy(update={"allow_open_user_creation": True})

    resp = client.post("/api/auth/create-user", json={"username": "bob", "password": "s3cret-pass"})

    assert resp.status_code == 201


def test_create_user_duplicate_is_conflict(client, auth_headers):
    resp = client.post(
        "/api/auth/create-user",
        json={"username": "alice", "password": "another-pass"},
        headers=auth_headers,
    )

    assert resp.status_code == 409
    assert resp.json()["code"] == "CONFLICT"


def test_create_user_rejects_short_password(client, auth_headers):
    resp = client.post(
        "/api/auth/create-user",
        json={"username": "bob", "password": "short"},
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "password"


def test_default_work_factor_is_twelve():
    assert auth_utils.hash_password("correct-horse").startswith("$2b$12$")
