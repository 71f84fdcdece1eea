from datetime import timedelta

import pytest

from src.api.auth import TokenCodec


def test_health_check(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_register_returns_safe_projection(client):
    r = client.post("/register", json={"name": "Ann", "email": "Ann@x.com", "password": "secret1"})
    assert r.status_code == 201
    user = r.json()["user"]
    assert user["name"] == "Ann"
    assert user["email"] == "ann@x.com"
    assert user["id"]
    assert "password" not in r.text
    assert "$2b$" not in r.text


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "ann@x.com", "password": "secret1"},
        {"name": "Ann", "password": "secret1"},
        {"name": "Ann", "email": "ann@x.com"},
        {"name": "   ", "email": "ann@x.com", "password": "secret1"},
        {"name": "Ann", "email": "not-an-email", "password": "secret1"},
        {"name": "Ann", "email": "ann@x.com", "password": "secret1", "role": "admin"},
    ],
)
def test_register_rejects_bad_payloads(client, payload):
    r = client.post("/register", json=payload)
    assert r.status_code == 400
    assert set(r.json()) == {"error"}


def test_register_same_email_in_other_case_conflicts(client):
    r = client.post("/register", json={"name": "Ann", "email": "ann@x.com", "password": "secret1"})
    assert r.status_code == 201
    r = client.post("/register", json={"name": "Other", "email": "ANN@X.COM", "password": "secret2"})
    assert r.status_code == 409
    assert r.json() == {"error": "Email already registered"}


def test_register_then_login_then_me(client):
    r = client.post("/register", json={"name": "Ann", "email": "Ann@x.com", "password": "secret1"})
    user_id = r.json()["user"]["id"]

    r = client.post("/login", json={"email": "ann@x.com", "password": "secret1"})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == user_id
    assert "token" not in r.json()
    set_cookie = r.headers["set-cookie"].lower()
    assert set_cookie.startswith("token=")
    assert "httponly" in set_cookie
    assert "max-age=86400" in set_cookie

    r = client.get("/me")
    assert r.status_code == 200
    assert r.json()["user"]["id"] == user_id
    assert r.json()["user"]["email"] == "ann@x.com"


def test_login_failures_are_indistinguishable(client):
    client.post("/register", json={"name": "Ann", "email": "ann@x.com", "password": "secret1"})

    wrong_password = client.post("/login", json={"email": "ann@x.com", "password": "nope123"})
    unknown_email = client.post("/login", json={"email": "bob@x.com", "password": "secret1"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid credentials"}
    assert "set-cookie" not in wrong_password.headers
    assert "set-cookie" not in unknown_email.headers


def test_me_requires_session(client):
    r = client.get("/me")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


def test_me_rejects_garbage_cookie(client):
    client.cookies.set("token", "not-a-token")
    r = client.get("/me")
    assert r.status_code == 401
    assert set(r.json()) == {"error"}


def test_expired_session_is_rejected_even_with_valid_signature(signed_in, settings):
    c, user = signed_in("ann@x.com")
    expired = TokenCodec(settings.secret_key).issue(user["id"], user["email"], timedelta(seconds=-1))
    c.cookies.clear()
    c.cookies.set("token", expired)
    assert c.get("/me").status_code == 401


def test_session_for_vanished_user_is_unauthorized(client, settings):
    token = TokenCodec(settings.secret_key).issue("no-such-user", "ghost@x.com", timedelta(minutes=5))
    client.cookies.set("token", token)
    assert client.get("/me").status_code == 401


def test_logout_is_idempotent(signed_in):
    c, _ = signed_in("ann@x.com")
    first = c.post("/logout")
    second = c.post("/logout")
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json() == {"message": "Logout successful"}
    assert c.get("/me").status_code == 401


def test_logout_does_not_revoke_a_copied_token(signed_in, make_client):
    # Sessions are stateless: clearing the cookie does not invalidate the token
    # itself, so a copy taken before logout keeps working until it expires.
    c, user = signed_in("ann@x.com")
    stolen = c.cookies.get("token")
    assert stolen

    c.post("/logout")
    assert c.get("/me").status_code == 401

    attacker = make_client()
    attacker.cookies.set("token", stolen)
    r = attacker.get("/me")
    assert r.status_code == 200
    assert r.json()["user"]["id"] == user["id"]


def test_unknown_route_uses_error_shape(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json() == {"error": "Not Found"}


def test_wrong_method_uses_error_shape(client):
    r = client.patch("/notes/abc")
    assert r.status_code == 405
    assert r.json() == {"error": "Method Not Allowed"}
    assert "allow" in r.headers
