from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.api.config import Settings
from src.api.main import create_app

TEST_SECRET = "test-secret-key-not-for-production"


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings against a throwaway SQLite file, with the cheapest allowed bcrypt cost."""
    return Settings(
        secret_key=TEST_SECRET,
        database_url=f"sqlite:///{tmp_path / 'notes.db'}",
        bcrypt_rounds=10,
        log_level="WARNING",
    )


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def make_client(app):
    """
    Factory for independent clients sharing one app; each has its own cookie jar,
    so each behaves like a separate browser.
    """
    clients = []

    def _make() -> TestClient:
        c = TestClient(app)
        c.__enter__()
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture()
def signed_in(make_client):
    """Register a user and log in on a fresh client. Returns (client, user)."""

    def _signed_in(email: str, name: str = "User", password: str = "secret1"):
        c = make_client()
        r = c.post("/register", json={"name": name, "email": email, "password": password})
        assert r.status_code == 201, r.text
        r = c.post("/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return c, r.json()["user"]

    return _signed_in
