# tests/conftest.py

from __future__ import annotations

import pytest

from session_guard import Principal

from .fakes import FakeTaskStore


@pytest.fixture()
def store() -> FakeTaskStore:
    return FakeTaskStore()


@pytest.fixture()
def alice(store: FakeTaskStore) -> Principal:
    store.add_user("alice-id", "alice", "alice@example.com")
    return Principal(user_id="alice-id", name="alice", email="alice@example.com", role="user")


@pytest.fixture()
def bob(store: FakeTaskStore) -> Principal:
    store.add_user("bob-id", "bob", "bob@example.com")
    return Principal(user_id="bob-id", name="bob", email="bob@example.com", role="user")


@pytest.fixture()
def app(store: FakeTaskStore):
    """
    The Flask app wired to the in-memory store.

    Importing website also mounts the reactpy UI routes; the tests only talk
    to the JSON API.
    """
    import website

    website.app.config.update(TESTING=True, TASK_STORE=store)
    yield website.app
    website.app.config.pop("TASK_STORE", None)


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def signed_in_client(client):
    """Test client holding a session cookie for a freshly registered user."""
    response = client.post(
        "/api/auth/register",
        json={"name": "carol", "email": "carol@example.com", "password": "correct-horse"},
    )
    assert response.status_code == 201
    response = client.post(
        "/api/auth/login",
        json={"email": "carol@example.com", "password": "correct-horse"},
    )
    assert response.status_code == 200
    return client
