# tests/test_api.py

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from session_guard import Principal, new_session


def test_task_routes_require_a_session(client) -> None:
    for method, path in (
        ("get", "/api/tasks"),
        ("post", "/api/tasks"),
        ("patch", "/api/tasks/abc"),
        ("delete", "/api/tasks/abc"),
        ("get", "/api/users"),
        ("get", "/api/tasks/summary"),
    ):
        response = getattr(client, method)(path)
        assert response.status_code == 401, path
        assert response.get_json()["kind"] == "unauthorized"


def test_expired_session_is_rejected_and_cleared(client) -> None:
    principal = Principal(user_id="u1", name="dave", email="dave@example.com", role="user")
    value, _ = new_session(principal, now=datetime.now(timezone.utc) - timedelta(days=2))
    client.set_cookie("user_session", value)

    response = client.get("/api/tasks")

    assert response.status_code == 401
    assert response.get_json()["kind"] == "session_expired"
    assert any(header.startswith("user_session=;") for header in response.headers.getlist("Set-Cookie"))


def test_garbage_cookie_is_invalid_session(client) -> None:
    client.set_cookie("user_session", "garbage")

    response = client.get("/api/tasks")

    assert response.status_code == 401
    assert response.get_json()["kind"] == "invalid_session"


def test_register_validation(client) -> None:
    assert client.post("/api/auth/register", json={"name": "x", "email": "x@example.com"}).status_code == 400
    assert client.post("/api/auth/register", json={"name": "x", "email": "bad", "password": "long-enough"}).status_code == 400
    assert client.post("/api/auth/register", json={"name": "x", "email": "x@example.com", "password": "short"}).status_code == 400

    created = client.post("/api/auth/register", json={"name": "x", "email": "x@example.com", "password": "long-enough"})
    assert created.status_code == 201
    assert created.get_json()["user"]["email"] == "x@example.com"

    duplicate = client.post("/api/auth/register", json={"name": "y", "email": "X@example.com", "password": "long-enough"})
    assert duplicate.status_code == 400


def test_login_sets_cookie_and_rejects_bad_credentials(client) -> None:
    client.post("/api/auth/register", json={"name": "erin", "email": "erin@example.com", "password": "long-enough"})

    assert client.post("/api/auth/login", json={"email": "erin@example.com"}).status_code == 400
    assert client.post("/api/auth/login", json={"email": "erin@example.com", "password": "abc"}).status_code == 400
    wrong = client.post("/api/auth/login", json={"email": "erin@example.com", "password": "not-the-one"})
    assert wrong.status_code == 401
    assert wrong.get_json()["kind"] == "bad_credentials"

    response = client.post(
        "/api/auth/login",
        json={"email": "erin@example.com", "password": "long-enough", "remember": True},
    )
    assert response.status_code == 200
    assert response.get_json()["user"]["name"] == "erin"
    cookie = next(h for h in response.headers.getlist("Set-Cookie") if h.startswith("user_session="))
    assert "HttpOnly" in cookie
    assert "SameSite=Strict" in cookie
    assert "Max-Age=604800" in cookie

    me = client.get("/api/users")
    assert me.status_code == 200
    assert me.get_json()["email"] == "erin@example.com"
    assert "password_hash" not in me.get_json()


def test_form_login_redirects(client) -> None:
    client.post("/api/auth/register", json={"name": "finn", "email": "finn@example.com", "password": "long-enough"})

    failed = client.post("/api/auth/login", data={"email": "finn@example.com", "password": "wrong-password"})
    assert failed.status_code == 302
    assert "login_error=" in failed.headers["Location"]

    ok = client.post("/api/auth/login", data={"email": "finn@example.com", "password": "long-enough"})
    assert ok.status_code == 302
    assert ok.headers["Location"].endswith("/")
    assert client.get("/api/users").status_code == 200


def test_logout_clears_session(signed_in_client) -> None:
    response = signed_in_client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.get_json() == {"success": True}
    assert signed_in_client.get("/api/tasks").status_code == 401


def test_task_crud_flow(signed_in_client) -> None:
    client = signed_in_client

    assert client.post("/api/tasks", json={"title": "   "}).status_code == 400
    created = client.post("/api/tasks", json={"title": "T", "priority": "high"})
    assert created.status_code == 201
    task = created.get_json()
    assert task["status"] == "pending"
    assert task["creator"]["name"] == "carol"

    listed = client.get("/api/tasks").get_json()
    assert [(item["title"], item["priority"], item["status"]) for item in listed] == [("T", "high", "pending")]

    patched = client.patch(f"/api/tasks/{task['id']}", json={"status": "in_progress"})
    assert patched.status_code == 200
    assert patched.get_json()["status"] == "in_progress"

    bad = client.put(f"/api/tasks/{task['id']}", json={"status": "done"})
    assert bad.status_code == 400
    assert bad.get_json()["kind"] == "invalid_status"

    before_creation = client.patch(f"/api/tasks/{task['id']}", json={"dueDate": "2000-01-01"})
    assert before_creation.get_json()["kind"] == "invalid_due_date"

    stale = client.patch(
        f"/api/tasks/{task['id']}",
        json={"description": "x", "updatedAt": task["updatedAt"]},
    )
    assert stale.status_code == 409

    summary = client.get("/api/tasks/summary").get_json()
    assert summary["total"] == 1
    assert summary["inProgress"] == 1

    assert client.delete(f"/api/tasks/{task['id']}").status_code == 200
    again = client.delete(f"/api/tasks/{task['id']}")
    assert again.status_code == 404
    assert client.patch(f"/api/tasks/{task['id']}", json={"status": "completed"}).status_code == 404


def test_list_filters_and_sort_via_query_string(signed_in_client) -> None:
    client = signed_in_client
    client.post("/api/tasks", json={"title": "b report", "priority": "low"})
    client.post("/api/tasks", json={"title": "a report", "priority": "urgent"})
    client.post("/api/tasks", json={"title": "c notes", "priority": "urgent"})

    response = client.get("/api/tasks?priority=urgent,low&title=report&sortBy=title&sortOrder=asc")
    assert [task["title"] for task in response.get_json()] == ["a report", "b report"]

    assert client.get("/api/tasks?sortBy=nonsense").status_code == 400


def test_other_users_tasks_are_invisible(signed_in_client, store) -> None:
    store.add_user("other", "olga", "olga@example.com")
    foreign = store.add_task("other", "not yours")

    assert signed_in_client.get("/api/tasks").get_json() == []
    assert signed_in_client.patch(f"/api/tasks/{foreign['id']}", json={"status": "completed"}).status_code == 404
    assert signed_in_client.delete(f"/api/tasks/{foreign['id']}").status_code == 404
    assert store.tasks[foreign["id"]]["status"] == "pending"


def test_store_failure_is_a_generic_500(signed_in_client, store, monkeypatch) -> None:
    def explode(*args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(store, "select_tasks", explode)

    response = signed_in_client.get("/api/tasks")

    assert response.status_code == 500
    body = response.get_json()
    assert body["kind"] == "internal_error"
    assert "connection reset" not in json.dumps(body)


def test_current_user_missing_from_store_is_unauthorized(client) -> None:
    principal = Principal(user_id="ghost", name="ghost", email="ghost@example.com", role="user")
    value, _ = new_session(principal)
    client.set_cookie("user_session", value)

    assert client.get("/api/users").status_code == 401
