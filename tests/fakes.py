# tests/fakes.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from task_store import new_id

BASE_TIME = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


class FakeTaskStore:
    """
    In-memory stand-in for TaskStore.

    Mirrors the store contract the service layer relies on: scoping by
    creator, membership/substring filters, native ORDER BY with NULLS LAST,
    conditional updates. Every write advances a fake clock by one minute so
    createdAt values are distinct and predictable.
    """

    def __init__(self) -> None:
        self.tasks: dict[str, dict[str, Any]] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.clock = BASE_TIME
        self.select_calls: list[dict[str, Any]] = []

    def tick(self) -> datetime:
        self.clock = self.clock + timedelta(minutes=1)
        return self.clock

    def _joined(self, row: dict[str, Any]) -> dict[str, Any]:
        user = self.users.get(row["creator_id"], {})
        return {**row, "creator_name": user.get("name"), "creator_email": user.get("email")}

    def add_task(self, creator_id: str, title: str, **fields: Any) -> dict[str, Any]:
        now = self.tick()
        row = {
            "id": fields.pop("id", None) or new_id(),
            "title": title,
            "description": "",
            "priority": "medium",
            "status": "pending",
            "due_date": None,
            "creator_id": creator_id,
            "created_at": now,
            "updated_at": now,
        }
        row.update(fields)
        self.tasks[row["id"]] = row
        return row

    def add_user(self, user_id: str, name: str, email: str, password_hash: str = "x", role: str = "user") -> None:
        now = self.tick()
        self.users[user_id] = {
            "id": user_id,
            "name": name,
            "email": email,
            "password_hash": password_hash,
            "role": role,
            "created_at": now,
            "updated_at": now,
        }

    def ping(self) -> bool:
        return True

    def select_tasks(
        self,
        creator_id: str,
        priorities: Iterable[str] | None = None,
        statuses: Iterable[str] | None = None,
        title_contains: str | None = None,
        order_column: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        self.select_calls.append(
            {"creator_id": creator_id, "order_column": order_column, "descending": descending}
        )
        rows = [row for row in self.tasks.values() if row["creator_id"] == creator_id]
        if priorities:
            rows = [row for row in rows if row["priority"] in set(priorities)]
        if statuses:
            rows = [row for row in rows if row["status"] in set(statuses)]
        if title_contains:
            rows = [row for row in rows if title_contains in row["title"]]

        if order_column is None:
            rows.sort(key=lambda row: row["created_at"], reverse=True)
        else:
            present = [row for row in rows if row[order_column] is not None]
            missing = [row for row in rows if row[order_column] is None]
            present.sort(key=lambda row: row[order_column], reverse=descending)
            rows = present + missing
        return [self._joined(row) for row in rows]

    def get_task(self, task_id: str, creator_id: str | None = None) -> dict[str, Any] | None:
        row = self.tasks.get(task_id)
        if row is None or (creator_id is not None and row["creator_id"] != creator_id):
            return None
        return self._joined(row)

    def insert_task(self, values: dict[str, Any]) -> str:
        now = self.tick()
        task_id = new_id()
        self.tasks[task_id] = {"id": task_id, **values, "created_at": now, "updated_at": now}
        return task_id

    def update_task(
        self,
        task_id: str,
        creator_id: str,
        values: dict[str, Any],
        expected_updated_at: datetime | None = None,
    ) -> bool:
        row = self.tasks.get(task_id)
        if row is None or row["creator_id"] != creator_id:
            return False
        if expected_updated_at is not None and row["updated_at"] != expected_updated_at:
            return False
        row.update(values)
        row["updated_at"] = self.tick()
        return True

    def delete_task(self, task_id: str, creator_id: str) -> bool:
        row = self.tasks.get(task_id)
        if row is None or row["creator_id"] != creator_id:
            return False
        del self.tasks[task_id]
        return True

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        return {key: value for key, value in user.items() if key != "password_hash"}

    def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        for user in self.users.values():
            if user["email"].lower() == email.lower():
                return dict(user)
        return None

    def insert_user(self, values: dict[str, Any]) -> str:
        user_id = new_id()
        self.add_user(user_id, values["name"], values["email"], values["password_hash"], values.get("role", "user"))
        return user_id
