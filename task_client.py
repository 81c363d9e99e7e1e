from __future__ import annotations

import os
from typing import Any, Dict, Iterable, List

import requests

from config import DEFAULT_API_URL, DEFAULT_CLIENT_TIMEOUT_SECONDS
from errors import AppError


class ApiError(AppError):
    kind = "api_error"
    default_message = "Request failed"

    def __init__(self, status_code: int, message: str | None = None, kind: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        if kind:
            self.kind = kind


class SessionExpiredError(ApiError):
    default_message = "Session has expired, please sign in again"

    def __init__(self, message: str | None = None, kind: str | None = None) -> None:
        super().__init__(401, message or self.default_message, kind or "unauthorized")


class TaskFlowClient:
    """Small JSON client for the TaskFlow HTTP API.

    Cookies live on the ``requests.Session`` so a successful ``login`` keeps
    the session for later calls. Transport failures are left as
    ``requests.RequestException`` for the caller to report.
    """

    def __init__(
        self,
        base_url: str | None = None,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or os.environ.get("TASKFLOW_API_URL") or DEFAULT_API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or float(
            os.environ.get("TASKFLOW_TIMEOUT_SECONDS", DEFAULT_CLIENT_TIMEOUT_SECONDS)
        )

    def request(self, method: str, path: str, payload: Any = None, params: Any = None) -> Any:
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            json=payload,
            params=params,
            timeout=self.timeout,
        )

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        if response.status_code >= 400:
            message = None
            kind = None
            if isinstance(body, dict):
                message = body.get("error")
                kind = body.get("kind")
            if response.status_code == 401:
                raise SessionExpiredError(message, kind)
            raise ApiError(response.status_code, message or response.reason or None, kind)
        return body

    def login(self, email: str, password: str, remember: bool = False) -> Dict[str, Any]:
        body = self.request("POST", "/api/auth/login", {"email": email, "password": password, "remember": remember})
        return body["user"]

    def logout(self) -> None:
        self.request("POST", "/api/auth/logout")

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        body = self.request("POST", "/api/auth/register", {"name": name, "email": email, "password": password})
        return body["user"]

    def me(self) -> Dict[str, Any]:
        return self.request("GET", "/api/users")

    def list_tasks(
        self,
        priority: Iterable[str] | None = None,
        status: Iterable[str] | None = None,
        title: str | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if priority:
            params["priority"] = ",".join(priority)
        if status:
            params["status"] = ",".join(status)
        if title:
            params["title"] = title
        if sort_by:
            params["sortBy"] = sort_by
        if sort_order:
            params["sortOrder"] = sort_order
        return self.request("GET", "/api/tasks", params=params or None)

    def create_task(self, title: str, **fields: Any) -> Dict[str, Any]:
        return self.request("POST", "/api/tasks", {"title": title, **fields})

    def update_task(self, task_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", f"/api/tasks/{task_id}", changes)

    def patch_task(self, task_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PATCH", f"/api/tasks/{task_id}", changes)

    def delete_task(self, task_id: str) -> Dict[str, Any]:
        return self.request("DELETE", f"/api/tasks/{task_id}")

    def summary(self) -> Dict[str, Any]:
        return self.request("GET", "/api/tasks/summary")
