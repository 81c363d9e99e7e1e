from __future__ import annotations

from typing import Any, Dict


class AppError(Exception):
    status_code = 500
    kind = "internal_error"
    default_message = "Server error, please try again later"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_json(self) -> Dict[str, Any]:
        return {"error": self.message, "kind": self.kind}


class InternalError(AppError):
    pass


class ValidationError(AppError):
    status_code = 400
    kind = "validation_error"
    default_message = "Invalid request"


class InvalidStatus(ValidationError):
    kind = "invalid_status"
    default_message = "Invalid task status"


class InvalidPriority(ValidationError):
    kind = "invalid_priority"
    default_message = "Invalid task priority"


class InvalidType(ValidationError):
    kind = "invalid_type"
    default_message = "Field has the wrong type"


class InvalidDueDate(ValidationError):
    kind = "invalid_due_date"
    default_message = "Due date must be later than the task creation time"


class AuthError(AppError):
    status_code = 401
    kind = "unauthorized"
    default_message = "Unauthorized"


class Unauthorized(AuthError):
    pass


class InvalidSession(AuthError):
    kind = "invalid_session"
    default_message = "Invalid session"


class SessionExpired(AuthError):
    kind = "session_expired"
    default_message = "Session has expired"


class BadCredentials(AuthError):
    kind = "bad_credentials"
    default_message = "Incorrect email or password"


class NotFound(AppError):
    status_code = 404
    kind = "not_found"
    default_message = "Task not found"


class Conflict(AppError):
    status_code = 409
    kind = "conflict"
    default_message = "Task was changed by someone else, reload and try again"
