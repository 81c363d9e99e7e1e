from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from config import EMAIL_PATTERN, LOGIN_PASSWORD_MIN_LENGTH, REGISTER_PASSWORD_MIN_LENGTH
from errors import BadCredentials, Unauthorized, ValidationError
from session_guard import Principal
from task_service import to_iso

logger = logging.getLogger(__name__)


def _text(payload: Dict[str, Any], name: str) -> str:
    value = payload.get(name)
    return value.strip() if isinstance(value, str) else ""


def _check_email(email: str) -> None:
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address")


def principal_from_user(row: Dict[str, Any]) -> Principal:
    return Principal(
        user_id=row["id"],
        name=row["name"],
        email=row["email"],
        role=row.get("role") or "user",
    )


def register_user(store, payload: Any) -> Dict[str, str]:
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body")
    name = _text(payload, "name")
    email = _text(payload, "email")
    password = payload.get("password") if isinstance(payload.get("password"), str) else ""
    if not name or not email or not password:
        raise ValidationError("Name, email and password are required")
    _check_email(email)
    if len(password) < REGISTER_PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {REGISTER_PASSWORD_MIN_LENGTH} characters")
    if store.get_user_by_email(email) is not None:
        raise ValidationError("Email is already registered")

    user_id = store.insert_user(
        {"name": name, "email": email, "password_hash": generate_password_hash(password), "role": "user"}
    )
    logger.info("Registered user %s", user_id)
    return Principal(user_id=user_id, name=name, email=email, role="user").to_json()


def authenticate(store, payload: Any) -> Tuple[Principal, bool]:
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object body")
    email = _text(payload, "email")
    password = payload.get("password") if isinstance(payload.get("password"), str) else ""
    if not email or not password:
        raise ValidationError("Please provide email and password")
    _check_email(email)
    if len(password) < LOGIN_PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {LOGIN_PASSWORD_MIN_LENGTH} characters")

    user = store.get_user_by_email(email)
    if user is None or not check_password_hash(user["password_hash"], password):
        logger.info("Rejected login attempt")
        raise BadCredentials()

    remember = payload.get("remember") in (True, "true", "on", "1", 1)
    return principal_from_user(user), remember


def current_user(store, principal: Principal) -> Dict[str, Any]:
    user = store.get_user(principal.user_id)
    if user is None:
        raise Unauthorized("User does not exist")
    return {
        "id": user["id"],
        "name": user["name"],
        "email": user["email"],
        "role": user.get("role") or "user",
        "createdAt": to_iso(user.get("created_at")),
        "updatedAt": to_iso(user.get("updated_at")),
    }
