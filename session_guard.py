from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from config import (
    REMEMBER_SESSION_DURATION,
    SESSION_COOKIE_NAME,
    SESSION_DURATION,
    is_production,
)
from errors import InvalidSession, SessionExpired, Unauthorized

PRINCIPAL_FIELDS = ("userId", "name", "email", "role")


@dataclass(frozen=True)
class Principal:
    user_id: str
    name: str
    email: str
    role: str

    def to_json(self) -> Dict[str, str]:
        return {"id": self.user_id, "name": self.name, "email": self.email, "role": self.role}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate(raw_cookie: str | None, now: datetime | None = None) -> Principal:
    """Turn the raw ``user_session`` cookie into the authenticated principal.

    Raises ``Unauthorized`` when the cookie is missing, ``InvalidSession`` when
    it does not hold the expected JSON object and ``SessionExpired`` once
    ``expires`` is reached. Nothing is written; clearing a stale cookie is left
    to the caller.
    """
    if not raw_cookie:
        raise Unauthorized()

    try:
        payload = json.loads(raw_cookie)
    except ValueError:
        raise InvalidSession() from None

    if not isinstance(payload, dict):
        raise InvalidSession()
    for name in PRINCIPAL_FIELDS:
        if not isinstance(payload.get(name), str):
            raise InvalidSession()

    expires = parse_iso_timestamp(payload.get("expires"))
    if expires is None:
        raise InvalidSession()
    if expires <= (now or utcnow()):
        raise SessionExpired()

    return Principal(
        user_id=payload["userId"],
        name=payload["name"],
        email=payload["email"],
        role=payload["role"],
    )


def new_session(principal: Principal, remember: bool = False, now: datetime | None = None) -> Tuple[str, int]:
    duration = REMEMBER_SESSION_DURATION if remember else SESSION_DURATION
    expires = (now or utcnow()) + duration
    payload = {
        "userId": principal.user_id,
        "name": principal.name,
        "email": principal.email,
        "role": principal.role,
        "expires": expires.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }
    return json.dumps(payload, separators=(",", ":")), int(duration.total_seconds())


def set_session_cookie(response, value: str, max_age: int) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=is_production(),
        samesite="Strict",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=is_production(),
        samesite="Strict",
    )
