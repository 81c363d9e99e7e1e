from __future__ import annotations

import logging
import os
import re
from datetime import timedelta

logger = logging.getLogger(__name__)


def load_dotenv(path: str = ".env") -> None:
    if not os.path.exists(path):
        return

    try:
        with open(path, "r", encoding="utf-8") as env_file:
            for raw_line in env_file:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip("'").strip('"')
                if key:
                    os.environ.setdefault(key, value)
    except OSError:
        logger.exception("Failed to read %s", path)


def required_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"{name} is not configured")
    return value


def env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer %s=%r", name, os.environ.get(name))
        return default


def is_production() -> bool:
    return os.environ.get("APP_ENV", "development").strip().lower() == "production"


SESSION_COOKIE_NAME = "user_session"
SESSION_DURATION = timedelta(days=1)
REMEMBER_SESSION_DURATION = timedelta(days=7)

LOGIN_PASSWORD_MIN_LENGTH = 6
REGISTER_PASSWORD_MIN_LENGTH = 8
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_API_URL = "http://localhost:5001"
DEFAULT_CLIENT_TIMEOUT_SECONDS = 10.0
