from __future__ import annotations

from functools import lru_cache
from typing import Any

from passlib.context import CryptContext

from storefront.core.config import get_settings

SENSITIVE_USER_FIELDS = ("password", "resetToken", "resetTokenExpiry")


@lru_cache(maxsize=1)
def _pwd_context() -> CryptContext:
    settings = get_settings()
    return CryptContext(schemes=list(settings.password_schemes), deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context().hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return _pwd_context().verify(plain_password, hashed_password)


def sanitize_user(user: dict[str, Any] | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return {key: value for key, value in user.items() if key not in SENSITIVE_USER_FIELDS}
