from __future__ import annotations

import logging
from typing import Any

from storefront.core.errors import ConflictError, NotFoundError, ValidationError
from storefront.core.security import hash_password, sanitize_user
from storefront.domain.users.repository import USER_FIELDS, UserRepository

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "customer"
USER_ROLES = ("customer", "seller", "admin")
USER_STATUSES = ("active", "suspended", "pending")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_string_fields(body: dict[str, Any], keys: tuple[str, ...]) -> None:
    for key in keys:
        value = body.get(key)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"'{key}' must be a string.", field=key)


class UserService:
    def __init__(self, repository: UserRepository):
        self.repository = repository

    def list_users(self) -> list[dict[str, Any]]:
        return [sanitize_user(user) for user in self.repository.get_all()]

    def _find(self, user_id: str | None, email: str | None) -> dict[str, Any]:
        if not user_id and not email:
            raise ValidationError("id or email query parameter is required", field="id")
        if user_id:
            user = self.repository.get_by_id(user_id)
        else:
            user = self.repository.get_by_email(normalize_email(email or ""))
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_user(self, user_id: str | None = None, email: str | None = None) -> dict[str, Any]:
        return sanitize_user(self._find(user_id, email))

    def register(self, body: Any) -> dict[str, Any]:
        if not isinstance(body, dict) or not body.get("email") or not body.get("password"):
            raise ValidationError("Email and password are required", field="email")
        _check_string_fields(body, tuple(USER_FIELDS))

        email = normalize_email(body["email"])
        if self.repository.get_by_email(email) is not None:
            raise ConflictError("Email already in use")

        role = body.get("role") or DEFAULT_ROLE
        if role not in USER_ROLES:
            raise ValidationError(f"Invalid 'role'. Must be one of: {', '.join(USER_ROLES)}.", field="role")

        created = self.repository.create(
            {
                "email": email,
                "password": hash_password(body["password"]),
                "name": body.get("name"),
                "firstName": body.get("firstName"),
                "lastName": body.get("lastName"),
                "phone": body.get("phone"),
                "role": role,
                "status": "active",
            }
        )
        logger.info(
            "user registered: id=%s backend=%s",
            created["id"],
            self.repository.backend_name,
            extra={"user_id": created["id"]},
        )
        return sanitize_user(created)

    def update(self, user_id: str | None, email: str | None, body: Any) -> dict[str, Any]:
        existing = self._find(user_id, email)
        if not isinstance(body, dict):
            raise ValidationError("Payload must be a JSON object.")
        _check_string_fields(body, tuple(USER_FIELDS))

        updates = {key: value for key, value in body.items() if key in USER_FIELDS}
        if "email" in updates:
            if not updates["email"]:
                raise ValidationError("'email' must not be empty.", field="email")
            updates["email"] = normalize_email(updates["email"])
            holder = self.repository.get_by_email(updates["email"])
            if holder is not None and holder["id"] != existing["id"]:
                raise ConflictError("Email already in use")
        if "password" in updates:
            if not updates["password"]:
                raise ValidationError("'password' must not be empty.", field="password")
            updates["password"] = hash_password(updates["password"])
        if "role" in updates and updates["role"] not in USER_ROLES:
            raise ValidationError(f"Invalid 'role'. Must be one of: {', '.join(USER_ROLES)}.", field="role")
        if "status" in updates and updates["status"] not in USER_STATUSES:
            raise ValidationError(f"Invalid 'status'. Must be one of: {', '.join(USER_STATUSES)}.", field="status")

        updated = self.repository.update_by_id(existing["id"], updates)
        if updated is None:
            raise NotFoundError("User not found")
        return sanitize_user(updated)

    def delete(self, user_id: str | None, email: str | None) -> dict[str, Any]:
        existing = self._find(user_id, email)
        deleted = self.repository.delete_by_id(existing["id"])
        if deleted is None:
            raise NotFoundError("User not found")
        logger.info("user deleted: id=%s", existing["id"], extra={"user_id": existing["id"]})
        return sanitize_user(deleted)
