from __future__ import annotations

import threading
import uuid
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.api.utils import isoformat, now_utc
from storefront.core.config import Settings, get_settings
from storefront.core.errors import ConflictError
from storefront.persistence.models import UserModel

# Public field name -> column attribute.
USER_FIELDS: dict[str, str] = {
    "email": "email",
    "password": "password_hash",
    "name": "name",
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "role": "role",
    "status": "status",
}


class UserRepository(Protocol):
    backend_name: str

    def get_all(self) -> list[dict[str, Any]]:
        ...

    def get_by_id(self, user_id: str) -> dict[str, Any] | None:
        ...

    def get_by_email(self, email: str) -> dict[str, Any] | None:
        ...

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        ...

    def update_by_id(self, user_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        ...

    def delete_by_id(self, user_id: str) -> dict[str, Any] | None:
        ...


def _row_to_dict(row: UserModel) -> dict[str, Any]:
    data: dict[str, Any] = {"id": row.id}
    for public, attr in USER_FIELDS.items():
        data[public] = getattr(row, attr)
    data["createdAt"] = isoformat(row.created_at)
    data["updatedAt"] = isoformat(row.updated_at)
    return data


class SqlUserRepository:
    backend_name = "database"

    def __init__(self, session: Session):
        self.session = session

    def _flush(self, message: str) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(message) from exc

    def get_all(self) -> list[dict[str, Any]]:
        rows = self.session.scalars(select(UserModel).order_by(UserModel.created_at.asc(), UserModel.id.asc())).all()
        return [_row_to_dict(row) for row in rows]

    def get_by_id(self, user_id: str) -> dict[str, Any] | None:
        row = self.session.get(UserModel, user_id)
        return _row_to_dict(row) if row is not None else None

    def get_by_email(self, email: str) -> dict[str, Any] | None:
        row = self.session.scalar(select(UserModel).where(UserModel.email == email))
        return _row_to_dict(row) if row is not None else None

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        now = now_utc()
        row = UserModel(id=data.get("id") or str(uuid.uuid4()), created_at=now, updated_at=now)
        for public, attr in USER_FIELDS.items():
            if data.get(public) is not None:
                setattr(row, attr, data[public])
        self.session.add(row)
        self._flush("Email already in use")
        return _row_to_dict(row)

    def update_by_id(self, user_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        row = self.session.get(UserModel, user_id)
        if row is None:
            return None
        for public, attr in USER_FIELDS.items():
            if public in updates:
                setattr(row, attr, updates[public])
        row.updated_at = now_utc()
        self._flush("Email already in use")
        return _row_to_dict(row)

    def delete_by_id(self, user_id: str) -> dict[str, Any] | None:
        row = self.session.get(UserModel, user_id)
        if row is None:
            return None
        data = _row_to_dict(row)
        self.session.delete(row)
        self.session.flush()
        return data


class InMemoryUserRepository:
    """Process-local user store for development. Not shared across processes."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._users: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get_all(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(user) for user in self._users.values()]

    def get_by_id(self, user_id: str) -> dict[str, Any] | None:
        with self._lock:
            user = self._users.get(user_id)
            return dict(user) if user is not None else None

    def get_by_email(self, email: str) -> dict[str, Any] | None:
        with self._lock:
            for user in self._users.values():
                if user.get("email") == email:
                    return dict(user)
        return None

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        now = isoformat(now_utc())
        record = {"id": data.get("id") or str(uuid.uuid4())}
        record.update({public: data.get(public) for public in USER_FIELDS})
        record["createdAt"] = now
        record["updatedAt"] = now
        with self._lock:
            self._users[record["id"]] = record
        return dict(record)

    def update_by_id(self, user_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        with self._lock:
            existing = self._users.get(user_id)
            if existing is None:
                return None
            for public in USER_FIELDS:
                if public in updates:
                    existing[public] = updates[public]
            existing["updatedAt"] = isoformat(now_utc())
            return dict(existing)

    def delete_by_id(self, user_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._users.pop(user_id, None)


def build_user_repository(
    session: Session,
    settings: Settings | None = None,
    memory: InMemoryUserRepository | None = None,
) -> UserRepository:
    cfg = settings or get_settings()
    if cfg.users_backend == "memory":
        if memory is None:
            raise RuntimeError("users_backend=memory requires an InMemoryUserRepository instance")
        return memory
    return SqlUserRepository(session)
