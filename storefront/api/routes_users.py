from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from storefront.domain.users.repository import build_user_repository
from storefront.domain.users.service import UserService
from storefront.persistence.db import get_session

router = APIRouter(tags=["users"])


def get_user_service(request: Request, session: Session = Depends(get_session)) -> UserService:
    state = request.app.state
    return UserService(build_user_repository(session, state.settings, memory=state.user_memory))


@router.get("/users")
def get_users(
    id: str | None = Query(default=None),
    email: str | None = Query(default=None),
    service: UserService = Depends(get_user_service),
):
    if id or email:
        return service.get_user(id, email)
    return service.list_users()


@router.post("/users", status_code=201)
def create_user(
    payload: Any = Body(default=None),
    service: UserService = Depends(get_user_service),
):
    return service.register(payload)


@router.put("/users")
def update_user(
    id: str | None = Query(default=None),
    email: str | None = Query(default=None),
    payload: Any = Body(default=None),
    service: UserService = Depends(get_user_service),
):
    return service.update(id, email, payload)


@router.delete("/users")
def delete_user(
    id: str | None = Query(default=None),
    email: str | None = Query(default=None),
    service: UserService = Depends(get_user_service),
):
    return {"success": True, "user": service.delete(id, email)}
