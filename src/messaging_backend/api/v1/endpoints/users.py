"""User directory and presence endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from messaging_backend.core.errors import AuthError
from messaging_backend.schemas.user import UserResponse
from messaging_backend.services import user_service

from ..dependencies import CurrentUserDep, SessionDep

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserResponse])
async def list_users(current_user: CurrentUserDep, db: SessionDep) -> list[UserResponse]:
    """Return every registered user (sanitized)."""
    return [UserResponse.model_validate(u) for u in user_service.list_users(db)]


@router.get("/search", response_model=list[UserResponse])
async def search_users(
    current_user: CurrentUserDep,
    db: SessionDep,
    query: Annotated[str, Query(description="Case-insensitive username fragment")] = "",
) -> list[UserResponse]:
    """Return users whose username contains ``query``."""
    return [UserResponse.model_validate(u) for u in user_service.search_users(db, query)]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, current_user: CurrentUserDep, db: SessionDep) -> UserResponse:
    """Return a single user."""
    return UserResponse.model_validate(user_service.get_user(db, user_id))


@router.put("/{user_id}/online", response_model=UserResponse)
async def update_online_status(
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    is_online: Annotated[bool, Query(alias="isOnline")],
) -> UserResponse:
    """Set the caller's own presence flag."""
    if current_user.id != user_id:
        raise AuthError("Cannot change another user's status")
    return UserResponse.model_validate(user_service.set_online(db, user_id, is_online))
