"""Lookup and presence helpers for users."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from messaging_backend.core.errors import NotFoundError
from messaging_backend.db.time import utcnow
from messaging_backend.models.user import User
from messaging_backend.repositories import UserRepository

__all__ = [
    "list_users",
    "search_users",
    "get_user",
    "set_online",
]


def list_users(db: Session) -> Sequence[User]:
    """Return every registered user."""
    return UserRepository(db).list_all()


def search_users(db: Session, query: str) -> Sequence[User]:
    """Return users whose username contains ``query`` (case-insensitive)."""
    return UserRepository(db).search_by_username(query)


def get_user(db: Session, user_id: str) -> User:
    """Return a single user or raise ``NotFoundError``."""
    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def set_online(db: Session, user_id: str, is_online: bool) -> User:
    """Update the presence flag and last-seen timestamp of a user."""
    repo = UserRepository(db)
    user = repo.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    user.is_online = is_online
    user.last_seen = utcnow()
    return repo.save(user)
