"""Data access helpers for working with users."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from messaging_backend.models.user import User

__all__ = ["UserRepository"]


class UserRepository:
    """Thin wrapper around database access for user entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(self, user_id: str) -> User | None:
        """Return a user by identifier."""
        return self.session.get(User, user_id)

    def get_by_username(self, username: str) -> User | None:
        """Return the user owning ``username``, if any."""
        return self.session.scalars(select(User).where(User.username == username)).first()

    def exists_by_username(self, username: str) -> bool:
        """Return True if the username is already taken."""
        return self.get_by_username(username) is not None

    def list_all(self) -> Sequence[User]:
        """Return every user ordered by creation time."""
        return self.session.scalars(select(User).order_by(User.created_at)).all()

    def search_by_username(self, query: str) -> Sequence[User]:
        """Return users whose username contains ``query``, ignoring case.

        ``%`` and ``_`` in the query match literally.
        """
        escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        stmt = (
            select(User)
            .where(func.lower(User.username).like(pattern, escape="\\"))
            .order_by(User.username)
        )
        return self.session.scalars(stmt).all()

    def add(self, user: User) -> User:
        """Persist a new user and return the refreshed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: User) -> User:
        """Commit pending changes on an existing user."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user
