"""Data access wrappers around the SQLAlchemy session."""

from .message_repo import MessageRepository
from .user_repo import UserRepository

__all__ = ["MessageRepository", "UserRepository"]
