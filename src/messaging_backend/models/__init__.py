# src/messaging_backend/models/__init__.py
"""SQLAlchemy models for the messaging backend."""

from .message import Message, MessageType
from .user import User

__all__ = [
    "Message", "MessageType",
    "User",
]
