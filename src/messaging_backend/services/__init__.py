# src/messaging_backend/services/__init__.py
"""Business logic services for the messaging backend."""

from .auth_service import AuthResult, AuthService
from .file_store import FileStore, StoredFile
from .message_service import MessageService, conversation_key

__all__ = [
    "AuthResult",
    "AuthService",
    "FileStore",
    "StoredFile",
    "MessageService",
    "conversation_key",
]
