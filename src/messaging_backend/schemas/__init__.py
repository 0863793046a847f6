# src/messaging_backend/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .file import FileUploadResponse
from .message import MessageCreate, MessageResponse
from .user import AuthResponse, LoginRequest, RegisterRequest, UserResponse

__all__ = [
    "FileUploadResponse",
    "MessageCreate", "MessageResponse",
    "AuthResponse", "LoginRequest", "RegisterRequest", "UserResponse",
]
