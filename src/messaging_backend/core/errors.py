"""Domain errors raised by services and rendered by the API layer."""

from __future__ import annotations

from fastapi import status


class MessagingError(Exception):
    """Base class for every error the service layer raises on purpose."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(MessagingError):
    """A required field is missing, blank, or has an unusable value."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(MessagingError):
    """The entity being created collides with an existing one."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(MessagingError):
    """A bearer token was missing, invalid or expired, or the caller lacks access."""

    status_code = status.HTTP_401_UNAUTHORIZED


class CredentialsError(MessagingError):
    """A login attempt named an unknown user or the wrong password."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(MessagingError):
    """A referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class StorageError(MessagingError):
    """The underlying store failed; the message never carries internals."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Storage unavailable") -> None:
        super().__init__(message)


__all__ = [
    "MessagingError",
    "ValidationError",
    "ConflictError",
    "AuthError",
    "CredentialsError",
    "NotFoundError",
    "StorageError",
]
